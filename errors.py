import re
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_SERVER_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class ValidationError(BadRequestError):
    code = "VALIDATION_ERROR"
    default_message = "Validation error"

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        if resource_id:
            message = f"{resource} with id {resource_id} not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT"
    default_message = "Too many requests"


class DatabaseError(AppError):
    code = "DATABASE_ERROR"
    default_message = "Database operation failed"


class DatabaseConnectionError(DatabaseError):
    status_code = 503
    default_message = "Database connection error"


_UNIQUE_SQLITE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")
_UNIQUE_POSTGRES = re.compile(r'unique constraint ".*?_(\w+)_key"')
_NOT_NULL = re.compile(r"NOT NULL constraint failed: \w+\.(\w+)|null value in column \"(\w+)\"")


def handle_database_error(error: Exception) -> AppError:
    """Translate an ORM/driver exception into the matching AppError."""
    if isinstance(error, AppError):
        return error

    message = str(getattr(error, "orig", None) or error)
    if isinstance(error, IntegrityError):
        lowered = message.lower()
        if "unique" in lowered:
            match = _UNIQUE_SQLITE.search(message) or _UNIQUE_POSTGRES.search(message)
            field = match.group(1) if match else "Record"
            return ConflictError(f"{field} already exists")
        if "foreign key" in lowered:
            match = re.search(r'references "(\w+)"', message)
            relation = match.group(1) if match else "related record"
            return BadRequestError(f"Referenced {relation} does not exist")
        if "not null" in lowered or "null value" in lowered:
            match = _NOT_NULL.search(message)
            column = next((g for g in match.groups() if g), None) if match else None
            return BadRequestError(f"{column or 'Required field'} cannot be null")
    if isinstance(error, OperationalError) and "connect" in message.lower():
        return DatabaseConnectionError()
    if isinstance(error, SQLAlchemyError):
        return DatabaseError(message)
    return DatabaseError()
