"""
Structured client-side errors.

An ``EnhancedError`` wraps a failure with a severity, an optional machine
code and the context it happened in (component, action, route, extra data
such as the HTTP status code). The pattern analyzer and the tracking service
both work on this type.
"""
from __future__ import annotations

import logging
import traceback
import typing as t
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

logger = logging.getLogger(__name__)


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Where and why an error happened."""
    component: t.Optional[str] = None
    action: t.Optional[str] = None
    route: t.Optional[str] = None
    user_id: t.Optional[str] = None
    additional_data: dict[str, t.Any] = field(default_factory=dict)


@dataclass
class EnhancedError:
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    context: ErrorContext = field(default_factory=ErrorContext)
    code: t.Optional[str] = None
    original_error: t.Optional[BaseException] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def status_code(self) -> t.Optional[int]:
        return self.context.additional_data.get("statusCode")


def create_error(
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: t.Optional[ErrorContext] = None,
        original_error: t.Optional[BaseException] = None,
        code: t.Optional[str] = None,
) -> EnhancedError:
    """Creates a standardized error object with context.

    :param message: Human readable message.
    :param severity: How serious the error is.
    :param context: Where the error happened (optional).
    :param original_error: The exception that caused it (optional).
    :param code: Machine readable error code (optional).
    :return: An EnhancedError.
    """
    return EnhancedError(
        message=message,
        severity=severity,
        context=context or ErrorContext(),
        code=code,
        original_error=original_error,
    )


def from_exception(
        exc: BaseException,
        context: t.Optional[ErrorContext] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
) -> EnhancedError:
    return create_error(
        str(exc) or "An unexpected error occurred",
        severity=severity,
        context=context,
        original_error=exc,
    )


_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def log_error(error: EnhancedError) -> None:
    """Logs an error at the level matching its severity."""
    code = error.code or (type(error.original_error).__name__ if error.original_error else "UNKNOWN")
    details = {
        "timestamp": error.timestamp.isoformat(),
        "severity": error.severity.value,
        "code": code,
        "component": error.context.component,
        "action": error.context.action,
    }
    if error.original_error is not None and error.original_error.__traceback__ is not None:
        details["stack"] = "".join(traceback.format_tb(error.original_error.__traceback__))
    logger.log(_LOG_LEVELS[error.severity], "[%s] %s %s", error.severity.name, error.message, details)
