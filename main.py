import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from auth import (
    SESSION_COOKIE_NAME,
    authenticate_user,
    get_current_user,
    get_password_hash,
    login_user,
    logout_user,
)
from config import Settings, load_settings
from database import create_db_engine, create_session_factory, init_db
from errors import AppError, ConflictError
from models import ErrorResponse, LoginRequest, User, UserCreate
from routes import router
from storage import DatabaseStorage, get_storage
from tables import UserRow

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMIT",
}


def configure_logging(level: str):
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _error_body(
    request: Request,
    message: str,
    code: str,
    errors: Optional[Dict[str, str]] = None,
) -> dict:
    body = {
        "status": "error",
        "message": message,
        "code": code,
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "requestId": getattr(request.state, "request_id", None),
    }
    if errors is not None:
        body["errors"] = errors
    return body


def flatten_validation_errors(exc: RequestValidationError) -> Dict[str, str]:
    """Map pydantic error locations to a ``{field: message}`` dict."""
    errors = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        if len(loc) > 1 and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        field = ".".join(loc) or "body"
        errors.setdefault(field, error.get("msg", "Invalid value"))
    return errors


def register_error_handlers(app: FastAPI, settings: Settings):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(
                f"App error [{exc.code}] on {request.method} {request.url.path}: {exc.message}",
                exc_info=exc,
            )
        else:
            logger.warning(f"App error [{exc.code}] on {request.method} {request.url.path}: {exc.message}")
        message = exc.message
        if exc.status_code >= 500 and settings.is_production:
            # driver text stays in the log
            message = exc.default_message
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, message, exc.code, getattr(exc, "errors", None)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = flatten_validation_errors(exc)
        message = "Validation error: " + "; ".join(f'{msg} at "{field}"' for field, msg in errors.items())
        logger.warning(f"Validation error on {request.method} {request.url.path}: {errors}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(request, message, "VALIDATION_ERROR", errors),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, str(exc.detail), code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        if settings.is_production:
            body = _error_body(request, "An unexpected error occurred", "INTERNAL_SERVER_ERROR")
        else:
            body = _error_body(request, str(exc) or "An unexpected error occurred", "INTERNAL_SERVER_ERROR")
            body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    engine = create_db_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        logger.info(f"ProductiTask API starting ({settings.app_env})")
        yield
        engine.dispose()

    app = FastAPI(
        title="ProductiTask API",
        version="1.0.0",
        lifespan=lifespan,
        responses={code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409)},
    )
    app.state.settings = settings
    app.state.storage = DatabaseStorage(create_session_factory(engine))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or f"req-{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = request_id
        logger.info(f"[{request_id}] {request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
        return response

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=settings.is_production,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.cors_origin.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app, settings)

    @app.get("/api/health")
    async def health_check():
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/api/register", response_model=User, status_code=status.HTTP_201_CREATED)
    def register(
        user: UserCreate,
        request: Request,
        storage: DatabaseStorage = Depends(get_storage),
    ):
        if storage.get_user_by_email(user.email):
            raise ConflictError("An account with this email already exists")

        created = storage.save_user({
            "email": user.email,
            "name": user.name,
            "password": get_password_hash(user.password),
        })
        login_user(request, created)
        logger.info(f"User registered: {created.id}")
        return created

    @app.post("/api/login", response_model=User)
    def login(
        login_data: LoginRequest,
        request: Request,
        storage: DatabaseStorage = Depends(get_storage),
    ):
        user = authenticate_user(storage, login_data.email, login_data.password)
        login_user(request, user)
        logger.info(f"User logged in: {user.id}")
        return user

    @app.post("/api/logout")
    def logout(request: Request):
        logout_user(request)
        return {"status": "OK"}

    @app.get("/api/user", response_model=User)
    def read_current_user(current_user: UserRow = Depends(get_current_user)):
        return current_user

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
