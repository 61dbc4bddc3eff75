"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.api.auth import router as auth_router
from backoffice.api.content import router as content_router
from backoffice.api.middleware import CorrelationIdMiddleware
from backoffice.api.routes import router
from backoffice.api.users import router as users_router
from backoffice.config import get_settings
from backoffice.exceptions import BackofficeError, BadRequestError
from backoffice.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    try:
        from backoffice.database import init_database, run_migrations

        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - auth endpoints will fail until it is reachable",
        )

    logger.info(
        "application_started",
        app_name=settings.app_name,
        log_level=settings.log_level,
        access_ttl=settings.jwt_expiration,
        refresh_ttl=settings.jwt_refresh_expiration,
    )

    yield

    try:
        from backoffice.database import close_database

        await close_database()
    except Exception as e:
        logger.warning("database_close_failed", error=str(e))

    logger.info("application_shutdown")


# Every route is served under the URI version prefix.
API_PREFIX = "/api/v1"

app = FastAPI(
    title="Back-office API",
    description="Authentication, session lifecycle, user administration and content",
    version="1.0.0",
    lifespan=lifespan,
)


def _error_envelope(request: Request, body: dict) -> JSONResponse:
    """Render ``{statusCode, message, errorCode}`` plus request metadata."""
    status_code = body["statusCode"]
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    headers = {"X-Correlation-Id": correlation_id}
    if status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(
        status_code=status_code,
        content={
            **body,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "correlationId": correlation_id,
        },
        headers=headers,
    )


@app.exception_handler(BackofficeError)
async def backoffice_exception_handler(
    request: Request, exc: BackofficeError
) -> JSONResponse:
    """Map typed service errors onto the JSON error envelope."""
    logger = structlog.get_logger()
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        error_code=exc.code,
        message=exc.message,
    )
    return _error_envelope(request, exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Unknown routes, wrong methods and other framework-raised HTTP errors."""
    structlog.get_logger().info(
        "http_error", path=request.url.path, status_code=exc.status_code
    )
    try:
        code = HTTPStatus(exc.status_code).name
    except ValueError:
        code = "HTTP_ERROR"
    return _error_envelope(
        request,
        {"statusCode": exc.status_code, "message": str(exc.detail), "errorCode": code},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as 400 Bad Request."""
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning("validation_error", path=request.url.path, detail=detail)
    return _error_envelope(request, BadRequestError(detail).to_dict())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the failure and answer with a generic 500 envelope."""
    structlog.get_logger().error(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return _error_envelope(request, BackofficeError().to_dict())


app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().cors_origin],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-Id"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(content_router, prefix=API_PREFIX)
app.include_router(router, prefix=API_PREFIX)
