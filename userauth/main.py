"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from userauth import database
from userauth.api.middleware import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from userauth.api.routes import router
from userauth.api.users import router as users_router
from userauth.config import get_settings
from userauth.errors import ApiError
from userauth.models.response import ErrorResponse
from userauth.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    await database.init_database()
    await database.run_migrations()
    logger.info("database_initialized")

    logger.info("application_started", log_level=settings.log_level)

    yield

    await database.close_database()
    logger.info("application_shutdown")


def _error_response(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(status_code=status_code, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


settings = get_settings()

app = FastAPI(
    title="User Accounts API",
    description="User registration, login and cookie-based sessions",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render domain errors as the error envelope."""
    logger = structlog.get_logger()
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "api_error",
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        detail=exc.message,
    )
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with a 400 envelope."""
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning("validation_error", detail=detail)
    return _error_response(400, detail)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Keep framework errors (unknown route, wrong method) in the envelope."""
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and hide their details from the client.

    Runs outside the middleware stack, so the correlation id is copied onto
    the response here.
    """
    structlog.get_logger().error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    response = _error_response(500, "Internal server error")
    correlation_id = getattr(request.state, "correlation_id", None) or (
        structlog.contextvars.get_contextvars().get("correlation_id")
    )
    if correlation_id:
        response.headers[CORRELATION_ID_HEADER] = correlation_id
    return response


# Credentialed CORS, cookies carry the session
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)
app.include_router(router)
