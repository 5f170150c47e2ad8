"""FastAPI application factory with lifecycle management.

Run with ``uvicorn user_service.main:create_app --factory``.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, load_settings
from .db import Database
from .errors import ErrorKind, ServiceError
from .logger import logger, setup_logger
from .middleware import (
    add_request_id_middleware,
    request_logging_middleware,
    security_headers_middleware,
)
from .monitoring import setup_monitoring
from .rate_limit import build_limiter, enforce_default_limit
from .routes import router

# ==================== Error Handlers ====================


def _field_name(loc: tuple) -> str:
    """'body.firstName' -> 'firstName'; the request part is implied by the route."""
    parts = [str(part) for part in loc]
    if len(parts) > 1 and parts[0] in ("body", "query", "path"):
        parts = parts[1:]
    return ".".join(parts)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report every violated field in one 400 response."""
    errors = [
        {"field": _field_name(error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    logger.info(f"Validation failed: {request.method} {request.url.path} fields={[e['field'] for e in errors]}")
    error = ServiceError(ErrorKind.VALIDATION_FAILED, "Request validation failed", {"errors": errors})
    return JSONResponse(status_code=error.status_code, content={"detail": error.as_detail()})


# ==================== Application Lifecycle ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - handles startup and shutdown."""
    settings: Settings = app.state.settings
    database: Database = app.state.database
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")

    if settings.DB_CREATE_TABLES:
        await database.create_tables()

    logger.info(f"{settings.APP_NAME} started successfully - ready to accept requests")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await database.dispose()
    logger.info(f"{settings.APP_NAME} shutdown complete")


# ==================== Application Setup ====================


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application around one Settings instance."""
    settings = settings or load_settings()
    setup_logger(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "User management REST API:\n\n"
            "- Input validation and normalization\n"
            "- Rate limiting\n"
            "- Parameterized queries through the ORM\n"
            "- Security headers\n"
            "- Password hashing with bcrypt"
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url=settings.DOCS_URL,
        redoc_url=None,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
    )
    app.state.settings = settings
    app.state.database = Database(settings)
    app.state.limiter = build_limiter(settings)

    # Middleware registration (last registered = outermost layer)
    app.middleware("http")(security_headers_middleware(settings.APP_ENV))
    app.middleware("http")(request_logging_middleware)
    app.middleware("http")(add_request_id_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(router, prefix=settings.API_PREFIX, dependencies=[Depends(enforce_default_limit)])

    if settings.ENABLE_METRICS:
        setup_monitoring(app)

    logger.info(
        f"[SECURITY] CORS enabled for: {', '.join(settings.get_cors_origins())}; "
        f"rate limits: {settings.RATE_LIMIT_DEFAULT} default, {settings.RATE_LIMIT_CREATE} for user creation"
        + ("" if settings.RATE_LIMIT_ENABLED else " (disabled)")
    )
    return app
