"""Update Feed - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from update_feed.api import api_router
from update_feed.api.health import router as health_router
from update_feed.api.packages import router as packages_router
from update_feed.api.telemetry import router as telemetry_router
from update_feed.api.update_server import router as update_server_router
from update_feed.core import settings, setup_logging
from update_feed.core.exceptions import RateLimitedError, UpdateFeedError
from update_feed.core.logging import get_logger
from update_feed.middleware import SecurityHeadersMiddleware, rate_limit_cleanup_loop

# Import all models to ensure they're registered with Base for Alembic
from update_feed.models import (  # noqa: F401
    ComposerToken,
    Entitlement,
    Product,
    ProductFile,
    TelemetryEvent,
)
from update_feed.services.telemetry_retention import TelemetryRetentionService

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    retention_service = TelemetryRetentionService.get_instance()
    await retention_service.start()

    rate_limit_task = asyncio.create_task(rate_limit_cleanup_loop())
    rate_limit_task.add_done_callback(task_done_callback)

    yield

    logger.info("Shutting down...")

    rate_limit_task.cancel()
    try:
        await rate_limit_task
    except asyncio.CancelledError:
        pass

    await retention_service.stop()


async def update_feed_error_handler(request: Request, exc: UpdateFeedError) -> JSONResponse:
    """Render domain errors as ``{"code", "message"}``."""
    headers = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message},
        headers=headers or None,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request schema failures are plain 400s."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        message = f"Invalid request: {location}: {errors[0].get('msg', '')}"
    return JSONResponse(
        status_code=400,
        content={"code": "invalid_request", "message": message},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Composer repository and telemetry service for purchased products",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.add_exception_handler(UpdateFeedError, update_feed_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
        ],
    )

    # Prometheus metrics (before routers so /metrics endpoint is registered first)
    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(health_router)  # Health at root level
    app.include_router(packages_router)  # Composer repository at /packages.json
    app.include_router(telemetry_router)  # Telemetry at /telemetry
    app.include_router(update_server_router)  # Update checks at /update
    app.include_router(api_router)  # Session API at /api

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with repository information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "repository_url": settings.repository_url,
        }

    return app


# Application instance
app = create_app()
