"""
FastAPI application for the Teleconsult matching service.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api.errors import APIError, status_for_domain_error, status_for_infrastructure_error
from .api.routers import categories, consultation_requests, doctors, health, stats
from .api.utils.responses import error_response
from .core.config import Settings, get_settings
from .core.container import ServiceContainer, start_container
from .core.exceptions import TeleconsultException
from .core.structured_logger import configure_logging, get_logger
from .domain.errors import DomainError
from .middleware.identity_middleware import IdentityMiddleware
from .middleware.performance_middleware import PerformanceMiddleware
from .middleware.request_id_middleware import RequestIDMiddleware
from .observability.metrics import record_error
from .workers.availability_sweeper import run_availability_sweeper_forever

logger = get_logger("teleconsult.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings
    sweeper_task = None
    owns_container = app.state.container is None

    # Startup
    logger.info(
        f"Starting {settings.app_name} v{settings.app_version}",
        environment=settings.app_env,
        database_backend=settings.database.backend,
        notification_backend=settings.notifications.backend,
    )
    try:
        if owns_container:
            app.state.container = await start_container(settings)
    except Exception as e:
        logger.error("Service startup failed", exc_info=True, error=str(e), error_type=type(e).__name__)
        raise

    container: ServiceContainer = app.state.container

    if settings.availability.sweeper_enabled:
        sweeper_task = asyncio.create_task(
            run_availability_sweeper_forever(container.registry, settings.availability)
        )
        logger.info("Availability sweeper started", interval_seconds=settings.availability.sweeper_interval_seconds)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application")
    if sweeper_task:
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            pass
        logger.info("Availability sweeper stopped")

    if owns_container:
        await container.close()
        app.state.container = None
    else:
        await container.lifecycle.drain_notifications()


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """Create and configure FastAPI application.

    ``container`` lets callers supply pre-wired services (tests do); otherwise
    the lifespan builds one from ``settings`` and closes it on shutdown.
    """
    settings = settings or get_settings()
    configure_logging(settings.logging.level, settings.logging.format)

    app = FastAPI(
        title=settings.app_name,
        description="Doctor availability and consultation request matching",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container

    # Identity must sit inside CORS so preflight requests are answered without headers
    app.add_middleware(IdentityMiddleware, require_headers=settings.identity.require_headers)
    app.add_middleware(PerformanceMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.allowed_origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allowed_methods,
        allow_headers=settings.cors.allowed_headers,
        max_age=600,
    )
    # Outermost, so every other layer sees request.state.request_id
    app.add_middleware(RequestIDMiddleware)

    app.include_router(health.router)
    app.include_router(categories.router)
    app.include_router(doctors.router)
    app.include_router(consultation_requests.router)
    app.include_router(stats.router)

    @app.get("/", tags=["health"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.app_env,
            "status": "running",
            "docs": "/docs",
            "endpoints": {
                "health": "/health",
                "categories": "GET /categories",
                "category_specialties": "GET /categories/{category}/specialties",
                "available_doctors": "GET /doctors/available",
                "doctor_availability": "GET /doctors/{username}/availability",
                "set_availability": "POST /doctors/availability",
                "find_match": "POST /doctors/find-match",
                "list_requests": "GET /requests",
                "create_request": "POST /requests",
                "get_request": "GET /requests/{request_id}",
                "update_status": "PATCH /requests/{request_id}/status",
                "reassign": "PATCH /requests/{request_id}/reassign",
                "assign_pending": "POST /requests/{request_id}/assign",
                "add_note": "POST /requests/{request_id}/notes",
                "stats": "GET /stats",
            },
        }

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        status_code = status_for_domain_error(exc.error_code)
        logger.warning(
            "Domain error",
            error_code=exc.error_code,
            status_code=status_code,
            error_message=exc.message,
            path=request.url.path,
            request_id=getattr(request.state, "request_id", None),
        )
        record_error(exc.error_code or "DOMAIN_ERROR", exc.message)
        return error_response(request, status_code, exc.error_code or "DOMAIN_ERROR", exc.message, exc.details)

    @app.exception_handler(TeleconsultException)
    async def infrastructure_error_handler(request: Request, exc: TeleconsultException):
        status_code = status_for_infrastructure_error(exc.error_code)
        logger.error(
            "Infrastructure error",
            error_code=exc.error_code,
            status_code=status_code,
            error_message=exc.message,
            path=request.url.path,
            request_id=getattr(request.state, "request_id", None),
        )
        record_error(exc.error_code or "INTERNAL_ERROR", exc.message)
        return error_response(request, status_code, exc.error_code or "INTERNAL_ERROR", exc.message, exc.details)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return error_response(request, 422, "VALIDATION_ERROR", str(exc))

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        req_id = getattr(request.state, "request_id", None)
        logging.getLogger("teleconsult").error(
            f"APIError: {exc.code} ({exc.http_status}) {exc.message} | request_id={req_id}"
        )
        return error_response(request, exc.http_status, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def pydantic_error_handler(request: Request, exc: RequestValidationError):
        req_id = getattr(request.state, "request_id", None)
        error_details = exc.errors()
        logger.warning(
            f"ValidationError on {request.method} {request.url.path}",
            errors=error_details,
            request_id=req_id,
        )

        error_messages = []
        for error in error_details:
            loc = " -> ".join(str(x) for x in error.get("loc", []))
            msg = error.get("msg", "Validation error")
            error_messages.append(f"{loc}: {msg}")

        return error_response(
            request,
            422,
            "INVALID_INPUT",
            f"Input validation failed: {'; '.join(error_messages)}",
            {"errors": [{k: v for k, v in e.items() if k != "ctx"} for e in error_details], "path": request.url.path},
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        req_id = getattr(request.state, "request_id", None)
        logger.error("Unhandled error", exc_info=True, error_type=type(exc).__name__, request_id=req_id)
        return error_response(
            request,
            500,
            "INTERNAL_ERROR",
            "An unexpected error has occurred. Please try again later.",
        )

    return app


# Create the app instance
app = create_app()
