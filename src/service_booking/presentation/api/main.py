"""FastAPI main application module."""

from contextlib import asynccontextmanager
from typing import Dict, Optional, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ...domain.exceptions import (
    BookingError,
    ConflictError,
    ForbiddenError,
    InvalidReferenceError,
    NotFoundError,
    TerminalStateError,
    ValidationError
)
from ...infrastructure.logging import get_logger, setup_logging_from_env
from ...infrastructure.services import ServiceFactory, get_service_factory
from .routes import audit, bookings, health
from .config import get_settings
from .middleware.logging import RequestResponseLoggingMiddleware


logger = get_logger(__name__)

ERROR_STATUS_CODES: Dict[Type[BookingError], int] = {
    ValidationError: 400,
    ForbiddenError: 403,
    NotFoundError: 404,
    TerminalStateError: 409,
    ConflictError: 409,
    InvalidReferenceError: 422,
}


def add_exception_handlers(app: FastAPI) -> None:
    """Add custom exception handlers to the FastAPI application."""

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        """Map booking lifecycle errors to HTTP responses."""
        status_code = ERROR_STATUS_CODES.get(type(exc), 400)
        logger.warning(
            f"Booking error on {request.url.path}: {str(exc)}",
            extra={"error_type": exc.error_type, "status_code": status_code}
        )
        content = {
            "detail": str(exc),
            "type": exc.error_type
        }
        reason = getattr(exc, "reason", None)
        if reason:
            content["reason"] = reason
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle validation errors from value objects."""
        logger.warning(f"Validation error on {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=400,
            content={
                "detail": str(exc),
                "type": "validation_error"
            }
        )

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(request: Request, exc: RuntimeError):
        """Handle runtime errors."""
        logger.error(f"Runtime error on {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error occurred",
                "type": "runtime_error"
            }
        )


def create_app(factory: Optional[ServiceFactory] = None) -> FastAPI:
    """Create and configure FastAPI application.

    ``factory`` replaces the global service factory, which is how tests run
    the API over in-memory repositories.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        setup_logging_from_env(settings.log_level)
        service_factory = factory or get_service_factory()
        logger.info("Starting Service Booking API")
        await service_factory.initialize()

        yield

        logger.info("Shutting down Service Booking API")
        await service_factory.shutdown()

    app = FastAPI(
        title="Service Booking API",
        description="API for booking marketplace services with a guarded status lifecycle",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    if factory is not None:
        app.dependency_overrides[get_service_factory] = lambda: factory

    add_exception_handlers(app)

    app.add_middleware(RequestResponseLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=settings.allowed_methods,
        allow_headers=settings.allowed_headers,
    )

    app.include_router(health.router, tags=["health"])
    app.include_router(
        bookings.router,
        prefix=f"{settings.api_prefix}/bookings",
        tags=["bookings"]
    )
    app.include_router(
        audit.router,
        prefix=f"{settings.api_prefix}/audit-logs",
        tags=["audit"]
    )

    return app


# Create app instance
app = create_app()
