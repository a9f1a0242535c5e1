"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from ....infrastructure.services import ServiceFactory, get_service_factory

router = APIRouter()


@router.get("/health")
async def health_check(factory: ServiceFactory = Depends(get_service_factory)) -> dict[str, Any]:
    """Health check endpoint."""
    side_effects = factory.side_effects
    return {
        "status": "healthy",
        "service": "service-booking-api",
        "side_effects": {
            "running": side_effects.is_running,
            "pending": side_effects.pending,
            "dropped": side_effects.dropped
        }
    }


@router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Service Booking API", "version": "0.1.0"}
