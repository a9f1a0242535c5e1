"""Booking lifecycle endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ....application.dto.booking_update import BookingUpdate
from ....domain.entities.principal import Principal
from ....infrastructure.services import ServiceFactory, get_service_factory
from ..middleware.auth import get_current_principal
from ..schemas.booking_schemas import (
    BookingChangesResponse,
    BookingMutationResponse,
    BookingResponse,
    CreateBookingRequest,
    TransitionRequest,
    UpdateBookingRequest
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: CreateBookingRequest,
    principal: Principal = Depends(get_current_principal),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Book a catalog service for the authenticated customer."""
    async with factory.get_booking_service() as booking_service:
        booking = await booking_service.create_booking(
            principal=principal,
            service_id=request.service_id,
            scheduled_at=request.scheduled_at,
            note=request.note
        )
    return BookingResponse.from_entity(booking)


@router.get("/changes")
async def get_booking_changes(
    since: datetime = Query(..., description="Return bookings whose status changed at or after this time"),
    principal: Principal = Depends(get_current_principal),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingChangesResponse:
    """Poll bookings with recent status changes."""
    async with factory.get_booking_service() as booking_service:
        bookings = await booking_service.poll_changes(principal, since)
    return BookingChangesResponse(
        since=since,
        bookings=[BookingResponse.from_entity(booking) for booking in bookings],
        count=len(bookings)
    )


@router.get("/{booking_id}")
async def get_booking(
    booking_id: UUID,
    principal: Principal = Depends(get_current_principal),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Get booking by ID."""
    async with factory.get_booking_service() as booking_service:
        booking = await booking_service.get_booking(booking_id, principal)
    return BookingResponse.from_entity(booking)


@router.post("/{booking_id}/transitions")
async def request_transition(
    booking_id: UUID,
    request: TransitionRequest,
    principal: Principal = Depends(get_current_principal),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingMutationResponse:
    """Move a booking to a new status, optionally updating notes and schedule."""
    async with factory.get_booking_service() as booking_service:
        result = await booking_service.request_transition(
            booking_id, principal, request.target_status, request.to_update()
        )
    return BookingMutationResponse.from_result(result)


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: UUID,
    principal: Principal = Depends(get_current_principal),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingMutationResponse:
    """Cancel a booking."""
    async with factory.get_booking_service() as booking_service:
        result = await booking_service.cancel_booking(booking_id, principal)
    return BookingMutationResponse.from_result(result)


@router.patch("/{booking_id}")
async def update_booking(
    booking_id: UUID,
    request: UpdateBookingRequest,
    principal: Principal = Depends(get_current_principal),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingMutationResponse:
    """Update notes or schedule without changing status."""
    update: BookingUpdate = request.to_update()
    async with factory.get_booking_service() as booking_service:
        result = await booking_service.annotate_booking(booking_id, principal, update)
    return BookingMutationResponse.from_result(result)


@router.post("/{booking_id}/send-confirmation", status_code=status.HTTP_202_ACCEPTED)
async def send_confirmation(
    booking_id: UUID,
    principal: Principal = Depends(get_current_principal),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Send the confirmation emails for a booking again."""
    async with factory.get_booking_service() as booking_service:
        booking = await booking_service.resend_confirmation(booking_id, principal)
    return BookingResponse.from_entity(booking)
