"""Pydantic schemas for booking API requests and responses."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ....application.dto.booking_update import BookingUpdate, MutationResult
from ....domain.entities.audit_record import AuditAction, AuditRecord
from ....domain.entities.booking import Booking, BookingStatus

NOTE_MAX_LENGTH = 2000


def _clean_note(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip()


class CreateBookingRequest(BaseModel):
    """Request model for creating a booking."""
    service_id: UUID = Field(..., description="Catalog service to book")
    scheduled_at: datetime = Field(..., description="Desired appointment date and time")
    note: Optional[str] = Field(None, max_length=NOTE_MAX_LENGTH, description="Note from the customer")

    @field_validator('note')
    @classmethod
    def validate_note(cls, v):
        """Strip surrounding whitespace."""
        return _clean_note(v)


class UpdateBookingRequest(BaseModel):
    """Request model for note and schedule updates."""
    customer_note: Optional[str] = Field(None, max_length=NOTE_MAX_LENGTH)
    provider_note: Optional[str] = Field(None, max_length=NOTE_MAX_LENGTH)
    scheduled_at: Optional[datetime] = None

    @field_validator('customer_note', 'provider_note')
    @classmethod
    def validate_notes(cls, v):
        """Strip surrounding whitespace."""
        return _clean_note(v)

    def to_update(self) -> BookingUpdate:
        """Convert to the application update object."""
        return BookingUpdate(
            customer_note=self.customer_note,
            provider_note=self.provider_note,
            scheduled_at=self.scheduled_at
        )


class TransitionRequest(UpdateBookingRequest):
    """Request model for a status transition with optional field updates."""
    target_status: BookingStatus = Field(..., description="Requested booking status")


class StatusChangeResponse(BaseModel):
    """Status history entry."""
    status: BookingStatus
    changed_at: datetime
    changed_by: UUID


class NotificationLedgerResponse(BaseModel):
    """Notification ledger entry."""
    event_type: str
    attempted_at: datetime
    customer_delivered: bool
    provider_delivered: bool


class BookingResponse(BaseModel):
    """Response model for a booking."""
    id: UUID
    customer_id: UUID
    provider_id: UUID
    service_id: UUID
    scheduled_at: datetime
    status: BookingStatus
    amount: Decimal
    total_amount: Decimal
    customer_note: Optional[str] = None
    provider_note: Optional[str] = None
    status_history: List[StatusChangeResponse]
    notifications: List[NotificationLedgerResponse]
    last_transition_at: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingResponse":
        """Build response from a booking entity."""
        return cls(
            id=booking.id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            service_id=booking.service_id,
            scheduled_at=booking.scheduled_at,
            status=booking.status,
            amount=booking.amount,
            total_amount=booking.total_amount,
            customer_note=booking.customer_note,
            provider_note=booking.provider_note,
            status_history=[
                StatusChangeResponse(status=entry.status, changed_at=entry.changed_at, changed_by=entry.changed_by)
                for entry in booking.status_history
            ],
            notifications=[
                NotificationLedgerResponse(
                    event_type=entry.event_type,
                    attempted_at=entry.attempted_at,
                    customer_delivered=entry.customer_delivered,
                    provider_delivered=entry.provider_delivered
                )
                for entry in booking.notification_ledger
            ],
            last_transition_at=booking.last_transition_at,
            created_at=booking.created_at,
            updated_at=booking.updated_at
        )


class FieldChangeResponse(BaseModel):
    """Before and after values of one field."""
    field: str
    before: Any = None
    after: Any = None


class BookingMutationResponse(BaseModel):
    """Booking after a mutation plus the changes applied."""
    booking: BookingResponse
    changed: bool
    changes: List[FieldChangeResponse]

    @classmethod
    def from_result(cls, result: MutationResult) -> "BookingMutationResponse":
        """Build response from a mutation result."""
        changes = []
        if result.change_set is not None:
            changes = [
                FieldChangeResponse(field=change.field, **change.to_dict())
                for change in result.change_set.changes
            ]
        return cls(
            booking=BookingResponse.from_entity(result.booking),
            changed=result.changed,
            changes=changes
        )


class BookingChangesResponse(BaseModel):
    """Bookings whose status changed since a timestamp."""
    since: datetime
    bookings: List[BookingResponse]
    count: int


class AuditRecordResponse(BaseModel):
    """Audit record."""
    id: UUID
    actor_id: UUID
    action: AuditAction
    entity_id: UUID
    entity_type: str
    details: Dict[str, Any]
    occurred_at: datetime

    @classmethod
    def from_record(cls, record: AuditRecord) -> "AuditRecordResponse":
        """Build response from an audit record."""
        return cls(
            id=record.id,
            actor_id=record.actor_id,
            action=record.action,
            entity_id=record.entity_id,
            entity_type=record.entity_type,
            details=record.details,
            occurred_at=record.occurred_at
        )


class AuditLogListResponse(BaseModel):
    """Page of audit records."""
    records: List[AuditRecordResponse]
    count: int
    limit: int
    offset: int
