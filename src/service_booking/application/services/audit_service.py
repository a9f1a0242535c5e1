"""Audit trail recording and read access."""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from ..dto.booking_event import BookingEvent, BookingEventKind
from ..ports.repositories import AuditRepository
from ...domain.entities.audit_record import AuditAction, AuditQuery, AuditRecord
from ...domain.entities.booking import BookingStatus, utc_now
from ...domain.entities.principal import Principal
from ...domain.exceptions import ForbiddenError
from ...infrastructure.logging import get_logger


BOOKING_ENTITY = "Booking"

STATUS_ACTIONS = {
    BookingStatus.CONFIRMED: AuditAction.BOOKING_CONFIRMED,
    BookingStatus.COMPLETED: AuditAction.BOOKING_COMPLETED,
    BookingStatus.CANCELLED: AuditAction.BOOKING_CANCELLED,
}


def action_for(event: BookingEvent) -> AuditAction:
    """Map a lifecycle event to its audit action."""
    if event.kind is BookingEventKind.CREATED:
        return AuditAction.BOOKING_CREATED
    if event.kind is BookingEventKind.STATUS_CHANGED:
        return STATUS_ACTIONS.get(event.after.status, AuditAction.BOOKING_UPDATED)
    if event.kind is BookingEventKind.CONFIRMATION_RESENT:
        return AuditAction.BOOKING_CONFIRMATION_SENT
    return AuditAction.BOOKING_UPDATED


class AuditRecorder:
    """Appends one immutable audit record per accepted mutation.

    Recording is observational: failures are logged and never reach the
    caller of the mutating operation.
    """

    def __init__(self, audit_repository: AuditRepository, clock: Callable[[], datetime] = utc_now):
        self._audit_repository = audit_repository
        self._clock = clock
        self._logger = get_logger(__name__)

    async def record(
        self,
        actor_id: UUID,
        action: AuditAction,
        entity_id: UUID,
        entity_type: str,
        details: Optional[Dict[str, Any]] = None,
        occurred_at: Optional[datetime] = None
    ) -> None:
        """Append an audit record."""
        try:
            await self._audit_repository.add(AuditRecord(
                actor_id=actor_id,
                action=action,
                entity_id=entity_id,
                entity_type=entity_type,
                details=details or {},
                occurred_at=occurred_at or self._clock()
            ))
        except Exception:
            self._logger.exception(
                "Audit record write failed",
                extra={
                    "actor_id": str(actor_id),
                    "audit_action": action.value,
                    "entity_id": str(entity_id),
                    "entity_type": entity_type
                }
            )

    async def record_event(self, event: BookingEvent) -> None:
        """Append the audit record of a lifecycle event."""
        booking = event.after
        details = {
            "changes": event.change_set.to_details(),
            "status": booking.status.value,
            "customer_id": str(booking.customer_id),
            "provider_id": str(booking.provider_id),
            "service_id": str(booking.service_id),
        }
        await self.record(
            actor_id=event.actor_id,
            action=action_for(event),
            entity_id=booking.id,
            entity_type=BOOKING_ENTITY,
            details=details,
            occurred_at=event.occurred_at
        )


class AuditLogReader:
    """Read-only access to audit records for administrators."""

    def __init__(self, audit_repository: AuditRepository):
        self._audit_repository = audit_repository

    async def list_records(self, principal: Principal, query: AuditQuery) -> List[AuditRecord]:
        """List audit records matching the query."""
        if not (principal.is_active and principal.is_admin):
            raise ForbiddenError("Administrator privileges required", reason="insufficient_role")
        return await self._audit_repository.find(query)
