"""Booking lifecycle controller implementing the reservation use cases."""

from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import UUID

from ..dto.booking_event import BookingEvent, BookingEventKind, EventPublisher
from ..dto.booking_update import BookingUpdate, MutationResult
from ..ports.repositories import BookingRepository, ServiceCatalog
from .authorization import AuthorizationGate, Decision, DenyReason
from ...domain.entities.booking import Booking, BookingStatus, utc_now
from ...domain.entities.principal import Principal
from ...domain.exceptions import (
    ForbiddenError,
    InvalidReferenceError,
    NotFoundError,
    TerminalStateError,
    ValidationError,
)
from ...domain.value_objects.booking_changes import BookingChangeSet, FieldChange
from ...domain.value_objects.booking_history import StatusChange
from ...infrastructure.logging import (
    get_logger,
    log_booking_transition,
    log_business_rule_violation
)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BookingService:
    """Application service driving the booking state machine.

    Every mutation goes through one conditional repository write guarded by
    the status read at decision time. Accepted mutations are handed to the
    event publisher; the publisher runs notification and audit work outside
    the caller's request.
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        service_catalog: ServiceCatalog,
        publish: EventPublisher,
        authorization_gate: Optional[AuthorizationGate] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._booking_repository = booking_repository
        self._service_catalog = service_catalog
        self._publish = publish
        self._gate = authorization_gate or AuthorizationGate()
        self._clock = clock
        self._logger = get_logger(__name__)

    async def create_booking(
        self,
        principal: Principal,
        service_id: UUID,
        scheduled_at: datetime,
        note: Optional[str] = None
    ) -> Booking:
        """Book a catalog service for the acting customer."""
        if service_id is None:
            raise ValidationError("Service ID is required")
        if scheduled_at is None:
            raise ValidationError("Scheduled date is required")
        if not principal.is_active:
            raise ForbiddenError("Inactive accounts cannot create bookings",
                                 reason=DenyReason.INACTIVE_PRINCIPAL.value)

        now = self._clock()
        scheduled_at = self._validate_schedule(scheduled_at, now)

        service = await self._service_catalog.find_by_id(service_id)
        if service is None or not service.is_active:
            raise InvalidReferenceError(f"Service not found or inactive: {service_id}")

        booking = Booking.open(
            customer_id=principal.id,
            provider_id=service.provider_id,
            service_id=service.id,
            scheduled_at=scheduled_at,
            price=service.price,
            note=note,
            now=now
        )
        saved = await self._booking_repository.add(booking)

        change_set = BookingChangeSet(
            booking_id=saved.id,
            changed_at=now,
            changed_by=principal.id,
            changes=(
                FieldChange("status", None, BookingStatus.PENDING),
                FieldChange("service_id", None, service.id),
                FieldChange("amount", None, service.price),
                FieldChange("scheduled_at", None, scheduled_at),
            ),
            history_entry=saved.status_history[0]
        )
        log_booking_transition(self._logger, saved.id, None, BookingStatus.PENDING.value, principal.id)
        self._emit(BookingEvent(
            kind=BookingEventKind.CREATED,
            after=saved.snapshot(),
            actor_id=principal.id,
            change_set=change_set
        ))
        return saved

    async def request_transition(
        self,
        booking_id: UUID,
        principal: Principal,
        target_status: Optional[BookingStatus],
        update: Optional[BookingUpdate] = None
    ) -> MutationResult:
        """Move a booking to ``target_status`` and apply permitted field updates.

        A request for the booking's current status with no field updates is
        an idempotent no-op.

        Raises:
            NotFoundError: the booking does not exist
            ForbiddenError: the authorization gate denied the request
            TerminalStateError: the booking is already completed or cancelled
            ConflictError: another writer moved the booking first
        """
        update = update or BookingUpdate()
        booking = await self._load(booking_id)

        decision = self._gate.decide(principal, booking, target_status)
        if not decision.allowed:
            raise self._denied(decision, principal, booking, target_status)

        now = self._clock()
        changes = []
        history_entry = None
        if target_status is not None and target_status != booking.status:
            changes.append(FieldChange("status", booking.status, target_status))
            history_entry = StatusChange(target_status, now, principal.id)
        changes.extend(self._field_changes(decision, principal, booking, update, now))

        if not changes:
            self._logger.debug(
                "Booking request is a no-op",
                extra={"booking_id": str(booking.id), "status": booking.status.value}
            )
            return MutationResult(booking)

        change_set = BookingChangeSet(
            booking_id=booking.id,
            changed_at=now,
            changed_by=principal.id,
            expected_status=booking.status,
            changes=tuple(changes),
            history_entry=history_entry
        )
        updated = await self._booking_repository.apply_changes(change_set)

        if change_set.status_changed:
            log_booking_transition(
                self._logger, booking.id, booking.status.value, target_status.value, principal.id
            )
        kind = BookingEventKind.STATUS_CHANGED if change_set.status_changed else BookingEventKind.UPDATED
        self._emit(BookingEvent(
            kind=kind,
            after=updated.snapshot(),
            actor_id=principal.id,
            change_set=change_set,
            before=booking
        ))
        return MutationResult(updated, change_set)

    async def cancel_booking(self, booking_id: UUID, principal: Principal) -> MutationResult:
        """Cancel a booking.

        Completed bookings raise ``TerminalStateError`` rather than a generic
        authorization failure.
        """
        return await self.request_transition(booking_id, principal, BookingStatus.CANCELLED)

    async def annotate_booking(
        self,
        booking_id: UUID,
        principal: Principal,
        update: BookingUpdate
    ) -> MutationResult:
        """Update notes or schedule without changing status."""
        if update.is_empty:
            raise ValidationError("At least one field must be provided")
        return await self.request_transition(booking_id, principal, None, update)

    async def get_booking(self, booking_id: UUID, principal: Principal) -> Booking:
        """Get a booking visible to the principal."""
        booking = await self._load(booking_id)
        if not self._gate.can_view(principal, booking):
            raise ForbiddenError("You do not have access to this booking",
                                 reason=DenyReason.INSUFFICIENT_ROLE.value)
        return booking

    async def resend_confirmation(self, booking_id: UUID, principal: Principal) -> Booking:
        """Send the booking confirmation emails again.

        Status and history are left untouched. The emails go out in the
        background and add a new notification ledger entry.
        """
        booking = await self.get_booking(booking_id, principal)
        change_set = BookingChangeSet(
            booking_id=booking.id,
            changed_at=self._clock(),
            changed_by=principal.id
        )
        self._logger.info(
            "Booking confirmation resend requested",
            extra={"booking_id": str(booking.id), "principal_id": str(principal.id)}
        )
        self._emit(BookingEvent(
            kind=BookingEventKind.CONFIRMATION_RESENT,
            after=booking.snapshot(),
            actor_id=principal.id,
            change_set=change_set
        ))
        return booking

    async def poll_changes(self, principal: Principal, since: datetime) -> List[Booking]:
        """Get bookings whose status changed at or after ``since``."""
        if since is None:
            raise ValidationError("The since timestamp is required")
        if not principal.is_active:
            raise ForbiddenError("Inactive accounts cannot read bookings",
                                 reason=DenyReason.INACTIVE_PRINCIPAL.value)

        party_id = None if principal.is_admin else principal.id
        return await self._booking_repository.find_changed_since(ensure_aware(since), party_id)

    async def _load(self, booking_id: UUID) -> Booking:
        booking = await self._booking_repository.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError(booking_id)
        return booking

    def _field_changes(
        self,
        decision: Decision,
        principal: Principal,
        booking: Booking,
        update: BookingUpdate,
        now: datetime
    ) -> List[FieldChange]:
        changes = []
        for field_name, value in update.requested().items():
            if not decision.may_write(field_name):
                log_business_rule_violation(
                    self._logger,
                    "field_write_scope",
                    f"{principal.role.value} may not write {field_name}",
                    booking_id=str(booking.id),
                    principal_id=str(principal.id)
                )
                raise ForbiddenError(f"You may not change {field_name} on this booking",
                                     reason=DenyReason.INSUFFICIENT_ROLE.value)
            if field_name == "scheduled_at":
                value = self._validate_schedule(value, now)
            before = getattr(booking, field_name)
            if before != value:
                changes.append(FieldChange(field_name, before, value))
        return changes

    def _validate_schedule(self, scheduled_at: datetime, now: datetime) -> datetime:
        scheduled_at = ensure_aware(scheduled_at)
        if scheduled_at <= now:
            raise ValidationError("Appointment must be scheduled for a future date")
        return scheduled_at

    def _denied(
        self,
        decision: Decision,
        principal: Principal,
        booking: Booking,
        target_status: Optional[BookingStatus]
    ) -> Exception:
        target = target_status.value if target_status else "none"
        log_business_rule_violation(
            self._logger,
            decision.reason.value,
            f"{principal.role.value} requested {booking.status.value} -> {target}",
            booking_id=str(booking.id),
            principal_id=str(principal.id)
        )
        if decision.reason is DenyReason.TERMINAL_STATE:
            return TerminalStateError(
                f"Booking is {booking.status.value} and can no longer change status"
            )
        return ForbiddenError(
            f"Not allowed to move booking from {booking.status.value} to {target}",
            reason=decision.reason.value
        )

    def _emit(self, event: BookingEvent) -> None:
        # The write has already succeeded; publishing must not change the outcome.
        try:
            self._publish(event)
        except Exception:
            self._logger.exception(
                "Failed to publish booking event",
                extra={"booking_id": str(event.booking_id), "event_kind": event.kind.value}
            )
