"""Booking aggregate for service reservations."""

import copy
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import UUID, uuid4

from ..value_objects.booking_history import NotificationLedgerEntry, StatusChange


class BookingStatus(Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def display_name(self) -> str:
        """Get human readable status name."""
        return self.value.capitalize()


# Source status -> allowed target statuses
TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)


def utc_now() -> datetime:
    """Get the current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class Booking:
    """Booking entity representing a customer's reservation of a provider's service."""

    def __init__(
        self,
        customer_id: UUID,
        provider_id: UUID,
        service_id: UUID,
        scheduled_at: datetime,
        amount: Decimal,
        total_amount: Optional[Decimal] = None,
        booking_id: Optional[UUID] = None,
        status: BookingStatus = BookingStatus.PENDING,
        customer_note: Optional[str] = None,
        provider_note: Optional[str] = None,
        status_history: Optional[List[StatusChange]] = None,
        notification_ledger: Optional[List[NotificationLedgerEntry]] = None,
        last_transition_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self._id = booking_id or uuid4()
        self._customer_id = customer_id
        self._provider_id = provider_id
        self._service_id = service_id
        self._scheduled_at = scheduled_at
        self._amount = amount
        self._total_amount = total_amount if total_amount is not None else amount
        self._status = status
        self._customer_note = customer_note
        self._provider_note = provider_note
        self._status_history = list(status_history or [])
        self._notification_ledger = list(notification_ledger or [])
        self._created_at = created_at or utc_now()
        self._updated_at = updated_at or self._created_at
        self._last_transition_at = last_transition_at or self._created_at

    @classmethod
    def open(
        cls,
        customer_id: UUID,
        provider_id: UUID,
        service_id: UUID,
        scheduled_at: datetime,
        price: Decimal,
        note: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> "Booking":
        """Create a new pending booking with its initial history entry."""
        now = now or utc_now()
        return cls(
            customer_id=customer_id,
            provider_id=provider_id,
            service_id=service_id,
            scheduled_at=scheduled_at,
            amount=price,
            total_amount=price,
            status=BookingStatus.PENDING,
            customer_note=note,
            status_history=[StatusChange(BookingStatus.PENDING, now, customer_id)],
            last_transition_at=now,
            created_at=now,
            updated_at=now
        )

    @property
    def id(self) -> UUID:
        """Get booking ID."""
        return self._id

    @property
    def customer_id(self) -> UUID:
        """Get customer ID."""
        return self._customer_id

    @property
    def provider_id(self) -> UUID:
        """Get provider ID."""
        return self._provider_id

    @property
    def service_id(self) -> UUID:
        """Get booked service ID."""
        return self._service_id

    @property
    def scheduled_at(self) -> datetime:
        """Get appointment timestamp."""
        return self._scheduled_at

    @property
    def amount(self) -> Decimal:
        """Get booked amount."""
        return self._amount

    @property
    def total_amount(self) -> Decimal:
        """Get total amount."""
        return self._total_amount

    @property
    def status(self) -> BookingStatus:
        """Get booking status."""
        return self._status

    @property
    def customer_note(self) -> Optional[str]:
        """Get the customer's note."""
        return self._customer_note

    @property
    def provider_note(self) -> Optional[str]:
        """Get the provider's note."""
        return self._provider_note

    @property
    def status_history(self) -> List[StatusChange]:
        """Get a copy of the status history."""
        return list(self._status_history)

    @property
    def notification_ledger(self) -> List[NotificationLedgerEntry]:
        """Get a copy of the notification ledger."""
        return list(self._notification_ledger)

    @property
    def last_transition_at(self) -> datetime:
        """Get timestamp of the most recent status change."""
        return self._last_transition_at

    @property
    def created_at(self) -> datetime:
        """Get creation timestamp."""
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        """Get last update timestamp."""
        return self._updated_at

    @property
    def is_terminal(self) -> bool:
        """Check if the booking accepts no further status changes."""
        return self._status in TERMINAL_STATUSES

    def can_transition_to(self, target: BookingStatus) -> bool:
        """Check if the transition table allows moving to target."""
        return target in TRANSITIONS[self._status]

    def is_party(self, principal_id: UUID) -> bool:
        """Check if the principal is the booking's customer or provider."""
        return principal_id in (self._customer_id, self._provider_id)

    def apply_status(self, status: BookingStatus, changed_at: datetime, changed_by: UUID) -> StatusChange:
        """Apply an accepted status change and return the appended history entry."""
        if not self.can_transition_to(status):
            raise ValueError(
                f"Cannot move booking from {self._status.value} to {status.value}"
            )
        entry = StatusChange(status, changed_at, changed_by)
        self._status = status
        self._status_history.append(entry)
        self._last_transition_at = changed_at
        self._updated_at = changed_at
        return entry

    def apply_fields(self, values: Dict[str, object], changed_at: datetime) -> None:
        """Apply mutable field values (notes and schedule)."""
        for field, value in values.items():
            if field not in MUTABLE_FIELDS:
                raise ValueError(f"Field is not mutable: {field}")
            setattr(self, f"_{field}", value)
        if values:
            self._updated_at = changed_at

    def record_notification(self, entry: NotificationLedgerEntry) -> None:
        """Append a notification ledger entry."""
        self._notification_ledger.append(entry)

    def snapshot(self) -> "Booking":
        """Get an independent copy of this booking."""
        return copy.deepcopy(self)

    def __eq__(self, other: object) -> bool:
        """Check equality based on booking ID."""
        if not isinstance(other, Booking):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        """Hash based on booking ID."""
        return hash(self._id)

    def __str__(self) -> str:
        """String representation."""
        return f"Booking({self._id}, {self._service_id}, {self._status.value})"


MUTABLE_FIELDS: FrozenSet[str] = frozenset({"scheduled_at", "customer_note", "provider_note"})
