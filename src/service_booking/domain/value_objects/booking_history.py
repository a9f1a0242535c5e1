"""Append-only history value objects attached to a booking."""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ..entities.booking import BookingStatus


@dataclass(frozen=True)
class StatusChange:
    """Immutable entry of a booking's status history."""

    status: "BookingStatus"
    changed_at: datetime
    changed_by: UUID


@dataclass(frozen=True)
class NotificationLedgerEntry:
    """Outcome of one notification event for both audiences."""

    event_type: str
    attempted_at: datetime
    customer_delivered: bool = False
    provider_delivered: bool = False

    def __post_init__(self) -> None:
        """Validate ledger entry."""
        if not self.event_type or not self.event_type.strip():
            raise ValueError("Event type cannot be empty")

    @property
    def fully_delivered(self) -> bool:
        """Check if both audiences received the message."""
        return self.customer_delivered and self.provider_delivered
