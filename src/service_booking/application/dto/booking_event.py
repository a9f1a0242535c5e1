"""Lifecycle events handed from the controller to side-effect handlers."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from ...domain.entities.booking import Booking
from ...domain.value_objects.booking_changes import BookingChangeSet


class BookingEventKind(Enum):
    """Kind of booking lifecycle event."""
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    UPDATED = "updated"
    CONFIRMATION_RESENT = "confirmation_resent"


@dataclass(frozen=True)
class BookingEvent:
    """Pre and post snapshots of one accepted mutation."""

    kind: BookingEventKind
    after: Booking
    actor_id: UUID
    change_set: BookingChangeSet
    before: Optional[Booking] = None

    @property
    def booking_id(self) -> UUID:
        """Get the affected booking ID."""
        return self.after.id

    @property
    def occurred_at(self) -> datetime:
        """Get mutation timestamp."""
        return self.change_set.changed_at


EventPublisher = Callable[[BookingEvent], None]
