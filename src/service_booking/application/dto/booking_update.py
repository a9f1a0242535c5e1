"""Inputs and outputs of booking mutations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from ...domain.entities.booking import Booking
from ...domain.value_objects.booking_changes import BookingChangeSet


@dataclass(frozen=True)
class BookingUpdate:
    """Requested field updates; ``None`` leaves a field untouched."""

    customer_note: Optional[str] = None
    provider_note: Optional[str] = None
    scheduled_at: Optional[datetime] = None

    def requested(self) -> Dict[str, object]:
        """Get the fields the caller asked to set."""
        values = {
            "customer_note": self.customer_note,
            "provider_note": self.provider_note,
            "scheduled_at": self.scheduled_at,
        }
        return {name: value for name, value in values.items() if value is not None}

    @property
    def is_empty(self) -> bool:
        """Check if no field is requested."""
        return not self.requested()


@dataclass(frozen=True)
class MutationResult:
    """Booking after a lifecycle request together with what changed."""

    booking: Booking
    change_set: Optional[BookingChangeSet] = None

    @property
    def changed(self) -> bool:
        """Check if the request mutated the booking."""
        return self.change_set is not None
