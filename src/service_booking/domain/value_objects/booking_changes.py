"""Typed before/after change set for booking mutations."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING
from uuid import UUID

from .booking_history import StatusChange

if TYPE_CHECKING:
    from ..entities.booking import BookingStatus


def _serialize(value: Any) -> Any:
    """Convert a field value into a JSON friendly value."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return value


@dataclass(frozen=True)
class FieldChange:
    """Before and after values of a single booking field."""

    field: str
    before: Any
    after: Any

    def to_dict(self) -> Dict[str, Any]:
        """Get serializable representation."""
        return {"before": _serialize(self.before), "after": _serialize(self.after)}


@dataclass(frozen=True)
class BookingChangeSet:
    """All changes of one accepted booking mutation.

    Built once by the lifecycle controller and passed unchanged to the
    repository write, the audit trail and the API response.
    """

    booking_id: UUID
    changed_at: datetime
    changed_by: UUID
    expected_status: Optional["BookingStatus"] = None
    changes: Tuple[FieldChange, ...] = field(default_factory=tuple)
    history_entry: Optional[StatusChange] = None

    def __post_init__(self) -> None:
        """Validate change set consistency."""
        names = [change.field for change in self.changes]
        if len(names) != len(set(names)):
            raise ValueError("Each field may change at most once per change set")
        if self.history_entry is not None and self.get("status") is None:
            raise ValueError("History entry requires a status change")

    def get(self, field_name: str) -> Optional[FieldChange]:
        """Get the change of a field, if any."""
        for change in self.changes:
            if change.field == field_name:
                return change
        return None

    @property
    def status_changed(self) -> bool:
        """Check if the change set moves the booking to a new status."""
        return self.history_entry is not None

    @property
    def new_status(self) -> Optional["BookingStatus"]:
        """Get the target status of a transition."""
        change = self.get("status")
        return change.after if change else None

    @property
    def field_values(self) -> Dict[str, Any]:
        """Get new values of non-status fields."""
        return {change.field: change.after for change in self.changes if change.field != "status"}

    @property
    def is_empty(self) -> bool:
        """Check if nothing changes."""
        return not self.changes

    def to_details(self) -> Dict[str, Any]:
        """Get serializable diff payload keyed by field name."""
        return {change.field: change.to_dict() for change in self.changes}
