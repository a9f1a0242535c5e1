"""Audit record entity."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4


class AuditAction(Enum):
    """Audited booking actions."""
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_UPDATED = "BOOKING_UPDATED"
    BOOKING_CONFIRMATION_SENT = "BOOKING_CONFIRMATION_SENT"


@dataclass(frozen=True)
class AuditRecord:
    """Immutable record of one accepted mutation."""

    actor_id: UUID
    action: AuditAction
    entity_id: UUID
    entity_type: str
    occurred_at: datetime
    details: Dict[str, Any] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class AuditQuery:
    """Filters for listing audit records."""

    actor_id: Optional[UUID] = None
    action: Optional[AuditAction] = None
    entity_id: Optional[UUID] = None
    entity_type: Optional[str] = None
    occurred_from: Optional[datetime] = None
    occurred_to: Optional[datetime] = None
    limit: int = 50
    offset: int = 0

    def __post_init__(self) -> None:
        """Validate paging and window."""
        if self.limit < 1 or self.limit > 500:
            raise ValueError("Limit must be between 1 and 500")
        if self.offset < 0:
            raise ValueError("Offset cannot be negative")
        if self.occurred_from and self.occurred_to and self.occurred_from > self.occurred_to:
            raise ValueError("occurred_from must not be after occurred_to")

    def matches(self, record: AuditRecord) -> bool:
        """Check if a record satisfies every filter."""
        if self.actor_id is not None and record.actor_id != self.actor_id:
            return False
        if self.action is not None and record.action != self.action:
            return False
        if self.entity_id is not None and record.entity_id != self.entity_id:
            return False
        if self.entity_type is not None and record.entity_type != self.entity_type:
            return False
        if self.occurred_from is not None and record.occurred_at < self.occurred_from:
            return False
        if self.occurred_to is not None and record.occurred_at > self.occurred_to:
            return False
        return True
