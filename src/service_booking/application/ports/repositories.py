"""Port interfaces for repositories (Dependency Inversion Principle)."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ...domain.entities.audit_record import AuditQuery, AuditRecord
    from ...domain.entities.booking import Booking
    from ...domain.entities.principal import Principal
    from ...domain.entities.service_offering import ServiceOffering
    from ...domain.value_objects.booking_changes import BookingChangeSet
    from ...domain.value_objects.booking_history import NotificationLedgerEntry


class BookingRepository(ABC):
    """Port interface for booking repository."""

    @abstractmethod
    async def add(self, booking: "Booking") -> "Booking":
        """Persist a newly created booking."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional["Booking"]:
        """Find booking by ID, including history and ledger."""
        raise NotImplementedError

    @abstractmethod
    async def apply_changes(self, change_set: "BookingChangeSet") -> "Booking":
        """Atomically apply a change set if the stored status still equals
        ``change_set.expected_status``.

        Raises:
            ConflictError: another writer moved the booking first
            NotFoundError: the booking does not exist
        """
        raise NotImplementedError

    @abstractmethod
    async def append_notification(self, booking_id: UUID, entry: "NotificationLedgerEntry") -> bool:
        """Append a notification ledger entry without touching other fields."""
        raise NotImplementedError

    @abstractmethod
    async def find_changed_since(self, since: datetime, party_id: Optional[UUID] = None) -> List["Booking"]:
        """Find bookings whose last transition is at or after ``since``.

        When ``party_id`` is given only bookings where it is the customer or
        the provider are returned.
        """
        raise NotImplementedError


class ServiceCatalog(ABC):
    """Port interface for the external service catalog."""

    @abstractmethod
    async def find_by_id(self, service_id: UUID) -> Optional["ServiceOffering"]:
        """Find service by ID."""
        raise NotImplementedError


class PrincipalRepository(ABC):
    """Port interface for principal lookup."""

    @abstractmethod
    async def find_by_id(self, principal_id: UUID) -> Optional["Principal"]:
        """Find principal by ID."""
        raise NotImplementedError


class AuditRepository(ABC):
    """Port interface for the append-only audit store."""

    @abstractmethod
    async def add(self, record: "AuditRecord") -> "AuditRecord":
        """Append an audit record."""
        raise NotImplementedError

    @abstractmethod
    async def find(self, query: "AuditQuery") -> List["AuditRecord"]:
        """Find audit records matching the query, newest first."""
        raise NotImplementedError
