"""In-memory repository implementations for testing and development."""

import copy
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from ...application.ports.repositories import (
    AuditRepository,
    BookingRepository,
    PrincipalRepository,
    ServiceCatalog
)
from ...domain.entities.audit_record import AuditQuery, AuditRecord
from ...domain.entities.booking import Booking
from ...domain.entities.principal import Principal, PrincipalRole
from ...domain.entities.service_offering import ServiceOffering
from ...domain.exceptions import ConflictError, NotFoundError
from ...domain.value_objects.booking_changes import BookingChangeSet
from ...domain.value_objects.booking_history import NotificationLedgerEntry


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of booking repository.

    Stored bookings are private copies; the check and the write of
    ``apply_changes`` run without an intervening await, which makes them one
    atomic step on the event loop.
    """

    def __init__(self):
        self._bookings: Dict[UUID, Booking] = {}

    async def add(self, booking: Booking) -> Booking:
        """Save a new booking."""
        self._bookings[booking.id] = copy.deepcopy(booking)
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID."""
        booking = self._bookings.get(booking_id)
        return copy.deepcopy(booking) if booking else None

    async def apply_changes(self, change_set: BookingChangeSet) -> Booking:
        """Apply a change set if the stored status is still the expected one."""
        stored = self._bookings.get(change_set.booking_id)
        if stored is None:
            raise NotFoundError(change_set.booking_id)
        if change_set.expected_status is not None and stored.status != change_set.expected_status:
            raise ConflictError(change_set.booking_id)

        updated = copy.deepcopy(stored)
        if change_set.status_changed:
            entry = change_set.history_entry
            updated.apply_status(entry.status, entry.changed_at, entry.changed_by)
        updated.apply_fields(change_set.field_values, change_set.changed_at)

        self._bookings[updated.id] = updated
        return copy.deepcopy(updated)

    async def append_notification(self, booking_id: UUID, entry: NotificationLedgerEntry) -> bool:
        """Append a notification ledger entry."""
        stored = self._bookings.get(booking_id)
        if stored is None:
            return False
        stored.record_notification(entry)
        return True

    async def find_changed_since(self, since: datetime, party_id: Optional[UUID] = None) -> List[Booking]:
        """Find bookings whose last transition is at or after ``since``."""
        bookings = [
            booking for booking in self._bookings.values()
            if booking.last_transition_at >= since
            and (party_id is None or booking.is_party(party_id))
        ]
        bookings.sort(key=lambda booking: booking.last_transition_at)
        return [copy.deepcopy(booking) for booking in bookings]

    def clear(self) -> None:
        """Clear all bookings (for testing)."""
        self._bookings.clear()


class InMemoryServiceCatalog(ServiceCatalog):
    """In-memory implementation of the service catalog."""

    def __init__(self):
        self._services: Dict[UUID, ServiceOffering] = {}

    def add_service(self, service: ServiceOffering) -> ServiceOffering:
        """Register a service."""
        self._services[service.id] = service
        return service

    def create_service(
        self,
        provider_id: UUID,
        title: str = "Standard Service",
        price: Decimal = Decimal("100.00"),
        is_active: bool = True
    ) -> ServiceOffering:
        """Register a new service owned by the provider."""
        return self.add_service(ServiceOffering(
            id=uuid4(),
            provider_id=provider_id,
            title=title,
            price=price,
            is_active=is_active
        ))

    async def find_by_id(self, service_id: UUID) -> Optional[ServiceOffering]:
        """Find service by ID."""
        return self._services.get(service_id)


class InMemoryPrincipalRepository(PrincipalRepository):
    """In-memory implementation of principal lookup."""

    def __init__(self):
        self._principals: Dict[UUID, Principal] = {}

    def add_principal(self, principal: Principal) -> Principal:
        """Register a principal."""
        self._principals[principal.id] = principal
        return principal

    def create_principal(
        self,
        role: PrincipalRole,
        email: Optional[str] = None,
        name: Optional[str] = None,
        is_active: bool = True
    ) -> Principal:
        """Register a new principal."""
        return self.add_principal(Principal(role=role, email=email, name=name, is_active=is_active))

    async def find_by_id(self, principal_id: UUID) -> Optional[Principal]:
        """Find principal by ID."""
        return self._principals.get(principal_id)


class InMemoryAuditRepository(AuditRepository):
    """In-memory append-only audit store."""

    def __init__(self):
        self._records: List[AuditRecord] = []

    async def add(self, record: AuditRecord) -> AuditRecord:
        """Append an audit record."""
        self._records.append(record)
        return record

    async def find(self, query: AuditQuery) -> List[AuditRecord]:
        """Find audit records matching the query, newest first."""
        matching = [record for record in self._records if query.matches(record)]
        matching.sort(key=lambda record: record.occurred_at, reverse=True)
        return matching[query.offset:query.offset + query.limit]

    @property
    def records(self) -> List[AuditRecord]:
        """Get a copy of all records in append order."""
        return list(self._records)
