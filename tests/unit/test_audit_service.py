"""Unit tests for audit recording and listing."""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

from src.service_booking.application.dto.booking_event import BookingEvent, BookingEventKind
from src.service_booking.application.services.audit_service import AuditLogReader, AuditRecorder, action_for
from src.service_booking.domain.entities.audit_record import AuditAction, AuditQuery, AuditRecord
from src.service_booking.domain.entities.booking import BookingStatus
from src.service_booking.domain.exceptions import ForbiddenError
from src.service_booking.domain.value_objects.booking_changes import BookingChangeSet, FieldChange
from src.service_booking.infrastructure.repositories.memory_repositories import InMemoryAuditRepository


def status_event(booking, actor_id, before_status):
    return BookingEvent(
        kind=BookingEventKind.STATUS_CHANGED,
        after=booking,
        actor_id=actor_id,
        change_set=BookingChangeSet(
            booking_id=booking.id,
            changed_at=booking.last_transition_at,
            changed_by=actor_id,
            changes=(FieldChange("status", before_status, booking.status),)
        )
    )


class TestAuditRecorder:
    """Test cases for AuditRecorder."""

    @pytest.mark.parametrize("status,action", [
        (BookingStatus.CONFIRMED, AuditAction.BOOKING_CONFIRMED),
        (BookingStatus.COMPLETED, AuditAction.BOOKING_COMPLETED),
        (BookingStatus.CANCELLED, AuditAction.BOOKING_CANCELLED),
    ])
    def test_status_actions(self, booking_factory, provider, status, action):
        """Test mapping of status changes to audit actions."""
        event = status_event(booking_factory(status), provider.id, BookingStatus.PENDING)

        assert action_for(event) is action

    @pytest.mark.asyncio
    async def test_record_event_stores_diff(self, booking_factory, provider):
        """Test that the change set is recorded unchanged."""
        repository = InMemoryAuditRepository()
        booking = booking_factory(BookingStatus.CONFIRMED)
        event = status_event(booking, provider.id, BookingStatus.PENDING)

        await AuditRecorder(repository).record_event(event)

        [record] = repository.records
        assert record.action is AuditAction.BOOKING_CONFIRMED
        assert record.actor_id == provider.id
        assert record.entity_id == booking.id
        assert record.entity_type == "Booking"
        assert record.occurred_at == booking.last_transition_at
        assert record.details["changes"] == {"status": {"before": "pending", "after": "confirmed"}}

    @pytest.mark.asyncio
    async def test_updated_event_audited(self, booking_factory, admin):
        """Test that field-only updates are audited as BOOKING_UPDATED."""
        repository = InMemoryAuditRepository()
        booking = booking_factory(BookingStatus.COMPLETED)
        event = BookingEvent(
            kind=BookingEventKind.UPDATED,
            after=booking,
            actor_id=admin.id,
            change_set=BookingChangeSet(
                booking_id=booking.id,
                changed_at=booking.updated_at,
                changed_by=admin.id,
                changes=(FieldChange("provider_note", None, "Refunded"),)
            )
        )

        await AuditRecorder(repository).record_event(event)

        assert repository.records[0].action is AuditAction.BOOKING_UPDATED

    @pytest.mark.asyncio
    async def test_confirmation_resend_audited(self, booking_factory, customer, now):
        """Test that a confirmation resend is audited with an empty diff."""
        repository = InMemoryAuditRepository()
        booking = booking_factory(BookingStatus.CONFIRMED)
        event = BookingEvent(
            kind=BookingEventKind.CONFIRMATION_RESENT,
            after=booking,
            actor_id=customer.id,
            change_set=BookingChangeSet(booking_id=booking.id, changed_at=now, changed_by=customer.id)
        )

        await AuditRecorder(repository).record_event(event)

        record = repository.records[0]
        assert record.action is AuditAction.BOOKING_CONFIRMATION_SENT
        assert record.occurred_at == now
        assert record.details["changes"] == {}
        assert record.details["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, booking_factory, provider):
        """Test that audit failures never propagate."""
        repository = AsyncMock()
        repository.add.side_effect = RuntimeError("audit store down")
        event = status_event(booking_factory(BookingStatus.CONFIRMED), provider.id, BookingStatus.PENDING)

        await AuditRecorder(repository).record_event(event)

        repository.add.assert_awaited_once()


class TestAuditLogReader:
    """Test cases for AuditLogReader."""

    @pytest.fixture
    def repository(self, now):
        repository = InMemoryAuditRepository()
        actor_id = uuid4()
        entity_id = uuid4()
        for offset, action in enumerate([
            AuditAction.BOOKING_CREATED,
            AuditAction.BOOKING_CONFIRMED,
            AuditAction.BOOKING_COMPLETED,
        ]):
            repository._records.append(AuditRecord(
                actor_id=actor_id,
                action=action,
                entity_id=entity_id,
                entity_type="Booking",
                occurred_at=now + timedelta(minutes=offset)
            ))
        return repository

    @pytest.mark.asyncio
    async def test_admin_lists_newest_first(self, repository, admin):
        """Test ordering."""
        records = await AuditLogReader(repository).list_records(admin, AuditQuery())

        assert [record.action for record in records] == [
            AuditAction.BOOKING_COMPLETED,
            AuditAction.BOOKING_CONFIRMED,
            AuditAction.BOOKING_CREATED,
        ]

    @pytest.mark.asyncio
    async def test_filters_and_paging(self, repository, admin, now):
        """Test action, window and paging filters."""
        reader = AuditLogReader(repository)

        by_action = await reader.list_records(admin, AuditQuery(action=AuditAction.BOOKING_CONFIRMED))
        window = await reader.list_records(admin, AuditQuery(occurred_from=now + timedelta(minutes=1)))
        page = await reader.list_records(admin, AuditQuery(limit=1, offset=1))
        other_actor = await reader.list_records(admin, AuditQuery(actor_id=uuid4()))

        assert [record.action for record in by_action] == [AuditAction.BOOKING_CONFIRMED]
        assert len(window) == 2
        assert [record.action for record in page] == [AuditAction.BOOKING_CONFIRMED]
        assert other_actor == []

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, repository, customer):
        """Test that only administrators may read the audit trail."""
        with pytest.raises(ForbiddenError, match="Administrator"):
            await AuditLogReader(repository).list_records(customer, AuditQuery())

    def test_query_validation(self, now):
        """Test AuditQuery bounds."""
        with pytest.raises(ValueError, match="Limit"):
            AuditQuery(limit=0)
        with pytest.raises(ValueError, match="Offset"):
            AuditQuery(offset=-1)
        with pytest.raises(ValueError, match="occurred_from"):
            AuditQuery(occurred_from=now, occurred_to=now - timedelta(seconds=1))
