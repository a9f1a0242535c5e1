"""Unit tests for in-memory repositories and mail transports."""

import pytest
from datetime import timedelta
from uuid import uuid4

from src.service_booking.application.ports.mail import MailMessage
from src.service_booking.domain.entities.booking import BookingStatus
from src.service_booking.domain.exceptions import ConflictError, NotFoundError
from src.service_booking.domain.value_objects.booking_changes import BookingChangeSet, FieldChange
from src.service_booking.domain.value_objects.booking_history import NotificationLedgerEntry, StatusChange
from src.service_booking.infrastructure.mail.transports import LoggingMailTransport, SMTPMailTransport
from src.service_booking.infrastructure.repositories.memory_repositories import InMemoryBookingRepository


def confirm_change_set(booking, actor_id, changed_at, expected=BookingStatus.PENDING):
    return BookingChangeSet(
        booking_id=booking.id,
        changed_at=changed_at,
        changed_by=actor_id,
        expected_status=expected,
        changes=(FieldChange("status", expected, BookingStatus.CONFIRMED),),
        history_entry=StatusChange(BookingStatus.CONFIRMED, changed_at, actor_id)
    )


class TestInMemoryBookingRepository:
    """Test cases for InMemoryBookingRepository."""

    @pytest.mark.asyncio
    async def test_stored_copy_is_isolated(self, booking_factory, provider, now):
        """Test that callers cannot mutate stored bookings."""
        repository = InMemoryBookingRepository()
        booking = booking_factory()
        await repository.add(booking)

        loaded = await repository.find_by_id(booking.id)
        loaded.apply_status(BookingStatus.CONFIRMED, now, provider.id)

        assert (await repository.find_by_id(booking.id)).status == BookingStatus.PENDING

    @pytest.mark.asyncio
    async def test_apply_changes_appends_history(self, booking_factory, provider, now):
        """Test conditional update success."""
        repository = InMemoryBookingRepository()
        booking = booking_factory()
        await repository.add(booking)

        updated = await repository.apply_changes(confirm_change_set(booking, provider.id, now))

        assert updated.status == BookingStatus.CONFIRMED
        assert updated.status_history[-1].changed_at == now
        assert updated.last_transition_at == now

    @pytest.mark.asyncio
    async def test_apply_changes_conflict_on_stale_status(self, booking_factory, provider, now):
        """Test that a second write from the same read loses."""
        repository = InMemoryBookingRepository()
        booking = booking_factory()
        await repository.add(booking)
        change_set = confirm_change_set(booking, provider.id, now)

        await repository.apply_changes(change_set)
        with pytest.raises(ConflictError):
            await repository.apply_changes(change_set)

        assert len((await repository.find_by_id(booking.id)).status_history) == 2

    @pytest.mark.asyncio
    async def test_apply_changes_missing_booking(self, booking_factory, provider, now):
        """Test NotFoundError for unknown booking."""
        repository = InMemoryBookingRepository()

        with pytest.raises(NotFoundError):
            await repository.apply_changes(confirm_change_set(booking_factory(), provider.id, now))

    @pytest.mark.asyncio
    async def test_append_notification(self, booking_factory, now):
        """Test ledger append and unknown booking."""
        repository = InMemoryBookingRepository()
        booking = booking_factory()
        await repository.add(booking)
        entry = NotificationLedgerEntry("booking_created", now, True, False)

        assert await repository.append_notification(booking.id, entry) is True
        assert await repository.append_notification(uuid4(), entry) is False
        assert (await repository.find_by_id(booking.id)).notification_ledger == [entry]

    @pytest.mark.asyncio
    async def test_find_changed_since_orders_by_transition(self, booking_factory, provider, now):
        """Test change polling order."""
        repository = InMemoryBookingRepository()
        older = booking_factory()
        newer = booking_factory()
        await repository.add(older)
        await repository.add(newer)
        await repository.apply_changes(confirm_change_set(newer, provider.id, now + timedelta(minutes=5)))

        changed = await repository.find_changed_since(now - timedelta(days=1))

        assert [booking.id for booking in changed] == [older.id, newer.id]


class TestMailTransports:
    """Test cases for mail transports."""

    @pytest.fixture
    def message(self):
        return MailMessage(to="casey@example.com", subject="Hello", text="Hi", html="<p>Hi</p>")

    @pytest.mark.asyncio
    async def test_logging_transport_records(self, message):
        """Test that the logging transport reports success."""
        transport = LoggingMailTransport()

        assert await transport.send(message) is True
        assert transport.sent == [message]

    def test_smtp_mime_has_text_and_html(self, message):
        """Test multipart alternative construction."""
        transport = SMTPMailTransport("smtp.example.com", 587, "Bookings <no-reply@example.com>")

        mime = transport.build_mime(message)

        assert mime.get_content_subtype() == "alternative"
        assert [part.get_content_type() for part in mime.get_payload()] == ["text/plain", "text/html"]
        assert mime["To"] == "casey@example.com"

    @pytest.mark.asyncio
    async def test_smtp_failure_returns_false(self, message, monkeypatch):
        """Test that relay errors are reported, not raised."""
        transport = SMTPMailTransport("smtp.example.com", 587, "no-reply@example.com")

        def refuse(_message):
            raise ConnectionRefusedError("no relay")

        monkeypatch.setattr(transport, "_send_blocking", refuse)

        assert await transport.send(message) is False

    def test_invalid_recipient_rejected(self):
        """Test MailMessage validation."""
        with pytest.raises(ValueError, match="Invalid recipient"):
            MailMessage(to="nobody", subject="Hello", text="", html="")
