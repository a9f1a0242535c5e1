"""Unit tests for booking change sets."""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from src.service_booking.domain.entities.booking import BookingStatus
from src.service_booking.domain.value_objects.booking_changes import BookingChangeSet, FieldChange
from src.service_booking.domain.value_objects.booking_history import StatusChange


NOW = datetime(2030, 1, 15, 9, 0, tzinfo=timezone.utc)


class TestBookingChangeSet:
    """Test cases for BookingChangeSet."""

    def test_status_change_properties(self):
        """Test status-related accessors."""
        actor = uuid4()
        change_set = BookingChangeSet(
            booking_id=uuid4(),
            changed_at=NOW,
            changed_by=actor,
            expected_status=BookingStatus.PENDING,
            changes=(
                FieldChange("status", BookingStatus.PENDING, BookingStatus.CONFIRMED),
                FieldChange("provider_note", None, "See you soon"),
            ),
            history_entry=StatusChange(BookingStatus.CONFIRMED, NOW, actor)
        )

        assert change_set.status_changed
        assert change_set.new_status == BookingStatus.CONFIRMED
        assert change_set.field_values == {"provider_note": "See you soon"}
        assert not change_set.is_empty

    def test_to_details_serializes_values(self):
        """Test JSON friendly diff payload."""
        service_id = uuid4()
        change_set = BookingChangeSet(
            booking_id=uuid4(),
            changed_at=NOW,
            changed_by=uuid4(),
            changes=(
                FieldChange("status", None, BookingStatus.PENDING),
                FieldChange("service_id", None, service_id),
                FieldChange("amount", None, Decimal("45.50")),
                FieldChange("scheduled_at", None, NOW),
            )
        )

        assert change_set.to_details() == {
            "status": {"before": None, "after": "pending"},
            "service_id": {"before": None, "after": str(service_id)},
            "amount": {"before": None, "after": "45.50"},
            "scheduled_at": {"before": None, "after": NOW.isoformat()},
        }

    def test_duplicate_fields_rejected(self):
        """Test that a field may change once per change set."""
        with pytest.raises(ValueError, match="at most once"):
            BookingChangeSet(
                booking_id=uuid4(),
                changed_at=NOW,
                changed_by=uuid4(),
                changes=(FieldChange("customer_note", None, "a"), FieldChange("customer_note", "a", "b"))
            )

    def test_history_entry_requires_status_change(self):
        """Test history consistency."""
        with pytest.raises(ValueError, match="History entry requires a status change"):
            BookingChangeSet(
                booking_id=uuid4(),
                changed_at=NOW,
                changed_by=uuid4(),
                changes=(FieldChange("customer_note", None, "a"),),
                history_entry=StatusChange(BookingStatus.CONFIRMED, NOW, uuid4())
            )

    def test_field_only_change_set(self):
        """Test change set without a status change."""
        change_set = BookingChangeSet(
            booking_id=uuid4(),
            changed_at=NOW,
            changed_by=uuid4(),
            changes=(FieldChange("customer_note", None, "Gate code 1234"),)
        )

        assert not change_set.status_changed
        assert change_set.new_status is None
