"""Shared fixtures for booking lifecycle tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from src.service_booking.domain.entities.booking import Booking, BookingStatus
from src.service_booking.domain.entities.principal import Principal, PrincipalRole
from src.service_booking.domain.entities.service_offering import ServiceOffering

FIXED_NOW = datetime(2030, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed current time."""
    return FIXED_NOW


@pytest.fixture
def customer():
    return Principal(PrincipalRole.CUSTOMER, email="customer@example.com", name="Casey")


@pytest.fixture
def provider():
    return Principal(PrincipalRole.PROVIDER, email="provider@example.com", name="Pat")


@pytest.fixture
def admin():
    return Principal(PrincipalRole.ADMIN, email="admin@example.com", name="Alex")


@pytest.fixture
def stranger():
    return Principal(PrincipalRole.CUSTOMER, email="stranger@example.com")


@pytest.fixture
def service(provider):
    return ServiceOffering(
        id=uuid4(),
        provider_id=provider.id,
        title="Deep Home Cleaning",
        price=Decimal("120.00")
    )


def make_booking(customer, provider, service, status=BookingStatus.PENDING, now=FIXED_NOW):
    """Build a booking already in ``status`` with a consistent history."""
    booking = Booking.open(
        customer_id=customer.id,
        provider_id=provider.id,
        service_id=service.id,
        scheduled_at=now + timedelta(days=3),
        price=service.price,
        now=now - timedelta(hours=1)
    )
    path = {
        BookingStatus.PENDING: [],
        BookingStatus.CONFIRMED: [BookingStatus.CONFIRMED],
        BookingStatus.COMPLETED: [BookingStatus.CONFIRMED, BookingStatus.COMPLETED],
        BookingStatus.CANCELLED: [BookingStatus.CANCELLED],
    }[status]
    for step in path:
        booking.apply_status(step, now - timedelta(minutes=30), provider.id)
    return booking


@pytest.fixture
def booking_factory(customer, provider, service):
    """Build bookings in any status for the default parties."""
    def factory(status=BookingStatus.PENDING):
        return make_booking(customer, provider, service, status)
    return factory

