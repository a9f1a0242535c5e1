"""Unit tests for the in-memory service factory and its settings."""

import asyncio
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone

from src.service_booking.infrastructure.repositories.memory_repositories import InMemoryPrincipalRepository
from src.service_booking.infrastructure.services import InMemoryServiceFactory
from src.service_booking.presentation.api.config import Settings


class StalledPrincipalRepository(InMemoryPrincipalRepository):
    """Principal lookups that never answer."""

    async def find_by_id(self, principal_id):
        await asyncio.sleep(10)


class TestSettings:
    """Test cases for Settings validation."""

    def test_delivery_timeout_must_fit_handler_timeout(self):
        """Test that a delivery timeout longer than the handler timeout is rejected."""
        with pytest.raises(ValueError):
            Settings(side_effect_timeout_seconds=0.1, notification_timeout_seconds=5.0)

    def test_default_timeouts_are_valid(self):
        """Test default timeout ordering."""
        settings = Settings()

        assert settings.notification_timeout_seconds < settings.side_effect_timeout_seconds


class TestInMemoryServiceFactory:
    """Test cases for side-effect handling in InMemoryServiceFactory."""

    @pytest_asyncio.fixture
    async def factory(self, service):
        factory = InMemoryServiceFactory(
            Settings(side_effect_timeout_seconds=0.2, notification_timeout_seconds=0.1)
        )
        factory.service_catalog.add_service(service)
        await factory.initialize()
        yield factory
        await factory.shutdown()

    async def _create(self, factory, customer, service):
        async with factory.get_booking_service() as booking_service:
            return await booking_service.create_booking(
                principal=customer,
                service_id=service.id,
                scheduled_at=datetime.now(timezone.utc) + timedelta(days=2)
            )

    @pytest.mark.asyncio
    async def test_side_effects_written_after_create(self, factory, customer, provider, service):
        """Test that the worker records the ledger entry and the audit record."""
        factory.principal_repository.add_principal(customer)
        factory.principal_repository.add_principal(provider)

        booking = await self._create(factory, customer, service)
        await factory.side_effects.join()

        stored = await factory.booking_repository.find_by_id(booking.id)
        assert [entry.event_type for entry in stored.notification_ledger] == ["booking_created"]
        assert stored.notification_ledger[0].fully_delivered
        assert len(factory.audit_repository.records) == 1

    @pytest.mark.asyncio
    async def test_abandoned_notification_still_leaves_ledger_entry(self, factory, customer, service):
        """Test that a dispatch cut off by the handler timeout records non-delivery."""
        factory.principal_repository = StalledPrincipalRepository()

        booking = await self._create(factory, customer, service)
        await factory.side_effects.join()

        stored = await factory.booking_repository.find_by_id(booking.id)
        assert len(stored.notification_ledger) == 1
        entry = stored.notification_ledger[0]
        assert entry.event_type == "booking_created"
        assert entry.customer_delivered is False
        assert entry.provider_delivered is False
        assert stored.status_history == booking.status_history
        assert len(factory.audit_repository.records) == 1
