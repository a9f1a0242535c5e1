"""Integration tests for booking API endpoints over in-memory repositories."""

import pytest
import pytest_asyncio
from types import SimpleNamespace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from httpx import ASGITransport, AsyncClient

from src.service_booking.domain.entities.principal import PrincipalRole
from src.service_booking.infrastructure.services import InMemoryServiceFactory
from src.service_booking.presentation.api.config import Settings, get_settings
from src.service_booking.presentation.api.main import create_app
from src.service_booking.presentation.api.middleware.auth import create_access_token

API = get_settings().api_prefix


def auth(principal):
    return {"Authorization": f"Bearer {create_access_token(principal.id)}"}


def future(days=2):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


class TestBookingAPI:
    """Integration tests for booking API endpoints."""

    @pytest_asyncio.fixture
    async def factory(self):
        factory = InMemoryServiceFactory(Settings(side_effect_timeout_seconds=2.0, notification_timeout_seconds=1.0))
        await factory.initialize()
        yield factory
        await factory.shutdown()

    @pytest.fixture
    def world(self, factory):
        principals = factory.principal_repository
        provider = principals.create_principal(PrincipalRole.PROVIDER, email="provider@example.com", name="Pat")
        return SimpleNamespace(
            customer=principals.create_principal(PrincipalRole.CUSTOMER, email="customer@example.com", name="Casey"),
            provider=provider,
            admin=principals.create_principal(PrincipalRole.ADMIN, email="admin@example.com", name="Alex"),
            service=factory.service_catalog.create_service(
                provider.id, title="Deep Home Cleaning", price=Decimal("50.00")
            )
        )

    @pytest_asyncio.fixture
    async def client(self, factory):
        app = create_app(factory)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client

    async def create_booking(self, client, world):
        response = await client.post(
            f"{API}/bookings",
            json={"service_id": str(world.service.id), "scheduled_at": future(), "note": "  Gate code 42 "},
            headers=auth(world.customer)
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def transition(self, client, booking_id, principal, target, **fields):
        return await client.post(
            f"{API}/bookings/{booking_id}/transitions",
            json={"target_status": target, **fields},
            headers=auth(principal)
        )

    @pytest.mark.asyncio
    async def test_health(self, client, world):
        """Test health endpoint."""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["side_effects"]["running"] is True

    @pytest.mark.asyncio
    async def test_create_booking(self, client, world):
        """Test booking creation as a customer."""
        booking = await self.create_booking(client, world)

        assert booking["status"] == "pending"
        assert Decimal(str(booking["amount"])) == Decimal("50.00")
        assert booking["customer_id"] == str(world.customer.id)
        assert booking["provider_id"] == str(world.provider.id)
        assert booking["customer_note"] == "Gate code 42"
        assert [entry["status"] for entry in booking["status_history"]] == ["pending"]

    @pytest.mark.asyncio
    async def test_create_booking_errors(self, client, world):
        """Test validation and reference errors."""
        past = await client.post(
            f"{API}/bookings",
            json={"service_id": str(world.service.id), "scheduled_at": future(days=-1)},
            headers=auth(world.customer)
        )
        unknown = await client.post(
            f"{API}/bookings",
            json={"service_id": str(uuid4()), "scheduled_at": future()},
            headers=auth(world.customer)
        )

        assert past.status_code == 400
        assert past.json()["type"] == "validation_error"
        assert unknown.status_code == 422
        assert unknown.json()["type"] == "invalid_reference"

    @pytest.mark.asyncio
    async def test_authentication(self, client, world, factory):
        """Test missing, unknown and inactive principals."""
        inactive = factory.principal_repository.create_principal(PrincipalRole.CUSTOMER, is_active=False)
        body = {"service_id": str(world.service.id), "scheduled_at": future()}

        missing = await client.post(f"{API}/bookings", json=body)
        garbage = await client.post(f"{API}/bookings", json=body, headers={"Authorization": "Bearer nope"})
        unknown = await client.post(
            f"{API}/bookings", json=body, headers={"Authorization": f"Bearer {create_access_token(uuid4())}"}
        )
        disabled = await client.post(f"{API}/bookings", json=body, headers=auth(inactive))

        assert missing.status_code == 401
        assert garbage.status_code == 401
        assert unknown.status_code == 401
        assert disabled.status_code == 403

    @pytest.mark.asyncio
    async def test_confirm_then_idempotent_repeat(self, client, world):
        """Test provider confirmation and a no-op same-status request."""
        booking = await self.create_booking(client, world)

        confirmed = await self.transition(client, booking["id"], world.provider, "confirmed",
                                          provider_note="See you then")
        repeated = await self.transition(client, booking["id"], world.customer, "confirmed")

        assert confirmed.status_code == 200
        body = confirmed.json()
        assert body["changed"] is True
        assert body["booking"]["status"] == "confirmed"
        assert {change["field"] for change in body["changes"]} == {"status", "provider_note"}
        assert repeated.status_code == 200
        assert repeated.json()["changed"] is False
        assert len(repeated.json()["booking"]["status_history"]) == 2

    @pytest.mark.asyncio
    async def test_customer_cannot_complete(self, client, world):
        """Test forbidden transition mapping."""
        booking = await self.create_booking(client, world)

        response = await self.transition(client, booking["id"], world.customer, "completed")

        assert response.status_code == 403
        assert response.json()["type"] == "forbidden"

    @pytest.mark.asyncio
    async def test_cancel_completed_is_terminal(self, client, world):
        """Test terminal state mapping."""
        booking = await self.create_booking(client, world)
        await self.transition(client, booking["id"], world.provider, "confirmed")
        await self.transition(client, booking["id"], world.provider, "completed")

        response = await client.post(f"{API}/bookings/{booking['id']}/cancel", headers=auth(world.admin))

        assert response.status_code == 409
        assert response.json()["type"] == "terminal_state"

    @pytest.mark.asyncio
    async def test_customer_cancel(self, client, world):
        """Test customer cancellation endpoint."""
        booking = await self.create_booking(client, world)

        response = await client.post(f"{API}/bookings/{booking['id']}/cancel", headers=auth(world.customer))

        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_patch_notes(self, client, world):
        """Test field-only update and write scopes."""
        booking = await self.create_booking(client, world)

        own = await client.patch(
            f"{API}/bookings/{booking['id']}", json={"customer_note": "Dog in yard"}, headers=auth(world.customer)
        )
        foreign = await client.patch(
            f"{API}/bookings/{booking['id']}", json={"provider_note": "hi"}, headers=auth(world.customer)
        )
        empty = await client.patch(f"{API}/bookings/{booking['id']}", json={}, headers=auth(world.customer))

        assert own.status_code == 200
        assert own.json()["booking"]["customer_note"] == "Dog in yard"
        assert own.json()["booking"]["status"] == "pending"
        assert foreign.status_code == 403
        assert empty.status_code == 400

    @pytest.mark.asyncio
    async def test_get_booking(self, client, world, factory):
        """Test read access and not found."""
        booking = await self.create_booking(client, world)
        stranger = factory.principal_repository.create_principal(PrincipalRole.CUSTOMER)

        own = await client.get(f"{API}/bookings/{booking['id']}", headers=auth(world.customer))
        other = await client.get(f"{API}/bookings/{booking['id']}", headers=auth(stranger))
        missing = await client.get(f"{API}/bookings/{uuid4()}", headers=auth(world.admin))

        assert own.status_code == 200
        assert other.status_code == 403
        assert missing.status_code == 404
        assert missing.json()["type"] == "not_found"

    @pytest.mark.asyncio
    async def test_side_effects_after_transition(self, client, world, factory):
        """Test notification ledger and audit trail written by the worker."""
        booking = await self.create_booking(client, world)
        await self.transition(client, booking["id"], world.provider, "confirmed")
        await factory.side_effects.join()

        stored = await client.get(f"{API}/bookings/{booking['id']}", headers=auth(world.admin))
        ledger = stored.json()["notifications"]
        audit = await client.get(
            f"{API}/audit-logs", params={"entity_id": booking["id"]}, headers=auth(world.admin)
        )
        denied = await client.get(f"{API}/audit-logs", headers=auth(world.customer))

        assert [entry["event_type"] for entry in ledger] == ["booking_created", "status_update_confirmed"]
        assert all(entry["customer_delivered"] and entry["provider_delivered"] for entry in ledger)
        assert len(factory.mail_transport.sent) == 4
        assert audit.status_code == 200
        assert {record["action"] for record in audit.json()["records"]} == {
            "BOOKING_CREATED", "BOOKING_CONFIRMED"
        }
        assert denied.status_code == 403

    @pytest.mark.asyncio
    async def test_send_confirmation(self, client, world, factory):
        """Test resending confirmation emails without touching status or history."""
        booking = await self.create_booking(client, world)
        await factory.side_effects.join()
        stranger = factory.principal_repository.create_principal(PrincipalRole.CUSTOMER)

        response = await client.post(
            f"{API}/bookings/{booking['id']}/send-confirmation", headers=auth(world.provider)
        )
        denied = await client.post(
            f"{API}/bookings/{booking['id']}/send-confirmation", headers=auth(stranger)
        )
        missing = await client.post(
            f"{API}/bookings/{uuid4()}/send-confirmation", headers=auth(world.admin)
        )
        await factory.side_effects.join()

        assert response.status_code == 202
        assert denied.status_code == 403
        assert missing.status_code == 404
        stored = (await client.get(f"{API}/bookings/{booking['id']}", headers=auth(world.customer))).json()
        assert stored["status"] == "pending"
        assert stored["status_history"] == booking["status_history"]
        assert [entry["event_type"] for entry in stored["notifications"]] == [
            "booking_created", "booking_confirmation_resent"
        ]
        assert len(factory.mail_transport.sent) == 4
        audit = await client.get(
            f"{API}/audit-logs",
            params={"entity_id": booking["id"], "action": "BOOKING_CONFIRMATION_SENT"},
            headers=auth(world.admin)
        )
        assert [record["actor_id"] for record in audit.json()["records"]] == [str(world.provider.id)]

    @pytest.mark.asyncio
    async def test_poll_changes(self, client, world):
        """Test change polling endpoint."""
        since = datetime.now(timezone.utc) - timedelta(seconds=1)
        booking = await self.create_booking(client, world)

        response = await client.get(
            f"{API}/bookings/changes", params={"since": since.isoformat()}, headers=auth(world.provider)
        )

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["bookings"]] == [booking["id"]]
        assert response.json()["count"] == 1
