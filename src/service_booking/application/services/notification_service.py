"""Notification dispatcher for booking lifecycle events."""

import asyncio
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from ..dto.booking_event import BookingEvent, BookingEventKind
from ..ports.mail import MailMessage, MailTransport
from ..ports.repositories import (
    BookingRepository,
    PrincipalRepository,
    ServiceCatalog
)
from .notification_templates import (
    Audience,
    NotificationEvent,
    TemplateContext,
    render
)
from ...domain.entities.booking import Booking, utc_now
from ...domain.entities.principal import Principal
from ...domain.value_objects.booking_history import NotificationLedgerEntry
from ...infrastructure.logging import get_logger, log_notification_attempt


DEFAULT_SERVICE_TITLE = "your booked service"


def ledger_event_type(event: BookingEvent) -> Optional[str]:
    """Get the ledger event name of a lifecycle event, if it is notified at all."""
    if event.kind is BookingEventKind.CREATED:
        return "booking_created"
    if event.kind is BookingEventKind.STATUS_CHANGED:
        return f"status_update_{event.after.status.value}"
    if event.kind is BookingEventKind.CONFIRMATION_RESENT:
        return "booking_confirmation_resent"
    return None


class NotificationDispatcher:
    """Renders and delivers the customer and provider emails of an event.

    One delivery attempt per audience. Every failure is logged and reflected
    only in the booking's notification ledger; ``dispatch`` never raises.
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        principal_repository: PrincipalRepository,
        service_catalog: ServiceCatalog,
        mail_transport: MailTransport,
        delivery_timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] = utc_now
    ):
        self._booking_repository = booking_repository
        self._principal_repository = principal_repository
        self._service_catalog = service_catalog
        self._mail_transport = mail_transport
        self._delivery_timeout = delivery_timeout_seconds
        self._clock = clock
        self._logger = get_logger(__name__)

    async def dispatch(self, event: BookingEvent) -> Optional[NotificationLedgerEntry]:
        """Notify both parties of an event and append the ledger entry."""
        event_type = ledger_event_type(event)
        if event_type is None:
            return None

        attempted_at = self._clock()
        try:
            customer_delivered, provider_delivered = await self._deliver(event, event_type)
        except Exception:
            self._logger.exception(
                "Notification dispatch failed",
                extra={"booking_id": str(event.booking_id), "event_type": event_type}
            )
            customer_delivered = provider_delivered = False

        entry = NotificationLedgerEntry(
            event_type=event_type,
            attempted_at=attempted_at,
            customer_delivered=customer_delivered,
            provider_delivered=provider_delivered
        )
        await self._append_to_ledger(event.booking_id, entry)
        return entry

    async def record_undelivered(self, event: BookingEvent) -> Optional[NotificationLedgerEntry]:
        """Append a non-delivery ledger entry for an event whose dispatch was abandoned."""
        event_type = ledger_event_type(event)
        if event_type is None:
            return None

        log_notification_attempt(
            self._logger, event.booking_id, "all", event_type, False, failure_reason="abandoned"
        )
        entry = NotificationLedgerEntry(
            event_type=event_type,
            attempted_at=self._clock(),
            customer_delivered=False,
            provider_delivered=False
        )
        await self._append_to_ledger(event.booking_id, entry)
        return entry

    async def _deliver(self, event: BookingEvent, event_type: str) -> tuple[bool, bool]:
        booking = event.after
        notification_event = (
            NotificationEvent.STATUS_CHANGED if event.kind is BookingEventKind.STATUS_CHANGED
            else NotificationEvent.CREATED
        )
        customer = await self._find_principal(booking.customer_id)
        provider = await self._find_principal(booking.provider_id)
        service_title = await self._find_service_title(booking.service_id)
        previous_status = event.before.status if event.before is not None else None

        def context_for(recipient: Principal) -> TemplateContext:
            return TemplateContext(
                booking_reference=str(booking.id),
                recipient_name=recipient.name,
                customer_name=customer.name if customer else "A customer",
                service_title=service_title,
                scheduled_at=booking.scheduled_at,
                amount=booking.total_amount,
                status=booking.status,
                previous_status=previous_status,
                note=booking.customer_note
            )

        customer_delivered, provider_delivered = await asyncio.gather(
            self._send(booking, Audience.CUSTOMER, notification_event, event_type, customer,
                       context_for),
            self._send(booking, Audience.PROVIDER, notification_event, event_type, provider,
                       context_for),
        )
        return customer_delivered, provider_delivered

    async def _send(
        self,
        booking: Booking,
        audience: Audience,
        notification_event: NotificationEvent,
        event_type: str,
        recipient: Optional[Principal],
        build_context: Callable[[Principal], TemplateContext]
    ) -> bool:
        if recipient is None or not recipient.email:
            log_notification_attempt(
                self._logger, booking.id, audience.value, event_type, False,
                skip_reason="no_delivery_address"
            )
            return False

        try:
            rendered = render(audience, notification_event, build_context(recipient))
            message = MailMessage(
                to=recipient.email,
                subject=rendered.subject,
                text=rendered.text,
                html=rendered.html
            )
            delivered = await asyncio.wait_for(
                self._mail_transport.send(message), timeout=self._delivery_timeout
            )
        except asyncio.TimeoutError:
            log_notification_attempt(
                self._logger, booking.id, audience.value, event_type, False,
                failure_reason="timeout", timeout_seconds=self._delivery_timeout
            )
            return False
        except Exception as exc:
            log_notification_attempt(
                self._logger, booking.id, audience.value, event_type, False,
                failure_reason="transport_error", error=str(exc), error_type=type(exc).__name__
            )
            return False

        log_notification_attempt(self._logger, booking.id, audience.value, event_type, bool(delivered))
        return bool(delivered)

    async def _find_principal(self, principal_id: UUID) -> Optional[Principal]:
        try:
            return await self._principal_repository.find_by_id(principal_id)
        except Exception:
            self._logger.exception(
                "Principal lookup failed", extra={"principal_id": str(principal_id)}
            )
            return None

    async def _find_service_title(self, service_id: UUID) -> str:
        try:
            service = await self._service_catalog.find_by_id(service_id)
        except Exception:
            self._logger.exception(
                "Service lookup failed", extra={"service_id": str(service_id)}
            )
            return DEFAULT_SERVICE_TITLE
        return service.title if service else DEFAULT_SERVICE_TITLE

    async def _append_to_ledger(self, booking_id: UUID, entry: NotificationLedgerEntry) -> None:
        try:
            appended = await self._booking_repository.append_notification(booking_id, entry)
        except Exception:
            self._logger.exception(
                "Failed to append notification ledger entry",
                extra={"booking_id": str(booking_id), "event_type": entry.event_type}
            )
            return
        if not appended:
            self._logger.warning(
                "Notification ledger entry not stored, booking missing",
                extra={"booking_id": str(booking_id), "event_type": entry.event_type}
            )
