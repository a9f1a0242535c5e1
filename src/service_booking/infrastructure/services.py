"""Dependency injection and service factory."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, List, Optional, TYPE_CHECKING

from ..application.dto.booking_event import BookingEvent
from ..application.ports.mail import MailTransport
from ..application.ports.repositories import (
    AuditRepository,
    BookingRepository,
    PrincipalRepository,
    ServiceCatalog
)
from ..application.services.audit_service import AuditLogReader, AuditRecorder
from ..application.services.booking_service import BookingService
from ..application.services.notification_service import NotificationDispatcher
from ..application.services.side_effects import SideEffectQueue
from .database.connection import DatabaseManager
from .logging import get_logger
from .mail.transports import LoggingMailTransport, SMTPMailTransport
from .repositories.memory_repositories import (
    InMemoryAuditRepository,
    InMemoryBookingRepository,
    InMemoryPrincipalRepository,
    InMemoryServiceCatalog
)
from .repositories.sql_repositories import (
    SQLAlchemyAuditRepository,
    SQLAlchemyBookingRepository,
    SQLAlchemyPrincipalRepository,
    SQLAlchemyServiceCatalog
)

if TYPE_CHECKING:
    from ..presentation.api.config import Settings


@dataclass(frozen=True)
class Repositories:
    """Repositories sharing one unit of work."""

    bookings: BookingRepository
    services: ServiceCatalog
    principals: PrincipalRepository
    audit: AuditRepository


def build_mail_transport(settings: "Settings") -> MailTransport:
    """Create the SMTP transport, or a logging transport when SMTP is not configured."""
    if not settings.smtp_configured:
        return LoggingMailTransport()
    return SMTPMailTransport(
        host=settings.smtp_host,
        port=settings.smtp_port,
        from_address=settings.mail_from_address,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        timeout_seconds=settings.notification_timeout_seconds
    )


class ServiceFactory:
    """Factory for creating application services with proper dependencies.

    Each service context owns one database session. Lifecycle events raised
    inside a booking service context are queued for notification and audit
    only after that session has committed.
    """

    def __init__(self, settings: "Settings", mail_transport: Optional[MailTransport] = None):
        self._settings = settings
        self.database_manager = DatabaseManager(
            settings.database_url,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow
        )
        self._connected = False
        self._mail_transport = mail_transport or build_mail_transport(settings)
        self._side_effects = SideEffectQueue(
            handlers=[("notifications", self.notify), ("audit", self.audit)],
            handler_timeout_seconds=settings.side_effect_timeout_seconds,
            max_size=settings.side_effect_queue_size
        )
        self._logger = get_logger(__name__)

    @property
    def side_effects(self) -> SideEffectQueue:
        """Get the side-effect queue."""
        return self._side_effects

    @property
    def mail_transport(self) -> MailTransport:
        """Get the mail transport."""
        return self._mail_transport

    async def initialize(self):
        """Initialize the service factory."""
        if not self._connected:
            await self.database_manager.connect()
            self._connected = True
        await self._side_effects.start()

    async def shutdown(self):
        """Shutdown the service factory."""
        await self._side_effects.stop()
        if self._connected:
            await self.database_manager.disconnect()
            self._connected = False

    @asynccontextmanager
    async def repositories(self) -> AsyncGenerator[Repositories, None]:
        """Get repositories bound to one database session."""
        async with self.database_manager.get_session() as session:
            yield Repositories(
                bookings=SQLAlchemyBookingRepository(session),
                services=SQLAlchemyServiceCatalog(session),
                principals=SQLAlchemyPrincipalRepository(session),
                audit=SQLAlchemyAuditRepository(session)
            )

    @asynccontextmanager
    async def get_booking_service(self) -> AsyncGenerator[BookingService, None]:
        """Get booking service with database repositories."""
        pending: List[BookingEvent] = []
        async with self.repositories() as repos:
            yield BookingService(
                booking_repository=repos.bookings,
                service_catalog=repos.services,
                publish=pending.append
            )
        # Reached only after commit
        for event in pending:
            self._side_effects.publish(event)

    @asynccontextmanager
    async def get_audit_reader(self) -> AsyncGenerator[AuditLogReader, None]:
        """Get audit log reader."""
        async with self.repositories() as repos:
            yield AuditLogReader(repos.audit)

    @asynccontextmanager
    async def get_principal_repository(self) -> AsyncGenerator[PrincipalRepository, None]:
        """Get principal lookup."""
        async with self.repositories() as repos:
            yield repos.principals

    def _dispatcher(self, repos: Repositories) -> NotificationDispatcher:
        return NotificationDispatcher(
            booking_repository=repos.bookings,
            principal_repository=repos.principals,
            service_catalog=repos.services,
            mail_transport=self._mail_transport,
            delivery_timeout_seconds=self._settings.notification_timeout_seconds
        )

    async def notify(self, event: BookingEvent) -> None:
        """Deliver notifications for an event in its own unit of work.

        When the side-effect queue abandons the dispatch, a non-delivery
        ledger entry is still written in a fresh unit of work.
        """
        try:
            async with self.repositories() as repos:
                await self._dispatcher(repos).dispatch(event)
        except asyncio.CancelledError:
            async with self.repositories() as repos:
                await self._dispatcher(repos).record_undelivered(event)
            raise

    async def audit(self, event: BookingEvent) -> None:
        """Record the audit entry for an event in its own unit of work."""
        async with self.repositories() as repos:
            await AuditRecorder(repos.audit).record_event(event)


class InMemoryServiceFactory(ServiceFactory):
    """Service factory backed by in-memory repositories (tests and local development)."""

    def __init__(self, settings: "Settings", mail_transport: Optional[MailTransport] = None):
        super().__init__(settings, mail_transport or LoggingMailTransport())
        self.booking_repository = InMemoryBookingRepository()
        self.service_catalog = InMemoryServiceCatalog()
        self.principal_repository = InMemoryPrincipalRepository()
        self.audit_repository = InMemoryAuditRepository()

    async def initialize(self):
        """Start the side-effect worker."""
        await self._side_effects.start()

    async def shutdown(self):
        """Stop the side-effect worker."""
        await self._side_effects.stop()

    @asynccontextmanager
    async def repositories(self) -> AsyncGenerator[Repositories, None]:
        """Get the shared in-memory repositories."""
        yield Repositories(
            bookings=self.booking_repository,
            services=self.service_catalog,
            principals=self.principal_repository,
            audit=self.audit_repository
        )


# Global service factory instance
_service_factory: ServiceFactory | None = None


def get_service_factory() -> ServiceFactory:
    """Get the global service factory instance."""
    global _service_factory

    if _service_factory is None:
        from ..presentation.api.config import get_settings
        _service_factory = ServiceFactory(get_settings())

    return _service_factory
