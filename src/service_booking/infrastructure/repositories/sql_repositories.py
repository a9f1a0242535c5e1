"""SQLAlchemy repository implementations."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, or_, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..logging import (
    get_logger,
    log_database_operation
)

from ...application.ports.repositories import (
    AuditRepository,
    BookingRepository,
    PrincipalRepository,
    ServiceCatalog
)
from ...domain.entities.audit_record import AuditQuery, AuditRecord
from ...domain.entities.booking import Booking
from ...domain.entities.principal import Principal
from ...domain.entities.service_offering import ServiceOffering
from ...domain.exceptions import ConflictError, NotFoundError
from ...domain.value_objects.booking_changes import BookingChangeSet
from ...domain.value_objects.booking_history import NotificationLedgerEntry, StatusChange
from ..database.models import (
    AuditLogModel,
    BookingModel,
    BookingNotificationModel,
    BookingStatusHistoryModel,
    ServiceModel,
    UserModel
)


class SQLAlchemyBookingRepository(BookingRepository):
    """SQLAlchemy implementation of booking repository."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._logger = get_logger(__name__)

    async def add(self, booking: Booking) -> Booking:
        """Insert a new booking with its initial history."""
        log_database_operation(
            self._logger,
            "INSERT",
            "BookingModel",
            booking_id=str(booking.id)
        )

        booking_model = BookingModel(
            id=booking.id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            service_id=booking.service_id,
            scheduled_at=booking.scheduled_at,
            status=booking.status,
            amount=booking.amount,
            total_amount=booking.total_amount,
            customer_note=booking.customer_note,
            provider_note=booking.provider_note,
            last_transition_at=booking.last_transition_at,
            created_at=booking.created_at,
            updated_at=booking.updated_at
        )
        self._session.add(booking_model)
        await self._session.flush()

        for entry in booking.status_history:
            self._session.add(self._history_model(booking.id, entry))
        await self._session.flush()
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID."""
        stmt = (
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .options(selectinload(BookingModel.status_history), selectinload(BookingModel.notifications))
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        booking_model = result.scalar_one_or_none()

        if not booking_model:
            return None

        return self._model_to_entity(booking_model)

    async def apply_changes(self, change_set: BookingChangeSet) -> Booking:
        """Apply a change set with a conditional update on the expected status."""
        log_database_operation(
            self._logger,
            "UPDATE",
            "BookingModel",
            booking_id=str(change_set.booking_id),
            expected_status=change_set.expected_status.value if change_set.expected_status else None,
            fields=[change.field for change in change_set.changes]
        )

        values = dict(change_set.field_values)
        values["updated_at"] = change_set.changed_at
        if change_set.status_changed:
            values["status"] = change_set.new_status
            values["last_transition_at"] = change_set.changed_at

        conditions = [BookingModel.id == change_set.booking_id]
        if change_set.expected_status is not None:
            conditions.append(BookingModel.status == change_set.expected_status)

        stmt = (
            update(BookingModel)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            exists = await self._session.execute(
                select(BookingModel.id).where(BookingModel.id == change_set.booking_id)
            )
            if exists.scalar_one_or_none() is None:
                raise NotFoundError(change_set.booking_id)
            self._logger.warning(
                "Conditional booking update lost a race",
                extra={
                    "booking_id": str(change_set.booking_id),
                    "expected_status": change_set.expected_status.value
                }
            )
            raise ConflictError(change_set.booking_id)

        if change_set.history_entry is not None:
            self._session.add(self._history_model(change_set.booking_id, change_set.history_entry))
        await self._session.flush()

        updated = await self.find_by_id(change_set.booking_id)
        if updated is None:
            raise NotFoundError(change_set.booking_id)
        return updated

    async def append_notification(self, booking_id: UUID, entry: NotificationLedgerEntry) -> bool:
        """Append a notification ledger row."""
        log_database_operation(
            self._logger,
            "INSERT",
            "BookingNotificationModel",
            booking_id=str(booking_id),
            event_type=entry.event_type
        )

        exists = await self._session.execute(select(BookingModel.id).where(BookingModel.id == booking_id))
        if exists.scalar_one_or_none() is None:
            return False

        self._session.add(BookingNotificationModel(
            booking_id=booking_id,
            event_type=entry.event_type,
            attempted_at=entry.attempted_at,
            customer_delivered=entry.customer_delivered,
            provider_delivered=entry.provider_delivered
        ))
        await self._session.flush()
        return True

    async def find_changed_since(self, since: datetime, party_id: Optional[UUID] = None) -> List[Booking]:
        """Find bookings whose last transition is at or after ``since``."""
        stmt = (
            select(BookingModel)
            .where(BookingModel.last_transition_at >= since)
            .options(selectinload(BookingModel.status_history), selectinload(BookingModel.notifications))
            .order_by(BookingModel.last_transition_at)
        )
        if party_id is not None:
            stmt = stmt.where(or_(BookingModel.customer_id == party_id, BookingModel.provider_id == party_id))

        result = await self._session.execute(stmt)
        booking_models = result.scalars().all()

        return [self._model_to_entity(model) for model in booking_models]

    def _history_model(self, booking_id: UUID, entry: StatusChange) -> BookingStatusHistoryModel:
        return BookingStatusHistoryModel(
            booking_id=booking_id,
            status=entry.status,
            changed_at=entry.changed_at,
            changed_by=entry.changed_by
        )

    def _model_to_entity(self, model: BookingModel) -> Booking:
        """Convert database model to domain entity."""
        return Booking(
            booking_id=model.id,
            customer_id=model.customer_id,
            provider_id=model.provider_id,
            service_id=model.service_id,
            scheduled_at=model.scheduled_at,
            amount=model.amount,
            total_amount=model.total_amount,
            status=model.status,
            customer_note=model.customer_note,
            provider_note=model.provider_note,
            status_history=[
                StatusChange(row.status, row.changed_at, row.changed_by)
                for row in model.status_history
            ],
            notification_ledger=[
                NotificationLedgerEntry(
                    event_type=row.event_type,
                    attempted_at=row.attempted_at,
                    customer_delivered=row.customer_delivered,
                    provider_delivered=row.provider_delivered
                )
                for row in model.notifications
            ],
            last_transition_at=model.last_transition_at,
            created_at=model.created_at,
            updated_at=model.updated_at
        )


class SQLAlchemyServiceCatalog(ServiceCatalog):
    """SQLAlchemy implementation of the service catalog."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._logger = get_logger(__name__)

    async def find_by_id(self, service_id: UUID) -> Optional[ServiceOffering]:
        """Find service by ID."""
        stmt = select(ServiceModel).where(ServiceModel.id == service_id)
        result = await self._session.execute(stmt)
        service_model = result.scalar_one_or_none()

        if not service_model:
            return None

        return ServiceOffering(
            id=service_model.id,
            provider_id=service_model.provider_id,
            title=service_model.title,
            price=service_model.price,
            is_active=service_model.is_active
        )


class SQLAlchemyPrincipalRepository(PrincipalRepository):
    """SQLAlchemy implementation of principal lookup."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_by_id(self, principal_id: UUID) -> Optional[Principal]:
        """Find principal by ID."""
        stmt = select(UserModel).where(UserModel.id == principal_id)
        result = await self._session.execute(stmt)
        user_model = result.scalar_one_or_none()

        if not user_model:
            return None

        return Principal(
            principal_id=user_model.id,
            role=user_model.role,
            is_active=user_model.is_active,
            email=user_model.email,
            name=user_model.name
        )


class SQLAlchemyAuditRepository(AuditRepository):
    """SQLAlchemy implementation of the audit store."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._logger = get_logger(__name__)

    async def add(self, record: AuditRecord) -> AuditRecord:
        """Insert an audit record."""
        log_database_operation(
            self._logger,
            "INSERT",
            "AuditLogModel",
            audit_action=record.action.value,
            entity_id=str(record.entity_id)
        )

        self._session.add(AuditLogModel(
            id=record.id,
            actor_id=record.actor_id,
            action=record.action,
            entity_id=record.entity_id,
            entity_type=record.entity_type,
            details=record.details,
            occurred_at=record.occurred_at
        ))
        await self._session.flush()
        return record

    async def find(self, query: AuditQuery) -> List[AuditRecord]:
        """Find audit records matching the query, newest first."""
        stmt = select(AuditLogModel)
        if query.actor_id is not None:
            stmt = stmt.where(AuditLogModel.actor_id == query.actor_id)
        if query.action is not None:
            stmt = stmt.where(AuditLogModel.action == query.action)
        if query.entity_id is not None:
            stmt = stmt.where(AuditLogModel.entity_id == query.entity_id)
        if query.entity_type is not None:
            stmt = stmt.where(AuditLogModel.entity_type == query.entity_type)
        if query.occurred_from is not None:
            stmt = stmt.where(AuditLogModel.occurred_at >= query.occurred_from)
        if query.occurred_to is not None:
            stmt = stmt.where(AuditLogModel.occurred_at <= query.occurred_to)
        stmt = stmt.order_by(desc(AuditLogModel.occurred_at)).offset(query.offset).limit(query.limit)

        result = await self._session.execute(stmt)
        return [
            AuditRecord(
                id=model.id,
                actor_id=model.actor_id,
                action=model.action,
                entity_id=model.entity_id,
                entity_type=model.entity_type,
                details=model.details or {},
                occurred_at=model.occurred_at
            )
            for model in result.scalars().all()
        ]
