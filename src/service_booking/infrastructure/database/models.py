"""SQLAlchemy database models."""

from uuid import uuid4

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text, Enum as SQLEnum, ForeignKey, JSON, Numeric
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship

from ...domain.entities.audit_record import AuditAction
from ...domain.entities.booking import BookingStatus, utc_now
from ...domain.entities.principal import PrincipalRole

Base = declarative_base()


def _enum_values(enum_class):
    return [member.value for member in enum_class]


class UserModel(Base):
    """SQLAlchemy model for principals (customers, providers, administrators)."""

    __tablename__ = "users"

    # Primary key
    id = Column(PostgresUUID(as_uuid=True), primary_key=True, default=uuid4)

    # User details
    email = Column(String(255), nullable=True, unique=True, index=True)
    name = Column(String(200), nullable=True)
    role = Column(SQLEnum(PrincipalRole, values_callable=_enum_values), nullable=False, default=PrincipalRole.CUSTOMER)

    # Status
    is_active = Column(Boolean, nullable=False, default=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<UserModel(id={self.id}, email='{self.email}', role='{self.role}')>"


class ServiceModel(Base):
    """SQLAlchemy model for bookable catalog services."""

    __tablename__ = "services"

    # Primary key
    id = Column(PostgresUUID(as_uuid=True), primary_key=True, default=uuid4)

    # Service details
    provider_id = Column(PostgresUUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<ServiceModel(id={self.id}, title='{self.title}', price={self.price})>"


class BookingModel(Base):
    """SQLAlchemy model for bookings."""

    __tablename__ = "bookings"

    # Primary key
    id = Column(PostgresUUID(as_uuid=True), primary_key=True, default=uuid4)

    # Parties and service
    customer_id = Column(PostgresUUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(PostgresUUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(PostgresUUID(as_uuid=True), ForeignKey("services.id"), nullable=False, index=True)

    # Booking details
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(
        SQLEnum(BookingStatus, values_callable=_enum_values),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    # Notes
    customer_note = Column(Text, nullable=True)
    provider_note = Column(Text, nullable=True)

    # Timestamps
    last_transition_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Relationships
    status_history = relationship(
        "BookingStatusHistoryModel",
        order_by="BookingStatusHistoryModel.id",
        cascade="all, delete-orphan"
    )
    notifications = relationship(
        "BookingNotificationModel",
        order_by="BookingNotificationModel.id",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<BookingModel(id={self.id}, service_id={self.service_id}, status='{self.status}')>"


class BookingStatusHistoryModel(Base):
    """SQLAlchemy model for append-only booking status history."""

    __tablename__ = "booking_status_history"

    # Sequence preserves append order
    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(PostgresUUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    status = Column(SQLEnum(BookingStatus, values_callable=_enum_values), nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False)
    changed_by = Column(PostgresUUID(as_uuid=True), nullable=False)

    def __repr__(self) -> str:
        return f"<BookingStatusHistoryModel(booking_id={self.booking_id}, status='{self.status}')>"


class BookingNotificationModel(Base):
    """SQLAlchemy model for the append-only notification ledger."""

    __tablename__ = "booking_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(PostgresUUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    attempted_at = Column(DateTime(timezone=True), nullable=False)
    customer_delivered = Column(Boolean, nullable=False, default=False)
    provider_delivered = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<BookingNotificationModel(booking_id={self.booking_id}, event_type='{self.event_type}')>"


class AuditLogModel(Base):
    """SQLAlchemy model for audit records."""

    __tablename__ = "audit_logs"

    id = Column(PostgresUUID(as_uuid=True), primary_key=True, default=uuid4)
    actor_id = Column(PostgresUUID(as_uuid=True), nullable=False, index=True)
    action = Column(SQLEnum(AuditAction, values_callable=_enum_values), nullable=False, index=True)
    entity_id = Column(PostgresUUID(as_uuid=True), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    def __repr__(self) -> str:
        return f"<AuditLogModel(id={self.id}, action='{self.action}', entity_id={self.entity_id})>"
