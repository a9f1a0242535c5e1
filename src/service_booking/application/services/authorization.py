"""Authorization gate for booking lifecycle requests."""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from ...domain.entities.booking import Booking, BookingStatus
from ...domain.entities.principal import Principal


class DenyReason(Enum):
    """Reasons for a denied decision."""
    INACTIVE_PRINCIPAL = "inactive_principal"
    INSUFFICIENT_ROLE = "insufficient_role"
    TERMINAL_STATE = "terminal_state"
    INVALID_TRANSITION = "invalid_transition"


SCHEDULE = "scheduled_at"
CUSTOMER_NOTE = "customer_note"
PROVIDER_NOTE = "provider_note"

PROVIDER_TARGETS = frozenset({BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED})
CUSTOMER_CANCELLABLE = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check."""

    allowed: bool
    reason: Optional[DenyReason] = None
    writable_fields: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def allow(cls, writable_fields: FrozenSet[str]) -> "Decision":
        return cls(True, None, writable_fields)

    @classmethod
    def deny(cls, reason: DenyReason, writable_fields: FrozenSet[str] = frozenset()) -> "Decision":
        return cls(False, reason, writable_fields)

    def may_write(self, field_name: str) -> bool:
        """Check if the principal may set the given field."""
        return field_name in self.writable_fields


class AuthorizationGate:
    """Decides whether a principal may move a booking to a requested status.

    Decisions depend only on the principal, the booking snapshot and the
    requested status. The gate performs no I/O.
    """

    def decide(
        self,
        principal: Principal,
        booking: Booking,
        requested_status: Optional[BookingStatus] = None
    ) -> Decision:
        """Evaluate the rules in order.

        ``requested_status`` of ``None`` asks for field updates only.
        """
        if not principal.is_active:
            return Decision.deny(DenyReason.INACTIVE_PRINCIPAL)

        is_admin = principal.is_admin
        is_provider = booking.provider_id == principal.id
        is_customer = booking.customer_id == principal.id

        if not (is_admin or is_provider or is_customer):
            return Decision.deny(DenyReason.INSUFFICIENT_ROLE)

        writable = self.writable_fields(principal, booking)

        if requested_status is None or requested_status == booking.status:
            return Decision.allow(writable)

        if booking.is_terminal:
            return Decision.deny(DenyReason.TERMINAL_STATE, writable)

        if not booking.can_transition_to(requested_status):
            return Decision.deny(DenyReason.INVALID_TRANSITION, writable)

        if is_admin:
            return Decision.allow(writable)

        if is_provider and requested_status in PROVIDER_TARGETS:
            return Decision.allow(writable)

        if (
            is_customer
            and requested_status == BookingStatus.CANCELLED
            and booking.status in CUSTOMER_CANCELLABLE
        ):
            return Decision.allow(writable)

        return Decision.deny(DenyReason.INSUFFICIENT_ROLE, writable)

    def writable_fields(self, principal: Principal, booking: Booking) -> FrozenSet[str]:
        """Get the fields the principal may set on the booking's current snapshot."""
        if not principal.is_active:
            return frozenset()

        fields = set()
        if booking.is_terminal:
            # closed bookings keep only admin record-keeping notes
            if principal.is_admin:
                fields.update({CUSTOMER_NOTE, PROVIDER_NOTE})
            return frozenset(fields)

        if principal.is_admin:
            fields.update({SCHEDULE, CUSTOMER_NOTE, PROVIDER_NOTE})
        if booking.provider_id == principal.id:
            fields.update({SCHEDULE, PROVIDER_NOTE})
        if booking.customer_id == principal.id:
            fields.add(CUSTOMER_NOTE)
        return frozenset(fields)

    def can_view(self, principal: Principal, booking: Booking) -> bool:
        """Check if the principal may read the booking."""
        return principal.is_active and (principal.is_admin or booking.is_party(principal.id))
