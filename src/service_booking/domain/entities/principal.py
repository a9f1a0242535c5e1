"""Principal entity for authenticated marketplace actors."""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


class PrincipalRole(Enum):
    """Principal role enumeration."""
    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


ADMIN_ROLES = frozenset({PrincipalRole.ADMIN, PrincipalRole.SUPER_ADMIN})


class Principal:
    """Authenticated actor issuing a request."""

    def __init__(
        self,
        role: PrincipalRole,
        principal_id: Optional[UUID] = None,
        is_active: bool = True,
        email: Optional[str] = None,
        name: Optional[str] = None
    ):
        self._id = principal_id or uuid4()
        self._role = role
        self._is_active = is_active
        self._email = email.lower().strip() if email else None
        self._name = name.strip() if name else None

    @property
    def id(self) -> UUID:
        """Get principal ID."""
        return self._id

    @property
    def role(self) -> PrincipalRole:
        """Get principal role."""
        return self._role

    @property
    def is_active(self) -> bool:
        """Check if principal is active."""
        return self._is_active

    @property
    def email(self) -> Optional[str]:
        """Get delivery address."""
        return self._email

    @property
    def name(self) -> str:
        """Get display name."""
        return self._name or "there"

    @property
    def is_admin(self) -> bool:
        """Check if principal has administrator privileges."""
        return self._role in ADMIN_ROLES

    def __eq__(self, other: object) -> bool:
        """Check equality based on principal ID."""
        if not isinstance(other, Principal):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        """Hash based on principal ID."""
        return hash(self._id)

    def __str__(self) -> str:
        """String representation."""
        return f"Principal({self._id}, {self._role.value})"
