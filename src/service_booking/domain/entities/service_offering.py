"""Catalog service entity as seen by the booking lifecycle."""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class ServiceOffering:
    """Bookable catalog item owned by a provider."""

    id: UUID
    provider_id: UUID
    title: str
    price: Decimal
    is_active: bool = True

    def __post_init__(self) -> None:
        """Validate service data."""
        if self.price < 0:
            raise ValueError("Price cannot be negative")
