"""Collaborator ports (abstract interfaces) consumed by the storefront core.

The core never implements identity, catalogue content or warehouse metadata
itself. It depends on these narrow contracts so production adapters and the
in-memory adapters used in development and tests are interchangeable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a use case."""

    user_id: str
    role: Role = Role.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def can_access(self, owner_id) -> bool:
        """Owner-or-admin check used for carts and orders."""
        return self.is_admin or str(owner_id) == str(self.user_id)


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalogue data captured when a product enters a cart or an order."""

    product_id: str
    unit_price: float
    name: str | None = None
    image: str | None = None
    sku: str | None = None
    variant_id: str | None = None


class TokenResolver(ABC):
    """Identity collaborator: bearer credential to principal."""

    @abstractmethod
    def resolve(self, token: str) -> Principal | None:
        """Return the principal for a valid token, or None."""
        ...


class CatalogLookup(ABC):
    """Catalogue collaborator: read-only price and display metadata."""

    @abstractmethod
    def lookup(self, product_id: str, variant_id: str | None = None) -> ProductSnapshot | None:
        """Return the current snapshot of a product (variant), or None."""
        ...


class LocationDirectory(ABC):
    """Warehouse collaborator: stock-bearing location identifiers."""

    @abstractmethod
    def location_exists(self, location_id: str) -> bool:
        """Return True if the location is known."""
        ...
