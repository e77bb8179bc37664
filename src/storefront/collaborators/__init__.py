"""Collaborator factory.

Provides get_*() / set_*() accessors so the HTTP layer can swap the identity,
catalogue and location adapters. Use cases never call these accessors; they
receive their collaborators at construction.
"""

from storefront.collaborators.memory_adapter import (
    InMemoryCatalog,
    InMemoryLocations,
    InMemoryTokenResolver,
)
from storefront.collaborators.port import (
    CatalogLookup,
    LocationDirectory,
    Principal,
    ProductSnapshot,
    Role,
    TokenResolver,
)

_token_resolver: TokenResolver | None = None
_catalog: CatalogLookup | None = None
_locations: LocationDirectory | None = None


def get_token_resolver() -> TokenResolver:
    """Return the active identity adapter. Defaults to an empty in-memory resolver."""
    global _token_resolver
    if _token_resolver is None:
        _token_resolver = InMemoryTokenResolver()
    return _token_resolver


def set_token_resolver(resolver: TokenResolver) -> None:
    global _token_resolver
    _token_resolver = resolver


def get_catalog() -> CatalogLookup:
    """Return the active catalogue adapter. Defaults to an empty in-memory catalogue."""
    global _catalog
    if _catalog is None:
        _catalog = InMemoryCatalog()
    return _catalog


def set_catalog(catalog: CatalogLookup) -> None:
    global _catalog
    _catalog = catalog


def get_locations() -> LocationDirectory:
    """Return the active location adapter. Defaults to an empty in-memory directory."""
    global _locations
    if _locations is None:
        _locations = InMemoryLocations()
    return _locations


def set_locations(locations: LocationDirectory) -> None:
    global _locations
    _locations = locations


def reset_collaborators() -> None:
    """Reset every adapter to its default."""
    global _token_resolver, _catalog, _locations
    _token_resolver = None
    _catalog = None
    _locations = None


__all__ = [
    "CatalogLookup",
    "InMemoryCatalog",
    "InMemoryLocations",
    "InMemoryTokenResolver",
    "LocationDirectory",
    "Principal",
    "ProductSnapshot",
    "Role",
    "TokenResolver",
    "get_catalog",
    "get_locations",
    "get_token_resolver",
    "reset_collaborators",
    "set_catalog",
    "set_locations",
    "set_token_resolver",
]
