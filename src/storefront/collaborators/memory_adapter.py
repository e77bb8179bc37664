"""In-memory collaborator adapters for development and testing."""

from storefront.collaborators.port import (
    CatalogLookup,
    LocationDirectory,
    Principal,
    ProductSnapshot,
    TokenResolver,
)


class InMemoryTokenResolver(TokenResolver):
    """Maps opaque tokens to principals registered at runtime."""

    def __init__(self, principals: dict[str, Principal] | None = None) -> None:
        self._principals: dict[str, Principal] = dict(principals or {})

    def register(self, token: str, principal: Principal) -> None:
        self._principals[token] = principal

    def resolve(self, token: str) -> Principal | None:
        return self._principals.get(token)


class InMemoryCatalog(CatalogLookup):
    """Catalogue snapshots keyed by (product_id, variant_id)."""

    def __init__(self) -> None:
        self._products: dict[tuple[str, str | None], ProductSnapshot] = {}

    def register(self, snapshot: ProductSnapshot) -> None:
        self._products[(str(snapshot.product_id), snapshot.variant_id)] = snapshot

    def lookup(self, product_id: str, variant_id: str | None = None) -> ProductSnapshot | None:
        snapshot = self._products.get((str(product_id), variant_id))
        if snapshot is None and variant_id is not None:
            # Variants without their own entry inherit the product's data
            base = self._products.get((str(product_id), None))
            if base is not None:
                snapshot = ProductSnapshot(
                    product_id=base.product_id,
                    unit_price=base.unit_price,
                    name=base.name,
                    image=base.image,
                    sku=base.sku,
                    variant_id=variant_id,
                )
        return snapshot


class InMemoryLocations(LocationDirectory):
    """A fixed set of known location identifiers."""

    def __init__(self, location_ids=None) -> None:
        self._location_ids: set[str] = {str(loc) for loc in (location_ids or [])}

    def register(self, location_id: str) -> None:
        self._location_ids.add(str(location_id))

    def location_exists(self, location_id: str) -> bool:
        return str(location_id) in self._location_ids
