import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from storefront.collaborators import (
    InMemoryCatalog,
    InMemoryLocations,
    InMemoryTokenResolver,
    Principal,
    ProductSnapshot,
    Role,
    reset_collaborators,
    set_catalog,
    set_locations,
    set_token_resolver,
)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    """Push domain context before each test, clean up data after."""
    with storefront_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        current_domain.event_store.store._data_reset()

    reset_collaborators()


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer():
    return Principal(user_id="user-001", role=Role.CUSTOMER)


@pytest.fixture()
def other_customer():
    return Principal(user_id="user-002", role=Role.CUSTOMER)


@pytest.fixture()
def admin():
    return Principal(user_id="admin-001", role=Role.ADMIN)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def catalog():
    catalog = InMemoryCatalog()
    catalog.register(ProductSnapshot(product_id="prod-001", unit_price=25.0, name="Trail Shoe", sku="SHOE-001"))
    catalog.register(ProductSnapshot(product_id="prod-002", unit_price=10.0, name="Wool Socks", sku="SOCK-002"))
    catalog.register(
        ProductSnapshot(product_id="prod-003", unit_price=19.99, name="Cap", sku="CAP-003-RED", variant_id="red")
    )
    set_catalog(catalog)
    return catalog


@pytest.fixture()
def locations():
    locations = InMemoryLocations(["wh-east", "wh-west"])
    set_locations(locations)
    return locations


@pytest.fixture()
def tokens(customer, other_customer, admin):
    resolver = InMemoryTokenResolver(
        {
            "customer-token": customer,
            "other-token": other_customer,
            "admin-token": admin,
        }
    )
    set_token_resolver(resolver)
    return resolver
