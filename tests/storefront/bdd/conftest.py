"""Shared BDD fixtures and step definitions for the storefront."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from storefront.cart.cart import Cart
from storefront.checkout.checkout import CheckoutOrchestrator
from storefront.errors import StorefrontError
from storefront.order.lifecycle import OrderLifecycle
from storefront.order.order import Order
from storefront.stock.ledger import StockLedger
from storefront.stock.stock import StockRecord

ADDRESS = {"street": "123 Main St", "city": "Springfield", "country": "US", "postal_code": "62701"}


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def stock_ids():
    """Product id -> stock record id."""
    return {}


@pytest.fixture()
def error():
    """Container for the failure raised by a When step."""
    return {"exc": None}


@pytest.fixture()
def address():
    return dict(ADDRESS)


# ---------------------------------------------------------------------------
# Use cases
# ---------------------------------------------------------------------------
@pytest.fixture()
def ledger():
    return StockLedger(current_domain.repository_for(StockRecord))


@pytest.fixture()
def checkout(ledger):
    return CheckoutOrchestrator(
        carts=current_domain.repository_for(Cart),
        orders=current_domain.repository_for(Order),
        records=current_domain.repository_for(StockRecord),
        ledger=ledger,
    )


@pytest.fixture()
def lifecycle(ledger):
    return OrderLifecycle(current_domain.repository_for(Order), ledger)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('"{product_id}" has {quantity:d} units in stock'))
def product_in_stock(ledger, stock_ids, product_id, quantity):
    record = ledger.create_record(product_id, location_id="wh-east", initial_stock=quantity)
    stock_ids[product_id] = record.id


@given("the customer has an active cart", target_fixture="cart")
def active_cart(customer):
    cart = Cart.create(customer.user_id)
    current_domain.repository_for(Cart).save(cart)
    return cart


@given(parsers.cfparse('the cart holds {quantity:d} of "{product_id}" at {unit_price:f}'))
def cart_holds(cart, product_id, quantity, unit_price):
    stored = current_domain.repository_for(Cart).get(cart.id)
    stored.add_item(product_id, quantity, unit_price)
    current_domain.repository_for(Cart).save(stored)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{product_id}" has {reserved:d} units reserved'))
def units_reserved(ledger, stock_ids, product_id, reserved):
    assert ledger.get(stock_ids[product_id]).reserved_stock == reserved


@then(parsers.cfparse('"{product_id}" has {available:d} units available'))
def units_available(ledger, stock_ids, product_id, available):
    assert ledger.get(stock_ids[product_id]).available_stock == available


@then(parsers.cfparse('"{product_id}" has {current:d} units on hand'))
def units_on_hand(ledger, stock_ids, product_id, current):
    assert ledger.get(stock_ids[product_id]).current_stock == current


@then(parsers.cfparse('the request fails with "{kind}"'))
def request_fails(error, kind):
    assert isinstance(error["exc"], StorefrontError)
    assert error["exc"].kind == kind


@then(parsers.cfparse('the cart is "{status}"'))
def cart_status(cart, status):
    assert current_domain.repository_for(Cart).get(cart.id).status == status


@then(parsers.cfparse('the order is "{status}"'))
def order_status(order, status):
    assert current_domain.repository_for(Order).get(order.id).order_status == status
