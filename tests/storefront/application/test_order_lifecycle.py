"""Tests for OrderLifecycle: transitions, their stock side effects and access rules."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from storefront.cart.cart import Cart
from storefront.checkout.checkout import CheckoutOrchestrator
from storefront.errors import (
    AccessDenied,
    AuthenticationRequired,
    InvalidTransition,
    NotFound,
    ReturnNotAllowed,
)
from storefront.order.lifecycle import OrderLifecycle
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.stock.ledger import StockLedger
from storefront.stock.stock import StockRecord

ADDRESS = {"street": "1 Main St", "city": "Springfield", "country": "US", "postal_code": "12345"}


def _ledger():
    return StockLedger(current_domain.repository_for(StockRecord))


def _lifecycle():
    return OrderLifecycle(current_domain.repository_for(Order), _ledger())


def _orders():
    return current_domain.repository_for(Order)


@pytest.fixture()
def stock():
    ledger = _ledger()
    return {
        "shoes": ledger.create_record("prod-001", location_id="wh-east", initial_stock=10),
        "socks": ledger.create_record("prod-002", location_id="wh-east", initial_stock=10),
    }


@pytest.fixture()
def placed_order(customer, stock):
    cart = Cart.create(customer.user_id)
    cart.add_item("prod-001", 2, 25.0)
    cart.add_item("prod-002", 3, 10.0)
    current_domain.repository_for(Cart).save(cart)
    checkout = CheckoutOrchestrator(
        carts=current_domain.repository_for(Cart),
        orders=_orders(),
        records=current_domain.repository_for(StockRecord),
        ledger=_ledger(),
    )
    return checkout.place_order(customer, ADDRESS, ADDRESS, payment_method="card")


def _advance(order, admin, *statuses):
    lifecycle = _lifecycle()
    for status in statuses:
        lifecycle.update_status(admin, order.id, status)
    return _orders().get(order.id)


def _counters(record):
    stored = _ledger().get(record.id)
    return stored.current_stock, stored.reserved_stock


class TestReads:
    def test_owner_can_read(self, customer, placed_order):
        order = _lifecycle().get(customer, placed_order.id)
        assert order.order_number == placed_order.order_number
        assert _lifecycle().get_by_number(customer, placed_order.order_number).id == placed_order.id

    def test_admin_can_read(self, admin, placed_order):
        assert _lifecycle().get(admin, placed_order.id).id == placed_order.id

    def test_other_customer_cannot_read(self, other_customer, placed_order):
        with pytest.raises(AccessDenied):
            _lifecycle().get(other_customer, placed_order.id)

    def test_anonymous_rejected(self, placed_order):
        with pytest.raises(AuthenticationRequired):
            _lifecycle().get(None, placed_order.id)

    def test_unknown_order(self, customer):
        with pytest.raises(NotFound):
            _lifecycle().get(customer, "missing")
        with pytest.raises(NotFound):
            _lifecycle().get_by_number(customer, "ORD000000000")

    def test_list_scoped_to_caller(self, customer, other_customer, admin, placed_order):
        assert [o.id for o in _lifecycle().list_for(customer)] == [placed_order.id]
        assert _lifecycle().list_for(other_customer) == []
        assert len(_lifecycle().list_for(admin)) == 1

    def test_list_filters_by_status(self, customer, placed_order):
        assert len(_lifecycle().list_for(customer, status="pending")) == 1
        assert _lifecycle().list_for(customer, status="shipped") == []
        with pytest.raises(ValidationError):
            _lifecycle().list_for(customer, status="teleported")


class TestCancel:
    def test_cancel_releases_reservations(self, customer, placed_order, stock):
        assert _counters(stock["shoes"]) == (10, 2)

        result = _lifecycle().cancel(customer, placed_order.id, reason="Changed my mind")
        assert result.stock_errors == []
        assert result.order.order_status == OrderStatus.CANCELLED.value
        assert result.order.history()[-1].note == "Cancelled: Changed my mind"

        assert _counters(stock["shoes"]) == (10, 0)
        assert _counters(stock["socks"]) == (10, 0)

    def test_admin_can_cancel(self, admin, placed_order):
        result = _lifecycle().cancel(admin, placed_order.id)
        assert result.order.order_status == OrderStatus.CANCELLED.value

    def test_other_customer_cannot_cancel(self, other_customer, placed_order):
        with pytest.raises(AccessDenied):
            _lifecycle().cancel(other_customer, placed_order.id)

    def test_shipped_order_cannot_be_cancelled(self, customer, admin, placed_order, stock):
        _advance(placed_order, admin, "confirmed", "processing", "shipped")
        with pytest.raises(InvalidTransition):
            _lifecycle().cancel(customer, placed_order.id)
        assert _orders().get(placed_order.id).order_status == OrderStatus.SHIPPED.value


class TestShip:
    def test_ship_releases_and_removes(self, admin, placed_order, stock):
        order = _advance(placed_order, admin, "confirmed", "processing")
        result = _lifecycle().update_status(admin, order.id, "shipped", note="Left the warehouse")

        assert result.stock_errors == []
        assert _counters(stock["shoes"]) == (8, 0)
        assert _counters(stock["socks"]) == (7, 0)
        movements = _ledger().get(stock["shoes"].id).ordered_movements()
        assert [m.movement_type for m in movements][-2:] == ["released", "out"]
        assert movements[-1].reference_id == placed_order.order_number

    def test_only_admin_updates_status(self, customer, placed_order):
        with pytest.raises(AccessDenied):
            _lifecycle().update_status(customer, placed_order.id, "confirmed")

    def test_invalid_transition(self, admin, placed_order):
        with pytest.raises(InvalidTransition):
            _lifecycle().update_status(admin, placed_order.id, "delivered")

    def test_stock_failure_does_not_block_transition(self, admin, placed_order, stock):
        order = _advance(placed_order, admin, "confirmed", "processing")
        _ledger().release_stock(stock["socks"].id, 3, reference_id="manual")

        result = _lifecycle().update_status(admin, order.id, "shipped")

        assert result.order.order_status == OrderStatus.SHIPPED.value
        assert len(result.stock_errors) == 1
        failure = result.stock_errors[0]
        assert failure.product_id == "prod-002"
        assert failure.error == "over_release"
        assert _counters(stock["shoes"]) == (8, 0)
        assert _orders().get(order.id).order_status == OrderStatus.SHIPPED.value

    def test_missing_stock_record_is_reported(self, admin, placed_order, stock):
        order = _orders().get(placed_order.id)
        for line in order.lines:
            line.stock_id = None
        _orders().save(order)

        result = _lifecycle().update_status(admin, order.id, "cancelled")
        assert {error.error for error in result.stock_errors} == {"not_found"}
        assert result.order.order_status == OrderStatus.CANCELLED.value


class TestReturn:
    def test_return_within_window(self, customer, admin, placed_order, stock):
        _advance(placed_order, admin, "confirmed", "processing", "shipped", "delivered")
        result = _lifecycle().request_return(customer, placed_order.id, reason="Too small")
        assert result.order.order_status == OrderStatus.RETURNED.value
        assert result.order.history()[-1].note == "Return requested: Too small"
        # Returned goods are not restocked
        assert _counters(stock["shoes"]) == (8, 0)

    def test_return_after_window(self, customer, admin, placed_order):
        order = _advance(placed_order, admin, "confirmed", "processing", "shipped", "delivered")
        order.actual_delivery_date = datetime.now(UTC) - timedelta(days=45)
        _orders().save(order)

        with pytest.raises(ReturnNotAllowed) as exc:
            _lifecycle().request_return(customer, order.id)
        assert "expired" in exc.value.message

    def test_return_before_delivery(self, customer, admin, placed_order):
        _advance(placed_order, admin, "confirmed", "processing", "shipped")
        with pytest.raises(ReturnNotAllowed):
            _lifecycle().request_return(customer, placed_order.id)

    def test_only_owner_may_return(self, admin, placed_order):
        _advance(placed_order, admin, "confirmed", "processing", "shipped", "delivered")
        with pytest.raises(AccessDenied):
            _lifecycle().request_return(admin, placed_order.id)


class TestPaymentAndTracking:
    def test_payment_confirms_order(self, admin, placed_order):
        order = _lifecycle().update_payment(admin, placed_order.id, "paid", transaction_id="txn-42")
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.order_status == OrderStatus.CONFIRMED.value
        stored = _orders().get(placed_order.id)
        assert stored.payment_transaction_id == "txn-42"

    def test_only_admin_updates_payment(self, customer, placed_order):
        with pytest.raises(AccessDenied):
            _lifecycle().update_payment(customer, placed_order.id, "paid")

    def test_tracking(self, admin, placed_order):
        order = _lifecycle().update_tracking(
            admin, placed_order.id, tracking_number="1Z999", shipping_provider="UPS"
        )
        assert order.tracking_number == "1Z999"
        assert _orders().get(placed_order.id).shipping_provider == "UPS"
