"""Integration tests for the order API endpoints via TestClient."""

import pytest

CUSTOMER = {"Authorization": "Bearer customer-token"}
OTHER_CUSTOMER = {"Authorization": "Bearer other-token"}
ADMIN = {"Authorization": "Bearer admin-token"}

ADDRESS = {"street": "1 Main St", "city": "Springfield", "country": "US", "postal_code": "12345"}


@pytest.fixture()
def stock_ids(client):
    ids = {}
    for product_id, initial_stock in (("prod-001", 10), ("prod-002", 1)):
        response = client.post(
            "/stock",
            json={"product_id": product_id, "location_id": "wh-east", "initial_stock": initial_stock},
            headers=ADMIN,
        )
        ids[product_id] = response.json()["stock_id"]
    return ids


def _fill_cart(client, *items):
    for product_id, quantity in items:
        response = client.post("/cart/items", json={"product_id": product_id, "quantity": quantity}, headers=CUSTOMER)
        assert response.status_code == 200


def _place_order(client):
    response = client.post("/orders", json={"billing_address": ADDRESS, "payment_method": "card"}, headers=CUSTOMER)
    assert response.status_code == 201
    return response.json()


def _stock(client, stock_id):
    return client.get(f"/stock/{stock_id}", headers=ADMIN).json()


def _set_status(client, order_id, *statuses):
    for status in statuses:
        response = client.put(f"/orders/{order_id}/status", json={"status": status}, headers=ADMIN)
        assert response.status_code == 200
    return response.json()


class TestPlaceOrder:
    def test_checkout(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 2))
        order = _place_order(client)

        assert order["order_status"] == "pending"
        assert order["financials"]["total"] == 50.0
        assert order["shipping_address"] == order["billing_address"]
        assert order["status_history"][0]["note"] == "Order placed"
        assert _stock(client, stock_ids["prod-001"])["reserved_stock"] == 2

        cart = client.get("/cart", headers=CUSTOMER).json()
        assert cart["lines"] == []

    def test_empty_cart(self, client, stock_ids):
        response = client.post("/orders", json={"billing_address": ADDRESS}, headers=CUSTOMER)
        assert response.status_code == 400
        assert response.json()["error"] == "empty_cart"

    def test_insufficient_stock(self, client, stock_ids):
        _fill_cart(client, ("prod-002", 3))
        response = client.post("/orders", json={"billing_address": ADDRESS}, headers=CUSTOMER)
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "insufficient_stock"
        assert body["shortfall"] == 2
        assert client.get("/orders", headers=CUSTOMER).json() == []


class TestReadOrders:
    def test_list_and_get(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)

        listed = client.get("/orders", headers=CUSTOMER).json()
        assert [o["order_id"] for o in listed] == [order["order_id"]]

        by_id = client.get(f"/orders/{order['order_id']}", headers=CUSTOMER).json()
        by_number = client.get(f"/orders/number/{order['order_number']}", headers=CUSTOMER).json()
        assert by_id["order_number"] == by_number["order_number"]

    def test_other_customer_denied(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)
        response = client.get(f"/orders/{order['order_id']}", headers=OTHER_CUSTOMER)
        assert response.status_code == 403
        assert client.get("/orders", headers=OTHER_CUSTOMER).json() == []

    def test_admin_sees_all(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        _place_order(client)
        assert len(client.get("/orders", headers=ADMIN).json()) == 1


class TestTransitions:
    def test_cancel_releases_stock(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 2))
        order = _place_order(client)

        response = client.post(f"/orders/{order['order_id']}/cancel", json={"reason": "Oops"}, headers=CUSTOMER)
        assert response.status_code == 200
        body = response.json()
        assert body["order"]["order_status"] == "cancelled"
        assert body["stock_errors"] == []
        assert _stock(client, stock_ids["prod-001"])["reserved_stock"] == 0

    def test_ship_deducts_stock(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 2))
        order = _place_order(client)

        body = _set_status(client, order["order_id"], "confirmed", "processing", "shipped")
        assert body["order"]["order_status"] == "shipped"

        record = _stock(client, stock_ids["prod-001"])
        assert record["current_stock"] == 8
        assert record["reserved_stock"] == 0

    def test_invalid_transition(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)
        response = client.put(f"/orders/{order['order_id']}/status", json={"status": "delivered"}, headers=ADMIN)
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "invalid_transition"
        assert body["current"] == "pending"
        assert body["requested"] == "delivered"

    def test_customer_cannot_set_status(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)
        response = client.put(f"/orders/{order['order_id']}/status", json={"status": "confirmed"}, headers=CUSTOMER)
        assert response.status_code == 403

    def test_return_after_delivery(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)
        _set_status(client, order["order_id"], "confirmed", "processing", "shipped", "delivered")

        response = client.post(f"/orders/{order['order_id']}/return", json={"reason": "Too big"}, headers=CUSTOMER)
        assert response.status_code == 200
        assert response.json()["order"]["order_status"] == "returned"

    def test_return_before_delivery(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)
        response = client.post(f"/orders/{order['order_id']}/return", json={}, headers=CUSTOMER)
        assert response.status_code == 409
        assert response.json()["error"] == "return_not_allowed"


class TestPaymentAndTracking:
    def test_payment_confirms(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)
        response = client.put(
            f"/orders/{order['order_id']}/payment",
            json={"payment_status": "paid", "transaction_id": "txn-1"},
            headers=ADMIN,
        )
        body = response.json()
        assert body["payment_status"] == "paid"
        assert body["order_status"] == "confirmed"

    def test_unknown_payment_status(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)
        response = client.put(
            f"/orders/{order['order_id']}/payment", json={"payment_status": "maybe"}, headers=ADMIN
        )
        assert response.status_code == 400

    def test_tracking(self, client, stock_ids):
        _fill_cart(client, ("prod-001", 1))
        order = _place_order(client)
        response = client.put(
            f"/orders/{order['order_id']}/tracking",
            json={"tracking_number": "1Z999", "shipping_provider": "UPS"},
            headers=ADMIN,
        )
        assert response.json()["tracking_number"] == "1Z999"
        assert response.json()["status_history"][-1]["status"] == "tracking_updated"
