"""Integration tests for the cart API endpoints via TestClient."""

from datetime import UTC, datetime, timedelta

from protean import current_domain

from storefront.cart.cart import Cart

CUSTOMER = {"Authorization": "Bearer customer-token"}
OTHER_CUSTOMER = {"Authorization": "Bearer other-token"}
ADMIN = {"Authorization": "Bearer admin-token"}


def _add_item(client, product_id="prod-001", quantity=1, variant_id=None, headers=CUSTOMER):
    response = client.post(
        "/cart/items",
        json={"product_id": product_id, "variant_id": variant_id, "quantity": quantity},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()


class TestCart:
    def test_requires_authentication(self, client):
        assert client.get("/cart").status_code == 401

    def test_get_creates_empty_cart(self, client):
        response = client.get("/cart", headers=CUSTOMER)
        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "user-001"
        assert body["status"] == "active"
        assert body["lines"] == []

    def test_same_cart_is_returned(self, client):
        first = client.get("/cart", headers=CUSTOMER).json()["cart_id"]
        second = client.get("/cart", headers=CUSTOMER).json()["cart_id"]
        assert first == second

    def test_customers_have_separate_carts(self, client):
        _add_item(client)
        other = client.get("/cart", headers=OTHER_CUSTOMER).json()
        assert other["lines"] == []


class TestItems:
    def test_add_item_uses_catalogue_price(self, client):
        body = _add_item(client, quantity=2)
        line = body["lines"][0]
        assert line["unit_price"] == 25.0
        assert line["product_name"] == "Trail Shoe"
        assert line["product_sku"] == "SHOE-001"
        assert body["totals"]["subtotal"] == 50.0

    def test_variant_lookup(self, client):
        body = _add_item(client, product_id="prod-003", variant_id="red")
        assert body["lines"][0]["variant_id"] == "red"
        assert body["lines"][0]["unit_price"] == 19.99

    def test_unknown_product(self, client):
        response = client.post("/cart/items", json={"product_id": "prod-999"}, headers=CUSTOMER)
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_invalid_quantity(self, client):
        response = client.post("/cart/items", json={"product_id": "prod-001", "quantity": 0}, headers=CUSTOMER)
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_quantity"

    def test_update_and_remove_line(self, client):
        line_id = _add_item(client)["lines"][0]["line_id"]

        response = client.patch(f"/cart/items/{line_id}", json={"quantity": 3}, headers=CUSTOMER)
        assert response.json()["totals"]["item_count"] == 3

        response = client.delete(f"/cart/items/{line_id}", headers=CUSTOMER)
        assert response.json()["lines"] == []

    def test_unknown_line(self, client):
        client.get("/cart", headers=CUSTOMER)
        response = client.patch("/cart/items/missing", json={"quantity": 3}, headers=CUSTOMER)
        assert response.status_code == 404
        assert response.json()["error"] == "line_not_found"

    def test_clear(self, client):
        _add_item(client)
        _add_item(client, product_id="prod-002")
        response = client.delete("/cart", headers=CUSTOMER)
        assert response.json()["lines"] == []
        assert response.json()["totals"]["total"] == 0.0

    def test_clear_drops_charges(self, client):
        _add_item(client, quantity=2)
        client.put("/cart/charges", json={"tax": 4.0, "shipping": 6.0}, headers=CUSTOMER)
        response = client.delete("/cart", headers=CUSTOMER)
        totals = response.json()["totals"]
        assert totals["tax"] == 0.0
        assert totals["shipping"] == 0.0
        assert totals["total"] == 0.0

    def test_contains(self, client):
        response = client.get("/cart/contains", params={"product_id": "prod-001"}, headers=CUSTOMER)
        assert response.json() == {"in_cart": False, "quantity": 0}

        _add_item(client, quantity=3)
        _add_item(client, product_id="prod-003", variant_id="red")

        response = client.get("/cart/contains", params={"product_id": "prod-001"}, headers=CUSTOMER)
        assert response.json() == {"in_cart": True, "quantity": 3}
        response = client.get(
            "/cart/contains", params={"product_id": "prod-003", "variant_id": "red"}, headers=CUSTOMER
        )
        assert response.json() == {"in_cart": True, "quantity": 1}
        response = client.get("/cart/contains", params={"product_id": "prod-003"}, headers=CUSTOMER)
        assert response.json()["in_cart"] is False
        response = client.get("/cart/contains", params={"product_id": "prod-001"}, headers=OTHER_CUSTOMER)
        assert response.json()["in_cart"] is False


class TestCouponsAndCharges:
    def test_apply_and_remove_coupon(self, client):
        _add_item(client, quantity=4)

        response = client.post("/cart/coupons", json={"code": "save10", "value": 10}, headers=CUSTOMER)
        body = response.json()
        assert body["coupons"][0]["code"] == "SAVE10"
        assert body["totals"]["discount"] == 10.0
        assert body["totals"]["total"] == 90.0

        response = client.post("/cart/coupons", json={"code": "SAVE10"}, headers=CUSTOMER)
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_coupon"

        response = client.delete("/cart/coupons/SAVE10", headers=CUSTOMER)
        assert response.json()["coupons"] == []

    def test_remove_unknown_coupon(self, client):
        _add_item(client)
        response = client.delete("/cart/coupons/NOPE", headers=CUSTOMER)
        assert response.status_code == 404

    def test_charges_and_summary(self, client):
        _add_item(client, quantity=2)
        client.put("/cart/charges", json={"tax": 5.0, "shipping": 7.5}, headers=CUSTOMER)

        summary = client.get("/cart/summary", headers=CUSTOMER).json()
        assert summary == {
            "item_count": 2,
            "subtotal": 50.0,
            "discount": 0.0,
            "tax": 5.0,
            "shipping": 7.5,
            "total": 62.5,
        }


class TestAbandonment:
    def test_detect_and_list_abandoned(self, client):
        cart_id = _add_item(client)["cart_id"]
        repo = current_domain.repository_for(Cart)
        cart = repo.get(cart_id)
        cart.updated_at = datetime.now(UTC) - timedelta(hours=30)
        repo.save(cart)

        response = client.post("/maintenance/detect-abandoned-carts", json={"idle_threshold_hours": 24}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json() == {"abandoned_count": 1}

        abandoned = client.get("/cart/abandoned", headers=ADMIN).json()
        assert [c["cart_id"] for c in abandoned] == [cart_id]

        # The customer starts over with a fresh cart
        assert client.get("/cart", headers=CUSTOMER).json()["cart_id"] != cart_id

    def test_maintenance_requires_admin(self, client):
        response = client.post("/maintenance/detect-abandoned-carts", json={}, headers=CUSTOMER)
        assert response.status_code == 403
        assert client.get("/cart/abandoned", headers=CUSTOMER).status_code == 403
