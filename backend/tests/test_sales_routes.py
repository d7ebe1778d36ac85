"""
HTTP tests for /api/sales and the inventory endpoints.

Verifies status codes and the {error, details} body on rejected carts.
"""

import pytest

from fluxa.extensions import db
from fluxa.models import Product, Sale


class TestSalesRoutes:

    def test_requires_auth(self, client, db_session):
        resp = client.post("/api/sales", json={"items": [{"productId": 1, "quantity": 1}]})
        assert resp.status_code == 401

    def test_create_sale(self, client, auth_headers, product):
        resp = client.post(
            "/api/sales",
            json={"items": [{"productId": product.id, "quantity": 3}]},
            headers=auth_headers,
        )

        assert resp.status_code == 201
        sale = resp.json
        assert set(sale) == {"id", "totalAmount", "createdAt", "items"}
        assert sale["totalAmount"] == "75.00"
        assert sale["createdAt"].endswith("Z")
        assert sale["items"][0]["productId"] == product.id
        assert sale["items"][0]["quantitySold"] == 3
        assert sale["items"][0]["pricePerUnit"] == "25.00"
        assert sale["items"][0]["costPerUnit"] == "10.00"
        assert sale["items"][0]["product"]["title"] == "Widget"

        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == 7

    def test_insufficient_stock_returns_400_with_details(self, client, auth_headers, product, db_session):
        resp = client.post(
            "/api/sales",
            json={"items": [{"productId": product.id, "quantity": 11}]},
            headers=auth_headers,
        )

        assert resp.status_code == 400
        assert resp.json["error"] == 'Insufficient stock for "Widget". Available: 10, requested: 11.'
        assert resp.json["details"]["available"] == 10
        assert db_session.query(Sale).count() == 0

    def test_unknown_product_returns_400(self, client, auth_headers, db_session):
        resp = client.post(
            "/api/sales",
            json={"items": [{"productId": 31337, "quantity": 1}]},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert "31337" in resp.json["error"]

    @pytest.mark.parametrize("body", [
        {},
        {"items": []},
        {"items": [{"productId": 1, "quantity": 0}]},
        {"items": [{"productId": 1, "quantity": 1}], "total_amount": "1.00"},
        {"items": [{"productId": 2**70, "quantity": 1}]},
    ])
    def test_malformed_body_returns_400(self, client, auth_headers, body):
        resp = client.post("/api/sales", json=body, headers=auth_headers)
        assert resp.status_code == 400
        assert "error" in resp.json

    def test_list_and_get(self, client, auth_headers, product):
        created = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 1}]},
            headers=auth_headers,
        ).json

        listing = client.get("/api/sales", headers=auth_headers)
        assert listing.status_code == 200
        assert [s["id"] for s in listing.json] == [created["id"]]

        detail = client.get(f"/api/sales/{created['id']}", headers=auth_headers)
        assert detail.status_code == 200
        assert detail.json["items"][0]["productId"] == product.id

        assert client.get("/api/sales/999999", headers=auth_headers).status_code == 404
        assert client.get(f"/api/sales/{2**70}", headers=auth_headers).status_code == 404


class TestInventoryRoutes:

    def test_purchase(self, client, auth_headers, product):
        resp = client.post(
            "/api/inventory/purchases",
            json={"product_id": product.id, "quantity": 6, "note": "NF 77"},
            headers=auth_headers,
        )

        assert resp.status_code == 201
        assert resp.json["movement"]["type"] == "purchase"
        assert resp.json["quantity"] == 16

    def test_purchase_rejects_zero(self, client, auth_headers, product):
        resp = client.post(
            "/api/inventory/purchases",
            json={"product_id": product.id, "quantity": 0},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_purchase_rejects_oversized_quantity(self, client, auth_headers, product):
        resp = client.post(
            "/api/inventory/purchases",
            json={"product_id": product.id, "quantity": 2**70},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert "out of range" in resp.json["error"]

    def test_purchase_unknown_product(self, client, auth_headers, db_session):
        resp = client.post(
            "/api/inventory/purchases",
            json={"product_id": 5555, "quantity": 1},
            headers=auth_headers,
        )
        assert resp.status_code == 404

    def test_movements(self, client, auth_headers, product):
        client.post(
            "/api/products/adjust",
            json={"product_id": product.id, "quantity": -2, "reason": "Broken"},
            headers=auth_headers,
        )

        resp = client.get(f"/api/inventory/{product.id}/movements", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json["quantity"] == 8
        assert [m["type"] for m in resp.json["movements"]] == ["manual_adjustment", "initial_adjustment"]
        assert resp.json["movements"][0]["note"] == "Broken"

    def test_movements_unknown_product(self, client, auth_headers, db_session):
        assert client.get("/api/inventory/404/movements", headers=auth_headers).status_code == 404
