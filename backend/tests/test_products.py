"""
Product catalog tests (service and routes).

Verifies:
- Starting stock goes through the ledger
- quantity is not writable through update
- Products with sales history cannot be deleted
"""

from decimal import Decimal

import pytest

from fluxa.extensions import db
from fluxa.models import Product, StockMovement, MovementType
from fluxa.services import products_service, sales_service
from fluxa.services.errors import NotFoundError
from fluxa.validation import ConflictError, ValidationError


# =============================================================================
# Service
# =============================================================================


class TestProductsService:

    def test_create_requires_existing_supplier(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.create_product(patch={
                "title": "Orphan",
                "category": "Misc",
                "purchase_price": Decimal("1.00"),
                "sale_price": Decimal("2.00"),
                "supplier_id": 8080,
                "quantity": 5,
            })
        assert db_session.query(Product).count() == 0
        assert db_session.query(StockMovement).count() == 0

    def test_update_rejects_quantity(self, product):
        with pytest.raises(ValidationError):
            products_service.update_product(product_id=product.id, patch={"quantity": 50})

        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == 10

    def test_update_fields(self, product):
        updated = products_service.update_product(
            product_id=product.id,
            patch={"title": "Widget Pro", "sale_price": Decimal("30.00")},
        )
        assert updated.title == "Widget Pro"
        assert updated.sale_price == Decimal("30.00")
        assert updated.quantity == 10

    def test_update_missing(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.update_product(product_id=1234, patch={"title": "x"})

    def test_delete_cascades_movements(self, product, db_session):
        assert products_service.delete_product(product_id=product.id) is True
        assert db_session.query(Product).count() == 0
        assert db_session.query(StockMovement).count() == 0

    def test_delete_with_sales_refused(self, product, db_session):
        sales_service.create_sale([{"productId": product.id, "quantity": 1}])

        with pytest.raises(ConflictError):
            products_service.delete_product(product_id=product.id)
        assert db_session.query(Product).count() == 1

    def test_delete_missing(self, db_session):
        assert products_service.delete_product(product_id=999) is False

    def test_get_products_by_ids(self, make_product):
        a = make_product(title="A")
        b = make_product(title="B")

        found = products_service.get_products_by_ids([a.id, b.id, 31337])
        assert set(found) == {a.id, b.id}
        assert products_service.get_products_by_ids([]) == {}


# =============================================================================
# Routes
# =============================================================================


class TestProductRoutes:

    def _payload(self, supplier_id, **overrides):
        payload = {
            "title": "Lamp",
            "category": "Home",
            "purchase_price": "12.50",
            "sale_price": "29.90",
            "supplier_id": supplier_id,
            "quantity": 4,
        }
        payload.update(overrides)
        return payload

    def test_list_is_public(self, client, product):
        resp = client.get("/api/products")
        assert resp.status_code == 200
        assert resp.json[0]["title"] == "Widget"
        assert resp.json[0]["sale_price"] == "25.00"

    def test_create(self, client, auth_headers, supplier, movements_of):
        resp = client.post("/api/products", json=self._payload(supplier.id), headers=auth_headers)

        assert resp.status_code == 201
        body = resp.json
        assert body["quantity"] == 4
        assert body["status"] == "announced"
        assert body["purchase_price"] == "12.50"

        rows = movements_of(body["id"])
        assert [(m.type, m.quantity) for m in rows] == [(MovementType.INITIAL_ADJUSTMENT, 4)]

    @pytest.mark.parametrize("overrides", [
        {"sale_price": "-1.00"},
        {"purchase_price": "1.234"},
        {"quantity": -1},
        {"status": "archived"},
        {"title": ""},
        {"sku": "ABC"},
    ])
    def test_create_validation(self, client, auth_headers, supplier, overrides):
        resp = client.post("/api/products", json=self._payload(supplier.id, **overrides), headers=auth_headers)
        assert resp.status_code == 400

    def test_create_missing_field(self, client, auth_headers, supplier):
        payload = self._payload(supplier.id)
        del payload["category"]
        resp = client.post("/api/products", json=payload, headers=auth_headers)
        assert resp.status_code == 400
        assert "category" in resp.json["error"]

    def test_create_unknown_supplier(self, client, auth_headers, db_session):
        resp = client.post("/api/products", json=self._payload(777), headers=auth_headers)
        assert resp.status_code == 404

    def test_create_requires_auth(self, client, supplier):
        assert client.post("/api/products", json=self._payload(supplier.id)).status_code == 401

    def test_get(self, client, auth_headers, product):
        assert client.get(f"/api/products/{product.id}", headers=auth_headers).json["id"] == product.id
        assert client.get("/api/products/999999", headers=auth_headers).status_code == 404

    def test_update(self, client, auth_headers, product):
        resp = client.put(
            f"/api/products/{product.id}",
            json={"status": "sold", "sale_price": 27.5},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "sold"
        assert resp.json["sale_price"] == "27.50"

    def test_update_quantity_rejected(self, client, auth_headers, product):
        resp = client.put(f"/api/products/{product.id}", json={"quantity": 100}, headers=auth_headers)
        assert resp.status_code == 400

    def test_delete_with_sales_conflict(self, client, auth_headers, product):
        sales_service.create_sale([{"productId": product.id, "quantity": 1}])
        resp = client.delete(f"/api/products/{product.id}", headers=auth_headers)
        assert resp.status_code == 409

    def test_delete(self, client, auth_headers, product):
        assert client.delete(f"/api/products/{product.id}", headers=auth_headers).status_code == 200
        assert client.delete(f"/api/products/{product.id}", headers=auth_headers).status_code == 404

    def test_adjust(self, client, auth_headers, product):
        resp = client.post(
            "/api/products/adjust",
            json={"product_id": product.id, "quantity": 5, "reason": "Found in back room"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json["quantity"] == 15

    def test_adjust_below_zero(self, client, auth_headers, product):
        resp = client.post(
            "/api/products/adjust",
            json={"product_id": product.id, "quantity": -20},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json["details"]["available"] == 10

    def test_adjust_zero(self, client, auth_headers, product):
        resp = client.post(
            "/api/products/adjust",
            json={"product_id": product.id, "quantity": 0},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("field", ["product_id", "quantity"])
    def test_adjust_rejects_oversized_integers(self, client, auth_headers, product, field):
        body = {"product_id": product.id, "quantity": 1}
        body[field] = 2**70
        resp = client.post("/api/products/adjust", json=body, headers=auth_headers)

        assert resp.status_code == 400
        assert "out of range" in resp.json["error"]
        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == 10
