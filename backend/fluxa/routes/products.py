# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/fluxa/routes/products.py
"""
Product management routes.

Listing is public (storefront catalog); every other route requires
authentication. Stock is never written through product create/update:
the starting quantity becomes an initial adjustment movement and later
changes go through /adjust or /api/inventory.
"""
from flask import Blueprint, request, current_app

from ..services import products_service, stock_service
from ..services.errors import NotFoundError, InsufficientStockError, PersistenceError
from ..models import Product
from ..validation import (
    MAX_INT,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_positive_int,
    coerce_int,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "title", "description", "category", "status",
        "purchase_price", "sale_price", "quantity", "supplier_id",
    },
    required_on_create={"title", "category", "purchase_price", "sale_price", "supplier_id"},
)

# quantity is deliberately absent: stock only moves through the ledger
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    return [p.to_dict() for p in products_service.list_products()]


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch)
    except NotFoundError as e:
        return {"error": e.message, "details": e.details}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PersistenceError as e:
        return {"error": e.message}, 500

    return created.to_dict(), 201


@products_bp.get(f"/<int(max={MAX_INT}):product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404
    return product.to_dict(), 200


@products_bp.put(f"/<int(max={MAX_INT}):product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return {"error": e.message, "details": e.details}, 404
    except PersistenceError as e:
        return {"error": e.message}, 500

    return updated.to_dict(), 200


@products_bp.delete(f"/<int(max={MAX_INT}):product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError as e:
        return {"error": e.message}, 500

    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200


@products_bp.post("/adjust")
@require_auth
def adjust_stock_route():
    """
    Manual stock correction.

    Body: {"product_id": 1, "quantity": -2, "reason": "Damaged in transit"}
    quantity is a signed delta; the result may not go below zero.
    """
    payload = request.get_json(silent=True) or {}

    try:
        product_id = coerce_positive_int(payload.get("product_id", payload.get("productId")), "product_id")
        quantity = coerce_int(payload.get("quantity"), "quantity")
        reason = payload.get("reason")
        if reason is not None and not isinstance(reason, str):
            raise ValidationError("reason must be a string")
        if reason and len(reason) > 255:
            raise ValidationError("reason exceeds max length 255")

        stock_service.adjust_stock(product_id, quantity, reason=reason)
        product = products_service.get_product(product_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except InsufficientStockError as e:
        return {"error": e.message, "details": e.details}, 400
    except NotFoundError as e:
        return {"error": e.message, "details": e.details}, 404
    except PersistenceError as e:
        return {"error": e.message}, 500
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 200
