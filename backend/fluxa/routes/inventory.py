# backend/fluxa/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require authentication.

Every stock change here is a StockMovement appended through the ledger;
the product's cached quantity is refreshed in the same transaction.
"""
from flask import Blueprint, request, current_app

from ..models import StockMovement
from ..services import stock_service
from ..services.errors import NotFoundError, PersistenceError
from ..validation import (
    MAX_INT,
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
)
from ..decorators import require_auth


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "note"},
    required_on_create={"product_id", "quantity"},
)


@inventory_bp.post("/purchases")
@require_auth
def record_purchase_route():
    """
    Book inbound stock from a supplier purchase.

    Body: {"product_id": 1, "quantity": 12, "note": "NF 1234"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockMovement,
            payload=payload,
            policy=PURCHASE_POLICY,
            partial=False,
        )
        movement = stock_service.record_purchase(
            patch["product_id"],
            patch["quantity"],
            note=patch.get("note"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": e.message, "details": e.details}, 404
    except PersistenceError as e:
        return {"error": e.message}, 500

    return {
        "movement": movement.to_dict(),
        "quantity": stock_service.get_stock_level(movement.product_id),
    }, 201


@inventory_bp.get(f"/<int(max={MAX_INT}):product_id>/movements")
@require_auth
def list_movements_route(product_id: int):
    """
    Ledger rows for a product, newest first.

    Query params:
    - limit: int (optional, default 200, max 1000)
    """
    limit = request.args.get("limit", 200, type=int)
    limit = max(1, min(limit, 1000))

    try:
        movements = stock_service.list_movements(product_id, limit=limit)
    except NotFoundError as e:
        return {"error": e.message, "details": e.details}, 404
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return {"error": "Internal server error"}, 500

    return {
        "product_id": product_id,
        "quantity": stock_service.get_stock_level(product_id),
        "movements": [m.to_dict() for m in movements],
    }, 200
