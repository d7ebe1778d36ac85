# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/fluxa/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import sales_service
from ..services.errors import (
    NotFoundError,
    ProductUnavailableError,
    InsufficientStockError,
    PersistenceError,
)
from ..validation import MAX_INT, ValidationError, parse_sale_request
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Check out a cart in one transaction.

    Body: {"items": [{"productId": 1, "quantity": 2}, ...]}

    Returns 201 with the committed sale. Any rejected line fails the whole
    cart with 400 and nothing is written.
    """
    try:
        lines = parse_sale_request(request.get_json(silent=True))
        sale = sales_service.create_sale(lines)
        return jsonify(sale.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "details": {}}), 400
    except (NotFoundError, ProductUnavailableError, InsufficientStockError) as e:
        return jsonify({"error": e.message, "details": e.details}), 400
    except PersistenceError:
        return jsonify({"error": "Could not complete the sale. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    try:
        sales = sales_service.list_sales()
        return jsonify([s.to_dict() for s in sales]), 200
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get(f"/<int(max={MAX_INT}):sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify(sale.to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": e.message}), 404
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500
