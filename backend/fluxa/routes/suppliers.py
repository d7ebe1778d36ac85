# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier Routes

SECURITY: All routes require authentication.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..services import supplier_service
from ..validation import ValidationError, ConflictError


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    suppliers = supplier_service.list_suppliers()
    return jsonify([s.to_dict() for s in suppliers])


@suppliers_bp.post("")
@require_auth
def create_supplier_route():
    """
    Create a new supplier.

    Request body:
    {
        "company_name": "Acme Ltda",        // required
        "cnpj": "12.345.678/0001-90",       // required, unique
        "contact_name": "Maria",            // optional
        "phone": "+55 11 5555-0000"         // optional
    }
    """
    data = request.get_json(silent=True) or {}

    unknown = set(data) - {"company_name", "cnpj", "contact_name", "phone"}
    if unknown:
        return jsonify({"error": f"Field not allowed: {sorted(unknown)[0]}"}), 400

    try:
        supplier = supplier_service.create_supplier(
            company_name=data.get("company_name"),
            cnpj=data.get("cnpj"),
            contact_name=data.get("contact_name"),
            phone=data.get("phone"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(supplier.to_dict()), 201
