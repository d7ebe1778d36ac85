# backend/fluxa/services/products_service.py
"""
Products Service

Plain catalog persistence around the stock ledger:
- create_product inserts the row with quantity 0 and books the starting stock
  as an INITIAL_ADJUSTMENT movement in the same unit of work
- update_product only touches PRODUCT_MUTABLE_FIELDS; stock is never editable here
- delete_product is refused once the product appears on a sale
"""
from __future__ import annotations

import logging
from typing import Iterable

from ..extensions import db
from ..models import Product, SaleItem, Supplier, MovementType
from ..validation import ConflictError, ValidationError
from .concurrency import lock_for_update, unit_of_work
from .errors import NotFoundError
from .stock_service import add_movement

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "title",
    "description",
    "category",
    "status",
    "purchase_price",
    "sale_price",
    "supplier_id",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {k}")
        setattr(p, k, v)


def _require_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(
            f"Supplier {supplier_id} does not exist",
            details={"supplier_id": supplier_id},
        )
    return supplier


def list_products() -> list[Product]:
    return db.session.query(Product).order_by(Product.title.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_products_by_ids(product_ids: Iterable[int]) -> dict[int, Product]:
    """Batch lookup; missing ids are simply absent from the result."""
    ids = set(product_ids)
    if not ids:
        return {}
    products = db.session.query(Product).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in products}


def create_product(*, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    patch["quantity"] is the starting stock. It is recorded through the ledger,
    never written to the product row directly.

    Raises:
        NotFoundError: supplier_id does not exist
    """
    patch = dict(patch)
    starting_quantity = patch.pop("quantity", 0) or 0

    with unit_of_work("create product"):
        _require_supplier(patch["supplier_id"])

        p = Product()
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.flush()  # ensure p.id exists before the ledger append

        if starting_quantity:
            add_movement(p.id, starting_quantity, MovementType.INITIAL_ADJUSTMENT, note="Initial stock")

    logger.info("Created product %s (%s) with starting stock %s", p.id, p.title, starting_quantity)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    with unit_of_work("update product"):
        p = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
        if p is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

        if "supplier_id" in patch:
            _require_supplier(patch["supplier_id"])

        apply_product_patch(p, patch)
        db.session.flush()

    return p


def delete_product(*, product_id: int) -> bool:
    """
    Delete a product and (by cascade) its stock movements.

    Returns False when the product does not exist.
    Raises ConflictError when any sale item references the product.
    """
    with unit_of_work("delete product"):
        p = db.session.get(Product, product_id)
        if p is None:
            return False

        has_sales = db.session.query(SaleItem.id).filter(SaleItem.product_id == product_id).first()
        if has_sales is not None:
            raise ConflictError("Product has sales history and cannot be deleted. Deactivate it instead.")

        db.session.delete(p)

    logger.info("Deleted product %s", product_id)
    return True
