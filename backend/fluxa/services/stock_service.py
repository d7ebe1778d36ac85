# Overview: Service-layer operations for the stock ledger; the only writer of Product.quantity.

"""
Fluxa Stock Ledger Invariants (authoritative)

Ledger model:
- StockMovement rows are the source of truth for stock. They are append-only:
  one row per stock-affecting event, never updated, never merged.
- quantity is signed: positive = inbound (purchase, positive adjustment),
  negative = outbound (sale, negative adjustment). Zero is rejected.

Cache:
- Product.quantity caches SUM(stock_movements.quantity) for the product.
- add_movement recomputes the cache from the full ledger (not incrementally)
  after every insert, so a drifted cache heals on the next write.
- Every write to Product.quantity goes through _refresh_cache: add_movement
  after each insert, and rebuild_stock_cache for operator repair. Both write
  the ledger SUM, never a caller-supplied value.

Transactions:
- Movement insert + recompute + cache write happen in one unit of work.
  A missing product fails the whole unit (no orphan movement is left behind).
- When called from inside another unit of work (sale processing), the
  movement joins that transaction and commits or rolls back with it.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import Product, StockMovement, MovementType
from ..validation import ValidationError, coerce_enum, coerce_int
from .concurrency import lock_for_update, unit_of_work
from .errors import InsufficientStockError, NotFoundError

logger = logging.getLogger(__name__)


def _locked_product(product_id: int) -> Product:
    product = lock_for_update(
        db.session.query(Product).filter(Product.id == product_id)
    ).populate_existing().first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_stock_level(product_id: int) -> int:
    """Authoritative stock: SUM of all movements for the product (0 when none)."""
    total = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity), 0)
    ).filter(
        StockMovement.product_id == product_id,
    ).scalar()
    return int(total or 0)


def _refresh_cache(product: Product) -> int:
    """Overwrite product.quantity with the ledger SUM. Returns the previous cached value."""
    previous = product.quantity
    product.quantity = get_stock_level(product.id)
    return previous


def add_movement(
    product_id: int,
    quantity: int,
    movement_type: MovementType | str,
    note: str | None = None,
) -> StockMovement:
    """
    Append one stock movement and refresh the product's cached quantity.

    Raises:
        ValidationError: quantity is zero/not an integer, or movement_type is unknown
        NotFoundError: the product does not exist (checked inside the transaction)
        PersistenceError: storage failure (raised by the unit of work)
    """
    quantity = coerce_int(quantity, "quantity")
    if quantity == 0:
        raise ValidationError("quantity must be non-zero")
    movement_type = coerce_enum(MovementType, movement_type, "type")

    with unit_of_work("stock movement"):
        product = _locked_product(product_id)

        movement = StockMovement(
            product_id=product.id,
            quantity=quantity,
            type=movement_type,
            note=note,
        )
        db.session.add(movement)
        db.session.flush()

        _refresh_cache(product)
        db.session.flush()

        logger.info(
            "Stock movement %s: product=%s delta=%+d type=%s quantity=%s",
            movement.id, product.id, quantity, movement_type.value, product.quantity,
        )

    return movement


def adjust_stock(product_id: int, quantity: int, reason: str | None = None) -> StockMovement:
    """
    Manual correction (count differences, damage, a reversed sale).

    Rejects adjustments that would take stock below zero.
    """
    quantity = coerce_int(quantity, "quantity")
    if quantity == 0:
        raise ValidationError("quantity must be non-zero")

    with unit_of_work("stock adjustment"):
        product = _locked_product(product_id)
        current = get_stock_level(product.id)
        if current + quantity < 0:
            raise InsufficientStockError(
                product_id=product.id,
                title=product.title,
                available=current,
                requested=-quantity,
            )
        return add_movement(
            product.id,
            quantity,
            MovementType.MANUAL_ADJUSTMENT,
            note=reason or "Manual stock adjustment",
        )


def record_purchase(product_id: int, quantity: int, note: str | None = None) -> StockMovement:
    """Inbound stock from a supplier purchase."""
    quantity = coerce_int(quantity, "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be > 0 for a purchase")
    return add_movement(product_id, quantity, MovementType.PURCHASE, note=note)


def list_movements(product_id: int, limit: int = 200) -> list[StockMovement]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    return (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def find_stock_drift() -> list[dict]:
    """
    Products whose cached quantity differs from the ledger sum.

    Should always be empty; anything listed here was written outside add_movement.
    """
    ledger = (
        db.session.query(
            StockMovement.product_id.label("product_id"),
            func.sum(StockMovement.quantity).label("total"),
        )
        .group_by(StockMovement.product_id)
        .subquery()
    )
    rows = (
        db.session.query(Product, func.coalesce(ledger.c.total, 0))
        .outerjoin(ledger, ledger.c.product_id == Product.id)
        .filter(Product.quantity != func.coalesce(ledger.c.total, 0))
        .order_by(Product.id.asc())
        .all()
    )
    return [
        {
            "product_id": product.id,
            "title": product.title,
            "cached_quantity": product.quantity,
            "ledger_quantity": int(total),
        }
        for product, total in rows
    ]


def rebuild_stock_cache(product_id: int | None = None) -> int:
    """
    Recompute cached quantities from the ledger. Returns how many products changed.

    Operator repair path; does not append movements.
    """
    with unit_of_work("stock cache rebuild"):
        query = lock_for_update(db.session.query(Product))
        if product_id is not None:
            query = query.filter(Product.id == product_id)
        products = query.order_by(Product.id.asc()).all()
        if product_id is not None and not products:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

        changed = 0
        for product in products:
            previous = _refresh_cache(product)
            if previous != product.quantity:
                logger.warning(
                    "Stock cache drift on product %s: cached=%s ledger=%s",
                    product.id, previous, product.quantity,
                )
                changed += 1
        db.session.flush()

    return changed
