"""
Sales Service - atomic multi-item checkout

A cart of {productId, quantity} lines becomes one committed Sale. Everything
(sale row, items, stock debits) is written in a single unit of work, so a
failure on any line leaves no Sale, SaleItem or StockMovement behind.

RULES:
- Products are batch-loaded with row locks; stock checks and debits for the
  same product are serialized across concurrent checkouts.
- Lines are validated in request order against a running remaining-stock
  figure, so repeated lines for one product add up.
- Only DEACTIVATED products are blocked. SOLD is a listing label and does not
  stop a sale while stock remains (see SALE_BLOCKING_STATUSES).
- Prices are frozen from the product at read time; the total is the exact
  Decimal sum of price_per_unit * quantity.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Sale, SaleItem, Product, ProductStatus, MovementType
from ..validation import MONEY_QUANT, SaleLineRequest, parse_sale_lines
from .concurrency import lock_for_update, unit_of_work
from .errors import InsufficientStockError, NotFoundError, ProductUnavailableError
from .stock_service import add_movement

logger = logging.getLogger(__name__)

SALE_BLOCKING_STATUSES = frozenset({ProductStatus.DEACTIVATED})


def _load_products_locked(product_ids: Iterable[int]) -> dict[int, Product]:
    ids = sorted(set(product_ids))
    products = (
        lock_for_update(db.session.query(Product).filter(Product.id.in_(ids)))
        .order_by(Product.id.asc())
        .populate_existing()
        .all()
    )
    by_id = {p.id: p for p in products}

    for product_id in ids:
        if product_id not in by_id:
            raise NotFoundError(
                f"Product with ID {product_id} not found",
                details={"product_id": product_id},
            )
    return by_id


def _build_items(lines: list[SaleLineRequest], products: dict[int, Product]) -> tuple[list[SaleItem], Decimal]:
    remaining = {product_id: product.quantity for product_id, product in products.items()}
    items: list[SaleItem] = []
    total = Decimal("0.00")

    for line in lines:
        product = products[line.product_id]

        if product.status in SALE_BLOCKING_STATUSES:
            raise ProductUnavailableError(
                f'Product "{product.title}" is {product.status.value} and cannot be sold',
                details={"product_id": product.id, "title": product.title, "status": product.status.value},
            )

        available = remaining[product.id]
        if line.quantity > available:
            raise InsufficientStockError(
                product_id=product.id,
                title=product.title,
                available=available,
                requested=line.quantity,
            )
        remaining[product.id] = available - line.quantity

        price = Decimal(product.sale_price)
        cost = Decimal(product.purchase_price)
        items.append(SaleItem(
            product_id=product.id,
            quantity_sold=line.quantity,
            price_per_unit=price,
            cost_per_unit=cost,
        ))
        total += price * line.quantity

    return items, total.quantize(MONEY_QUANT)


def create_sale(items) -> Sale:
    """
    Validate a cart, persist the sale with frozen prices and debit stock.

    Args:
        items: sequence of {"productId": int, "quantity": int} (or SaleLineRequest)

    Raises:
        ValidationError: empty cart, missing or non-positive ids/quantities
        NotFoundError: a product id does not exist
        ProductUnavailableError: a product is deactivated
        InsufficientStockError: a line exceeds remaining stock
        PersistenceError: storage failure
    """
    lines = parse_sale_lines(items)

    try:
        with unit_of_work("create sale"):
            products = _load_products_locked(line.product_id for line in lines)
            sale_items, total = _build_items(lines, products)

            sale = Sale(total_amount=total, items=sale_items)
            db.session.add(sale)
            db.session.flush()

            for item in sale_items:
                add_movement(
                    item.product_id,
                    -item.quantity_sold,
                    MovementType.SALE,
                    note=f"Sale #{sale.id}",
                )
    except (NotFoundError, ProductUnavailableError, InsufficientStockError) as exc:
        logger.warning("Sale rejected: %s", exc.message)
        raise

    logger.info("Sale %s committed: %d item(s), total %s", sale.id, len(sale_items), total)
    return get_sale(sale.id)


def get_sale(sale_id: int) -> Sale:
    sale = (
        db.session.query(Sale)
        .options(selectinload(Sale.items).selectinload(SaleItem.product))
        .filter(Sale.id == sale_id)
        .first()
    )
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def list_sales() -> list[Sale]:
    """All sales, newest first, with items and their products loaded."""
    return (
        db.session.query(Sale)
        .options(selectinload(Sale.items).selectinload(SaleItem.product))
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
