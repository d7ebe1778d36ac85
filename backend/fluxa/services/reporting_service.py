# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Sale, SaleItem, Product, ProductStatus
from ..validation import MONEY_QUANT, ValidationError
from fluxa.time_utils import month_bounds, to_utc_z

DEFAULT_LOW_STOCK_THRESHOLD = 10


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""
    pass


def _money(value) -> str:
    return f"{Decimal(value or 0).quantize(MONEY_QUANT):.2f}"


def _resolve_period(year, month):
    try:
        year = int(year)
        month = int(month)
    except (TypeError, ValueError):
        raise ReportError("year and month must be integers")
    if year < 1 or year > 9999:
        raise ReportError("year is out of range")
    try:
        start, end = month_bounds(year, month)
    except ValueError as exc:
        raise ReportError(str(exc))
    return year, month, start, end


def _sales_in_period(start, end) -> list[Sale]:
    return (
        db.session.query(Sale)
        .options(selectinload(Sale.items).selectinload(SaleItem.product))
        .filter(Sale.created_at >= start, Sale.created_at <= end)
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )


def _cost_of_goods(start, end) -> Decimal:
    total = (
        db.session.query(
            func.coalesce(func.sum(SaleItem.cost_per_unit * SaleItem.quantity_sold), 0)
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.created_at >= start, Sale.created_at <= end)
        .scalar()
    )
    return Decimal(str(total or 0))


def _report_item(item: SaleItem) -> dict:
    return {
        "product_id": item.product_id,
        "title": item.product.title if item.product is not None else f"Product {item.product_id}",
        "quantity_sold": item.quantity_sold,
        "price_per_unit": _money(item.price_per_unit),
        "line_total": _money(item.line_total),
    }


def _stock_snapshot(low_stock_threshold: int) -> tuple[dict, list[dict]]:
    """
    Current stock position of announced products.

    Negative cached quantities (which the ledger should never produce) are
    valued as zero.
    """
    products = (
        db.session.query(Product)
        .filter(Product.status == ProductStatus.ANNOUNCED)
        .order_by(Product.quantity.asc(), Product.title.asc())
        .all()
    )

    stock_value = Decimal("0")
    low_stock: list[Product] = []
    out_of_stock = 0
    for p in products:
        stock_value += Decimal(p.purchase_price) * max(p.quantity, 0)
        if p.quantity <= 0:
            out_of_stock += 1
        elif p.quantity <= low_stock_threshold:
            low_stock.append(p)

    summary = {
        "total_stock_value_cost": _money(stock_value),
        "active_product_count": len(products),
        "low_stock_count": len(low_stock),
        "out_of_stock_count": out_of_stock,
        "low_stock_threshold": low_stock_threshold,
    }
    low_stock_products = [
        {
            "id": p.id,
            "title": p.title,
            "category": p.category,
            "quantity": p.quantity,
        }
        for p in low_stock
    ]
    return summary, low_stock_products


def stock_financial_report(
    year,
    month,
    *,
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> dict:
    """
    Monthly sales and stock report.

    Financials cover sales created within the calendar month (inclusive bounds).
    Revenue is the sum of sale totals; cost of goods uses the cost frozen on
    each sale item, so later price edits do not change past months. The stock
    section is a snapshot taken now, not at month end.
    """
    year, month, start, end = _resolve_period(year, month)

    sales = _sales_in_period(start, end)
    revenue = sum((Decimal(s.total_amount) for s in sales), Decimal("0"))
    cost = _cost_of_goods(start, end)

    stock, low_stock_products = _stock_snapshot(low_stock_threshold)

    return {
        "period": f"{month:02d}/{year}",
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "financials": {
            "total_revenue": _money(revenue),
            "total_cost_of_goods": _money(cost),
            "gross_profit": _money(revenue - cost),
            "total_sales_count": len(sales),
        },
        "stock": stock,
        "low_stock_products": low_stock_products,
        "sales": [
            {
                "id": s.id,
                "total_amount": _money(s.total_amount),
                "created_at": to_utc_z(s.created_at),
                "items": [_report_item(item) for item in s.items],
            }
            for s in sales
        ],
    }
