from __future__ import annotations

from ..extensions import db
from fluxa.time_utils import to_utc_z
from .inventory import _money


class Sale(db.Model):
    """
    Committed checkout.

    total_amount is computed server-side from the frozen item prices; it is
    never taken from the client. Sales have no update or cancel path: a
    reversal is a new manual_adjustment stock movement.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    total_amount = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SaleItem.id",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} total_amount={self.total_amount}>"

    def to_dict(self, include_items: bool = True) -> dict:
        # Wire format uses the same camelCase keys the checkout body accepts
        data = {
            "id": self.id,
            "totalAmount": _money(self.total_amount),
            "createdAt": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item of a sale. Prices are snapshots taken when the sale committed."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity_sold > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(
        db.Integer,
        db.ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # RESTRICT: a product with sales history cannot be deleted
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    quantity_sold = db.Column(db.Integer, nullable=False)
    price_per_unit = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)
    cost_per_unit = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    @property
    def line_total(self):
        return self.price_per_unit * self.quantity_sold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "productId": self.product_id,
            "quantitySold": self.quantity_sold,
            "pricePerUnit": _money(self.price_per_unit),
            "costPerUnit": _money(self.cost_per_unit),
            "lineTotal": _money(self.line_total),
            "product": self.product.to_summary() if self.product is not None else None,
        }
