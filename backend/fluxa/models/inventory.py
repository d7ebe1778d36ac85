from __future__ import annotations

import enum

from ..extensions import db
from fluxa.time_utils import to_utc_z


class ProductStatus(str, enum.Enum):
    ANNOUNCED = "announced"
    SOLD = "sold"
    DEACTIVATED = "deactivated"


class MovementType(str, enum.Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    INITIAL_ADJUSTMENT = "initial_adjustment"
    MANUAL_ADJUSTMENT = "manual_adjustment"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


def _money(value) -> str | None:
    return None if value is None else f"{value:.2f}"


class Supplier(db.Model):
    """Supplier registry. Every product references exactly one supplier."""
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(255), nullable=False)
    # Brazilian company registration number, stored as entered (mask allowed)
    cnpj = db.Column(db.String(20), nullable=False, unique=True)
    contact_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} company_name={self.company_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "cnpj": self.cnpj,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    STOCK CACHE:
    Product.quantity is a cache of SUM(stock_movements.quantity) for the product.
    It is written only by stock_service._refresh_cache, which recomputes it from
    the ledger. add_movement calls it in the same transaction as the movement
    insert; rebuild_stock_cache calls it to repair drift without appending
    movements. Never assign it anywhere else.

    PRICES:
    purchase_price / sale_price are the live prices. Sale items copy them at sale
    time, so editing them never rewrites sales history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("purchase_price >= 0", name="ck_products_purchase_price_nonneg"),
        db.CheckConstraint("sale_price >= 0", name="ck_products_sale_price_nonneg"),
        db.Index("ix_products_status_title", "status", "title"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=False)

    status = db.Column(
        db.Enum(
            ProductStatus,
            name="product_status",
            native_enum=False,
            values_callable=_enum_values,
            validate_strings=True,
            length=32,
        ),
        nullable=False,
        default=ProductStatus.ANNOUNCED,
        index=True,
    )

    purchase_price = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)
    sale_price = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)

    # Cached stock level (see class docstring)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    movements = db.relationship(
        "StockMovement",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} title={self.title!r} quantity={self.quantity}>"

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "status": self.status.value,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "status": self.status.value,
            "purchase_price": _money(self.purchase_price),
            "sale_price": _money(self.sale_price),
            "quantity": self.quantity,
            "supplier_id": self.supplier_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger row.

    quantity is signed: positive = inbound, negative = outbound.
    Rows are never updated; they disappear only with their product (FK cascade).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity <> 0", name="ck_stock_movements_nonzero"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type = db.Column(
        db.Enum(
            MovementType,
            name="movement_type",
            native_enum=False,
            values_callable=_enum_values,
            validate_strings=True,
            length=32,
        ),
        nullable=False,
        index=True,
    )

    quantity = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="movements")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type.value,
            "quantity": self.quantity,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
