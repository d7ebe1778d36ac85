# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers are referenced by every product (Product.supplier_id is required).
CNPJ is unique across the registry; uniqueness is checked on the digits only,
so "12.345.678/0001-90" and "12345678000190" collide.
"""

import re

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Supplier
from ..validation import ConflictError, ValidationError
from .errors import NotFoundError


CNPJ_SEPARATORS = (".", "/", "-", " ")

_CNPJ_CHARS = re.compile(r"^[\d./\- ]+$")


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def _cnpj_digits_column():
    """SQL expression for Supplier.cnpj with the formatting separators removed."""
    expr = Supplier.cnpj
    for sep in CNPJ_SEPARATORS:
        expr = func.replace(expr, sep, "")
    return expr


def create_supplier(
    *,
    company_name: str,
    cnpj: str,
    contact_name: str | None = None,
    phone: str | None = None,
) -> Supplier:
    """
    Create a new supplier.

    Raises:
        ValidationError: company_name or cnpj missing, or cnpj has stray characters
        ConflictError: a supplier with the same CNPJ digits exists
    """
    if not company_name or not company_name.strip():
        raise ValidationError("company_name is required")
    if not cnpj or not _digits(cnpj):
        raise ValidationError("cnpj is required")

    cnpj = cnpj.strip()
    if not _CNPJ_CHARS.match(cnpj):
        raise ValidationError("cnpj may only contain digits and the separators . / -")
    clean = _digits(cnpj)

    existing = db.session.query(Supplier.id).filter(_cnpj_digits_column() == clean).first()
    if existing is not None:
        raise ConflictError("A supplier with this CNPJ already exists")

    supplier = Supplier(
        company_name=company_name.strip(),
        cnpj=cnpj,
        contact_name=contact_name.strip() if contact_name else None,
        phone=phone.strip() if phone else None,
    )

    db.session.add(supplier)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A supplier with this CNPJ already exists")
    return supplier


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.company_name.asc(), Supplier.id.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier
