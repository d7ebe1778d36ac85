from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 99,999,999.99 (Numeric(10, 2))
# This prevents database overflow issues and nonsensical prices
MAX_PRICE = Decimal("99999999.99")

MONEY_QUANT = Decimal("0.01")

# Integer columns are 32-bit signed on every supported backend
MAX_INT = 2**31 - 1


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate CNPJ)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: int


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _within_int_range(value: int, field: str) -> int:
    if not -MAX_INT <= value <= MAX_INT:
        raise ValidationError(f"{field} is out of range (max {MAX_INT})")
    return value


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion: accepts ints and plain digit strings only.
    Booleans, floats, scientific notation and values outside the Integer
    column range are rejected.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return _within_int_range(value, field)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            parsed = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
        return _within_int_range(parsed, field)
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_positive_int(value: Any, field: str) -> int:
    result = coerce_int(value, field)
    if result <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return result


def coerce_money(value: Any, field: str) -> Decimal:
    """Decimal with at most two places. Floats go through str() to avoid binary noise."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount != amount.quantize(MONEY_QUANT):
        raise ValidationError(f"{field} must have at most 2 decimal places")
    return amount.quantize(MONEY_QUANT)


def coerce_enum(enum_cls: type[enum.Enum], value: Any, field: str) -> enum.Enum:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in enum_cls)
    raise ValidationError(f"{field} must be one of: {allowed}")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Enums before strings: SQLAlchemy Enum is a String subclass
    if isinstance(coltype, Enum) and coltype.enum_class is not None:
        return coerce_enum(coltype.enum_class, value, col.key)

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Numeric):
        return coerce_money(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("purchase_price", "sale_price"):
        if field in patch and patch[field] is not None:
            price = patch[field]
            if price < 0:
                raise ValidationError(f"{field} must be >= 0")
            if price > MAX_PRICE:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")

    if "quantity" in patch and patch["quantity"] is not None:
        if patch["quantity"] < 0:
            raise ValidationError("quantity must be >= 0")


def parse_sale_request(payload: Any) -> list[SaleLineRequest]:
    """
    Validate a checkout body of the form {"items": [{"productId": 1, "quantity": 2}, ...]}.

    "product_id" is accepted as an alias of "productId". Line order is preserved.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(k for k in payload.keys() if k != "items")
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError('"items" is required and must be a non-empty list')

    return parse_sale_lines(items)


def parse_sale_lines(items: Any) -> list[SaleLineRequest]:
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError('"items" is required and must be a non-empty list')

    lines: list[SaleLineRequest] = []
    for index, item in enumerate(items):
        if isinstance(item, SaleLineRequest):
            lines.append(SaleLineRequest(
                product_id=coerce_positive_int(item.product_id, f"items[{index}].productId"),
                quantity=coerce_positive_int(item.quantity, f"items[{index}].quantity"),
            ))
            continue
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")

        for key in item.keys():
            if key not in {"productId", "product_id", "quantity"}:
                raise ValidationError(f"items[{index}]: field not allowed: {key}")

        raw_product_id = item.get("productId", item.get("product_id"))
        if raw_product_id is None:
            raise ValidationError(f"items[{index}].productId is required")
        if "quantity" not in item or item["quantity"] is None:
            raise ValidationError(f"items[{index}].quantity is required")

        lines.append(SaleLineRequest(
            product_id=coerce_positive_int(raw_product_id, f"items[{index}].productId"),
            quantity=coerce_positive_int(item["quantity"], f"items[{index}].quantity"),
        ))

    return lines
