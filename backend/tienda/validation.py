from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Discounts are stored as Numeric(7, 2)
MAX_DISCOUNT_PERCENTAGE = Decimal("99999.99")

PHONE_RE = re.compile(r"^\d{10}$")


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer parsing: ints and plain digit strings only.

    Rejects bools, floats, decimals and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_decimal(value: Any, field: str) -> Decimal:
    """Parse a numeric value (int, float or numeric string) as Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number")
    return result


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Numeric):
        return coerce_decimal(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

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

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def validate_price_cents(price: Any, field: str = "price_cents") -> int:
    price = coerce_int(price, field)
    if price < 0:
        raise ValidationError(f"{field} must be >= 0")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")
    return price


def validate_positive_quantity(quantity: Any, field: str = "quantity") -> int:
    quantity = coerce_int(quantity, field)
    if quantity <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return quantity


def validate_discount_percentage(value: Any, field: str = "discount_percentage") -> Decimal:
    """
    Discount percent: any non-negative number that fits Numeric(7, 2).

    Values above 100 are accepted; the sale total is clamped at zero.
    """
    pct = coerce_decimal(value, field)
    if pct < 0:
        raise ValidationError(f"{field} must be >= 0")
    if pct > MAX_DISCOUNT_PERCENTAGE:
        raise ValidationError(f"{field} cannot exceed {MAX_DISCOUNT_PERCENTAGE}")
    return pct.quantize(Decimal("0.01"))


def validate_phone(phone: str | None, field: str = "phone") -> str | None:
    """Phones are optional; when present they are exactly 10 digits."""
    if phone is None or phone == "":
        return None
    if not PHONE_RE.match(phone):
        raise ValidationError(f"{field} must be exactly 10 digits")
    return phone


def enforce_rules_client(patch: dict) -> None:
    if "phone" in patch:
        patch["phone"] = validate_phone(patch["phone"])
    if "discount_percentage" in patch:
        if patch["discount_percentage"] is None:
            raise ValidationError("discount_percentage cannot be null")
        patch["discount_percentage"] = validate_discount_percentage(patch["discount_percentage"])


def enforce_rules_employee(patch: dict) -> None:
    if "phone" in patch:
        patch["phone"] = validate_phone(patch["phone"])
    if "salary_cents" in patch and patch["salary_cents"] is not None:
        if patch["salary_cents"] < 0:
            raise ValidationError("salary_cents must be >= 0")


def enforce_rules_business(patch: dict) -> None:
    day = patch.get("billing_day")
    if day is not None and not 1 <= day <= 31:
        raise ValidationError("billing_day must be between 1 and 31")
    amount = patch.get("billing_amount_cents")
    if amount is not None and amount < 0:
        raise ValidationError("billing_amount_cents must be >= 0")
