from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime


# Maximum money amount: Rp 9.999.999.999
# Prevents database overflow issues and nonsensical prices
MAX_AMOUNT = 9_999_999_999

# Three decimals matches the Numeric(14, 3) quantity columns
QUANTITY_EXPONENT = -3

PAYMENT_METHODS = ("cash", "qris", "card")
CAPITAL_ENTRY_TYPES = ("initial", "additional")


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: non-column keys a route handles itself (e.g. "bom")
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_quantity(value: Any, field: str) -> Decimal:
    """Decimal coercion for material quantities (at most three decimals)."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        qty = value
    elif isinstance(value, int):
        qty = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            qty = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not qty.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if qty.as_tuple().exponent < QUANTITY_EXPONENT and qty != qty.quantize(Decimal("0.001")):
        raise ValidationError(f"{field} allows at most 3 decimal places")
    return qty


def require_positive_int(value: Any, field: str, maximum: int | None = None) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be > 0")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return number


def require_positive_quantity(value: Any, field: str) -> Decimal:
    qty = coerce_quantity(value, field)
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    return qty


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Numeric before Integer: quantities are Decimal, not int
    if isinstance(coltype, Numeric) and not isinstance(coltype, Integer):
        return coerce_quantity(value, col.key)

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
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
    Check a JSON body against the model columns and a policy, returning a
    cleaned patch.

    Column metadata drives coercion, nullability and String length limits.
    Keys outside policy.writable_fields are refused; policy.extra_fields
    keys pass through untouched for the caller to parse.

    partial=False requires every policy.required_on_create key (POST);
    partial=True checks only the keys present (PUT).
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

    extra = policy.extra_fields or set()
    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields and k not in extra:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols and k not in extra:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            patch[k] = raw
            continue

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


def _check_amount(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        amount = patch[field]
        if amount <= 0:
            raise ValidationError(f"{field} must be > 0")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")


def enforce_rules_material(patch: dict) -> None:
    """Opening stock and min_stock may be zero but never negative."""
    for field in ("stock", "min_stock"):
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError(f"{field} cannot be negative")


def enforce_rules_product(patch: dict) -> None:
    _check_amount(patch, "price")


def enforce_rules_stock_in(patch: dict) -> None:
    if "quantity" in patch:
        if patch["quantity"] is None or patch["quantity"] <= 0:
            raise ValidationError("quantity must be > 0")
    if patch.get("unit_price") is None:
        raise ValidationError("unit_price is required")
    _check_amount(patch, "unit_price")


def enforce_rules_capital(patch: dict) -> None:
    _check_amount(patch, "amount")
    entry_type = patch.get("entry_type")
    if entry_type is not None and entry_type not in CAPITAL_ENTRY_TYPES:
        raise ValidationError(f"entry_type must be one of: {', '.join(CAPITAL_ENTRY_TYPES)}")


def parse_bom(raw: Any) -> list[tuple[int, Decimal]]:
    """
    Normalize a BOM payload: [{"material_id": 1, "quantity": 0.25}, ...].

    Rejects an empty BOM, non-positive quantities and duplicate materials
    (a duplicate would be silently summed by the sale engine).
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationError("bom must be a non-empty list")

    items: list[tuple[int, Decimal]] = []
    seen: set[int] = set()
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"bom[{index}] must be an object")
        material_id = require_positive_int(entry.get("material_id"), f"bom[{index}].material_id")
        quantity = require_positive_quantity(entry.get("quantity"), f"bom[{index}].quantity")
        if material_id in seen:
            raise ValidationError(f"bom lists material {material_id} more than once")
        seen.add(material_id)
        items.append((material_id, quantity))
    return items


def parse_cart(raw: Any) -> list[dict]:
    """Normalize cart lines: [{"product_id": 1, "quantity": 2, "note": "no ice"}, ...]."""
    if not isinstance(raw, list) or not raw:
        raise ValidationError("Cart is empty")

    lines: list[dict] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{index}] must be an object")
        note = entry.get("note")
        if note is not None:
            note = str(note).strip()[:255] or None
        lines.append({
            "product_id": require_positive_int(entry.get("product_id"), f"items[{index}].product_id"),
            "quantity": require_positive_int(entry.get("quantity"), f"items[{index}].quantity"),
            "note": note,
        })
    return lines


def parse_payment_method(value: Any) -> str:
    method = str(value or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    return method
