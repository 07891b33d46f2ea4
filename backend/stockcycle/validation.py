from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from stockcycle.models.status import DECISION_STATUSES


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999
MAX_QUANTITY = 1_000_000


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
    required_on_create: Optional[set[str]] = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field_name: str) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    raise ValidationError(f"{field_name} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
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
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")

    if "stock" in patch and patch["stock"] is not None:
        if patch["stock"] < 0:
            raise ValidationError("stock must be >= 0")


def parse_order_items(raw_items: Any) -> list[tuple[int, int]]:
    """
    Validate an order's requested items.

    Input: [{"product_id": 1, "quantity": 3}, ...]
    Output: [(product_id, quantity), ...] with duplicate products merged,
    in first-seen order.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    merged: dict[int, int] = {}
    for idx, item in enumerate(raw_items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        if "product_id" not in item or "quantity" not in item:
            raise ValidationError(f"items[{idx}] requires product_id and quantity")
        product_id = coerce_int(item["product_id"], f"items[{idx}].product_id")
        quantity = coerce_int(item["quantity"], f"items[{idx}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be > 0")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"items[{idx}].quantity cannot exceed {MAX_QUANTITY}")
        merged[product_id] = merged.get(product_id, 0) + quantity

    return list(merged.items())


def parse_report_entries(raw_entries: Any) -> dict[int, dict[str, int]]:
    """
    Validate user-entered report quantities.

    Accepts either a list [{"product_id", "sold", "damaged"}] or a mapping
    {product_id: {"sold", "damaged"}}. Values must be integers; negative
    values are not rejected here, the finalizer normalizes them to zero.
    """
    if raw_entries is None:
        return {}

    if isinstance(raw_entries, dict):
        items = []
        for key, value in raw_entries.items():
            if value is not None and not isinstance(value, dict):
                raise ValidationError(f"entries[{key}] must be an object")
            items.append(dict(value or {}, product_id=key))
    elif isinstance(raw_entries, list):
        items = raw_entries
    else:
        raise ValidationError("entries must be a list or an object")

    entries: dict[int, dict[str, int]] = {}
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"entries[{idx}] must be an object")
        if "product_id" not in item:
            raise ValidationError(f"entries[{idx}] requires product_id")
        product_id = coerce_int(item["product_id"], f"entries[{idx}].product_id")
        sold = coerce_int(item.get("sold", 0) or 0, f"entries[{idx}].sold")
        damaged = coerce_int(item.get("damaged", 0) or 0, f"entries[{idx}].damaged")
        entries[product_id] = {"sold": sold, "damaged": damaged}

    return entries


def parse_decision_status(value: Any) -> str:
    if not isinstance(value, str) or value.strip().upper() not in DECISION_STATUSES:
        raise ValidationError("status must be APPROVED or REJECTED")
    return value.strip().upper()
