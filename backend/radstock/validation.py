from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models import Sale, SaleItem, StockLevel, Warehouse
from .services.errors import ValidationError


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


SALE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "processed_by_user_id", "payment_method", "notes"},
    required_on_create={"customer_id", "processed_by_user_id"},
)

SALE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"radiator_id", "warehouse_id", "quantity", "unit_price_cents"},
    required_on_create={"radiator_id", "warehouse_id", "quantity", "unit_price_cents"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    if value is None:
        return None
    if isinstance(col.type, Integer):
        return coerce_int(col.key, value)
    if isinstance(col.type, (String, Text)):
        return str(value).strip()
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create
    Returns a cleaned dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = sorted(f for f in (policy.required_on_create or set()) if f not in payload)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def parse_sale_create(payload: dict) -> tuple[dict, list[dict]]:
    """Split a create-sale body into header fields and validated line items."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    body = dict(payload)
    raw_items = body.pop("items", None)
    header = validate_payload(model=Sale, payload=body, policy=SALE_CREATE_POLICY)

    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items = []
    for index, raw in enumerate(raw_items):
        try:
            item = validate_payload(model=SaleItem, payload=raw, policy=SALE_ITEM_POLICY)
        except ValidationError as e:
            raise ValidationError(f"items[{index}]: {e}")
        if item["quantity"] < 1:
            raise ValidationError(f"items[{index}]: quantity must be at least 1")
        if not 1 <= item["unit_price_cents"] <= MAX_PRICE_CENTS:
            raise ValidationError(f"items[{index}]: unit_price_cents must be between 1 and {MAX_PRICE_CENTS}")
        items.append(item)

    return header, items


def parse_stock_update(payload: dict) -> dict:
    """{"warehouse_code": str, "quantity": int >= 0}"""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    code_col = _columns_by_key(Warehouse)["code"]
    code = str(payload.get("warehouse_code") or "").strip()
    if not code:
        raise ValidationError("warehouse_code is required")
    if len(code) > code_col.type.length:
        raise ValidationError(f"warehouse_code exceeds max length {code_col.type.length}")

    if payload.get("quantity") is None:
        raise ValidationError("quantity is required")
    quantity = _coerce_value(_columns_by_key(StockLevel)["quantity"], payload["quantity"])
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")

    return {"warehouse_code": code, "quantity": quantity}
