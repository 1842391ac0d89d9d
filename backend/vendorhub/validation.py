from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationFailed
from .models import PAYMENT_METHODS, SHIPPING_FIELDS, InventoryEntry, Order


# Maximum money amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999
MAX_LINE_QUANTITY = 100_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required when partial=False
    """
    writable_fields: set[str]
    required_on_create: set[str] | None = None


SHIPPING_POLICY = ModelValidationPolicy(writable_fields=set(SHIPPING_FIELDS))

INVENTORY_RECEIVE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "variant_id", "quantity", "reference", "notes"},
    required_on_create={"product_id", "quantity"},
)

INVENTORY_ADJUST_POLICY = INVENTORY_RECEIVE_POLICY


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationFailed(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationFailed(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationFailed(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationFailed(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationFailed(f"{key} must be an integer, not a decimal")
    raise ValidationFailed(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

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
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}", {"missing": missing})

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationFailed(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationFailed(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationFailed(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationFailed(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationFailed(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _optional_amount(key: str, value: Any) -> int | None:
    if value is None:
        return None
    amount = coerce_int(key, value)
    if amount < 0:
        raise ValidationFailed(f"{key} must be >= 0")
    if amount > MAX_AMOUNT_CENTS:
        raise ValidationFailed(f"{key} cannot exceed {MAX_AMOUNT_CENTS}")
    return amount


def validate_order_items(items: Any) -> list[dict]:
    """
    Normalize requested order lines to [{product_id, variant_id, quantity}].

    Existence of the referenced products is checked later, inside the order
    transaction; this layer only rejects malformed input.
    """
    if not isinstance(items, list) or not items:
        raise ValidationFailed("items must be a non-empty list")

    cleaned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationFailed(f"items[{index}] must be an object")
        if "product_id" not in item or item["product_id"] is None:
            raise ValidationFailed(f"items[{index}].product_id is required")
        if "quantity" not in item or item["quantity"] is None:
            raise ValidationFailed(f"items[{index}].quantity is required")

        product_id = coerce_int(f"items[{index}].product_id", item["product_id"])
        quantity = coerce_int(f"items[{index}].quantity", item["quantity"])
        if quantity < 1:
            raise ValidationFailed(f"items[{index}].quantity must be >= 1")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationFailed(f"items[{index}].quantity cannot exceed {MAX_LINE_QUANTITY}")

        raw_variant = item.get("variant_id", item.get("product_variant_id"))
        variant_id = None if raw_variant is None else coerce_int(f"items[{index}].variant_id", raw_variant)

        cleaned.append({"product_id": product_id, "variant_id": variant_id, "quantity": quantity})
    return cleaned


def validate_order_request(
    *,
    customer_id: Any,
    items: Any,
    shipping_info: dict | None = None,
    payment_method: str | None = None,
    notes: str | None = None,
    tax_cents: Any = None,
    shipping_cost_cents: Any = None,
    discount_cents: Any = None,
) -> dict:
    """Validate a create-order request before any transaction is opened."""
    if customer_id is None:
        raise ValidationFailed("customer_id is required")

    method = payment_method or "cash_on_delivery"
    if method not in PAYMENT_METHODS:
        raise ValidationFailed(
            f"Invalid payment_method '{method}'. Must be one of: {', '.join(PAYMENT_METHODS)}"
        )

    if notes is not None and not isinstance(notes, str):
        raise ValidationFailed("notes must be a string")

    return {
        "customer_id": coerce_int("customer_id", customer_id),
        "items": validate_order_items(items),
        "shipping": validate_payload(model=Order, payload=shipping_info or {}, policy=SHIPPING_POLICY, partial=True),
        "payment_method": method,
        "notes": notes,
        "tax_cents": _optional_amount("tax_cents", tax_cents),
        "shipping_cost_cents": _optional_amount("shipping_cost_cents", shipping_cost_cents),
        "discount_cents": _optional_amount("discount_cents", discount_cents),
    }


def validate_inventory_movement(payload: dict, *, allow_negative: bool) -> dict:
    """Validate a receive (allow_negative=False) or adjust payload."""
    patch = validate_payload(
        model=InventoryEntry,
        payload=payload,
        policy=INVENTORY_ADJUST_POLICY if allow_negative else INVENTORY_RECEIVE_POLICY,
        partial=False,
    )
    if patch["quantity"] is None or patch["quantity"] == 0:
        raise ValidationFailed("quantity must be non-zero")
    if not allow_negative and patch["quantity"] < 0:
        raise ValidationFailed("quantity must be > 0 for a purchase")
    return patch
