from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Largest quantity a single basket line may carry
MAX_LINE_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate slug)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which payload keys an admin route accepts for one model.

    writable_fields: columns a client may set; anything else is a 400.
    required_on_create: keys a POST must carry.
    extra_fields: non-column keys handed back untouched (product tiers).
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Accept ints and plain digit strings. Bools, floats, "1e3" and "12.5" are rejected."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
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
    coltype = col.type
    if value is None:
        return None
    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")
    if isinstance(coltype, (String, Text)):
        return str(value).strip()
    # JSON columns (product variants)
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn an admin JSON body into a patch for catalog_service/story_service.

    Column types, nullability and String lengths come from the model;
    the policy decides which keys are accepted at all. With partial=False
    (create) every required_on_create key must be present; with
    partial=True (update) only the keys sent are checked.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = [f for f in sorted(required) if f not in payload]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    extra = policy.extra_fields or set()

    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
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

        # "   " strips to "" and is as good as missing for a NOT NULL name/title
        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            raise ValidationError(f"{k} cannot be blank")
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Price bounds, which the column type alone does not express."""
    if "base_price_cents" in patch and patch["base_price_cents"] is not None:
        price = patch["base_price_cents"]
        if price < 0:
            raise ValidationError("base_price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"base_price_cents cannot exceed {MAX_PRICE_CENTS}")


def parse_basket(raw_items) -> list[tuple[int, int]]:
    """
    Validate a basket payload: [{"product_id": 1, "quantity": 10}, ...].

    Quantities are rejected, never clamped. Returns (product_id, quantity) pairs.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    basket: list[tuple[int, int]] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if "product_id" not in raw or "quantity" not in raw:
            raise ValidationError(f"items[{index}] requires product_id and quantity")
        product_id = coerce_int(f"items[{index}].product_id", raw["product_id"])
        quantity = coerce_int(f"items[{index}].quantity", raw["quantity"])
        if quantity < 1:
            raise ValidationError(f"items[{index}].quantity must be >= 1")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_LINE_QUANTITY}")
        basket.append((product_id, quantity))
    return basket
