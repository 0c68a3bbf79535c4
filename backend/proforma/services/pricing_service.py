# Overview: Service-layer operations for tiered pricing; pure functions, no database work.

"""
Tiered Price Resolver

A product has a base price plus an optional set of quantity bands:

    [{1-9: 25.00}, {10-49: 22.00}, {50+: 20.00}]

resolve_price() picks the band containing the ordered quantity and falls
back to the base price when no band matches.

RULES:
1. quantity must be an integer >= 1 (never clamped)
2. Tier sets are validated when the product is saved, not when read.
   resolve_price() never raises on stored data.
3. If stored data still contains overlapping bands, the band with the
   highest min_quantity wins (narrowest band, best price for the buyer).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol


class InvalidQuantity(ValueError):
    """Order quantity is not a positive integer."""


class InvalidTierDefinition(ValueError):
    """Tier set cannot be saved (bad band, negative price, or overlap)."""


class TierLike(Protocol):
    min_quantity: int
    max_quantity: Optional[int]
    price_cents: int


@dataclass(frozen=True)
class TierSpec:
    """Validated tier as accepted from an admin payload."""
    min_quantity: int
    max_quantity: Optional[int]
    price_cents: int


def _covers(tier: TierLike, quantity: int) -> bool:
    if quantity < tier.min_quantity:
        return False
    return tier.max_quantity is None or quantity <= tier.max_quantity


def validate_quantity(quantity) -> int:
    # bool is an int subclass; True must not become quantity 1
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(f"Quantity must be an integer, got {quantity!r}")
    if quantity < 1:
        raise InvalidQuantity(f"Quantity must be >= 1, got {quantity}")
    return quantity


def resolve_price(base_price_cents: int, tiers: Iterable[TierLike], quantity: int) -> int:
    """
    Unit price (cents) for ordering `quantity` units.

    Raises:
        InvalidQuantity: quantity is not an integer >= 1
    """
    validate_quantity(quantity)

    best = None
    for tier in tiers:
        if not _covers(tier, quantity):
            continue
        if best is None or tier.min_quantity > best.min_quantity:
            best = tier

    if best is None:
        return base_price_cents
    return best.price_cents


def _as_int(value, field: str, index: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidTierDefinition(f"Tier {index}: {field} must be an integer")
    return value


def parse_tiers(raw_tiers) -> list[TierSpec]:
    """
    Validate and normalize a tier payload before it is persisted.

    Accepts a list of dicts with min_quantity, max_quantity (optional/None
    for open-ended) and price_cents. Returns specs sorted by min_quantity.

    Raises:
        InvalidTierDefinition: on any malformed band or overlapping bands
    """
    if raw_tiers is None:
        return []
    if not isinstance(raw_tiers, list):
        raise InvalidTierDefinition("tiers must be a list")

    specs: list[TierSpec] = []
    for index, raw in enumerate(raw_tiers):
        if not isinstance(raw, dict):
            raise InvalidTierDefinition(f"Tier {index}: must be an object")

        min_q = _as_int(raw.get("min_quantity"), "min_quantity", index)
        max_raw = raw.get("max_quantity")
        max_q = None if max_raw is None else _as_int(max_raw, "max_quantity", index)
        price = _as_int(raw.get("price_cents"), "price_cents", index)

        if min_q < 1:
            raise InvalidTierDefinition(f"Tier {index}: min_quantity must be >= 1")
        if max_q is not None and max_q < min_q:
            raise InvalidTierDefinition(
                f"Tier {index}: max_quantity {max_q} is below min_quantity {min_q}"
            )
        if price < 0:
            raise InvalidTierDefinition(f"Tier {index}: price_cents must be >= 0")

        specs.append(TierSpec(min_quantity=min_q, max_quantity=max_q, price_cents=price))

    specs.sort(key=lambda t: t.min_quantity)
    check_no_overlap(specs)
    return specs


def check_no_overlap(specs: list[TierSpec]) -> None:
    """Specs must be sorted by min_quantity."""
    for prev, nxt in zip(specs, specs[1:]):
        if prev.max_quantity is None or nxt.min_quantity <= prev.max_quantity:
            upper = "+" if prev.max_quantity is None else f"-{prev.max_quantity}"
            raise InvalidTierDefinition(
                f"Tier {prev.min_quantity}{upper} overlaps tier starting at {nxt.min_quantity}"
            )


def format_cents(cents: int | None) -> str | None:
    """2500 -> '25.00'."""
    if cents is None:
        return None
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"
