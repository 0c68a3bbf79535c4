# Overview: Service-layer operations for proforma documents; prices baskets and assembles renderer payloads.

"""
Invoice Document Assembler

Builds two things:
- priced basket lines (product snapshot + resolved unit price) used when a
  request is submitted or previewed
- the plain payload handed to the external PDF renderer / email template:
  {request_number, customer, lines, total_amount_cents, currency, issued_at, status}

No markup, no typesetting. The renderer owns presentation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from ..extensions import db
from ..models import Product, Request
from ..time_utils import to_utc_z
from .pricing_service import format_cents, resolve_price, validate_quantity
from .tombstone_service import is_product_visible


class ProductUnavailable(LookupError):
    """Basket references a missing or soft-deleted product."""

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} is not available")
        self.product_id = product_id


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int


@dataclass(frozen=True)
class PricedBasket:
    lines: list[PricedLine]
    total_amount_cents: int
    currency: str


class MixedCurrencyBasket(ValueError):
    """Basket lines are priced in more than one currency."""


def _merge_quantities(basket: list[tuple[int, int]]) -> list[tuple[int, int]]:
    # Same product twice is one line; the summed quantity picks the tier.
    # Entries are validated one by one, before any merging.
    merged: dict[int, int] = {}
    for product_id, quantity in basket:
        validate_quantity(quantity)
        merged[product_id] = merged.get(product_id, 0) + quantity
    return list(merged.items())


def price_basket(basket: list[tuple[int, int]], *, default_currency: str = "GHS") -> PricedBasket:
    """
    Resolve every line's unit price against the product's current tiers.

    Raises:
        ProductUnavailable: product missing, deleted, or under a deleted brand/category
        InvalidQuantity: any entry with quantity < 1, checked before merging
        MixedCurrencyBasket: products priced in different currencies
    """
    lines: list[PricedLine] = []
    currency = None
    for product_id, quantity in _merge_quantities(basket):
        product = db.session.get(Product, product_id)
        if product is None or not is_product_visible(product):
            raise ProductUnavailable(product_id)

        unit_price = resolve_price(product.base_price_cents, product.tiers, quantity)
        lines.append(PricedLine(
            product_id=product.id,
            name=product.name,
            quantity=quantity,
            unit_price_cents=unit_price,
            line_total_cents=unit_price * quantity,
        ))
        if currency is None:
            currency = product.currency
        elif product.currency != currency:
            raise MixedCurrencyBasket(
                f"Product {product.id} is priced in {product.currency}, basket is in {currency}"
            )

    total = sum(line.line_total_cents for line in lines)
    return PricedBasket(lines=lines, total_amount_cents=total, currency=currency or default_currency)


def basket_preview(basket: list[tuple[int, int]], *, default_currency: str = "GHS") -> dict:
    priced = price_basket(basket, default_currency=default_currency)
    return {
        "lines": [asdict(line) for line in priced.lines],
        "total_amount_cents": priced.total_amount_cents,
        "total_amount": format_cents(priced.total_amount_cents),
        "currency": priced.currency,
    }


def assemble_document(request: Request, *, status: str | None = None) -> dict:
    """
    Renderer payload for a stored request.

    Prices come from the stored lines, never from the live catalog, so a
    re-render after a tier change still shows the quoted numbers.
    """
    return {
        "request_number": request.request_number,
        "customer": request.customer_dict(),
        "lines": [
            {
                "product_id": line.product_id,
                "name": line.product_name,
                "quantity": line.quantity,
                "unit_price_cents": line.unit_price_cents,
                "unit_price": format_cents(line.unit_price_cents),
                "line_total_cents": line.line_total_cents,
                "line_total": format_cents(line.line_total_cents),
            }
            for line in request.lines
        ],
        "total_amount_cents": request.total_amount_cents,
        "total_amount": format_cents(request.total_amount_cents),
        "currency": request.currency,
        "issued_at": to_utc_z(request.created_at),
        "status": status or request.status,
        "notes": request.notes,
    }
