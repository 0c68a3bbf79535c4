# Overview: Service-layer operations for the catalog; brands, categories, products and their price tiers.

"""
Catalog Service

SLUGS: unique across every row, deleted ones included (see tombstone_service).
A slug derived from the name gets a numeric suffix when taken; an explicit
slug that is taken is a ConflictError.

TIERS: validated by pricing_service.parse_tiers() at save time. Saving a
product with tiers replaces the whole tier set.
"""

from __future__ import annotations

import re
import unicodedata

from flask import current_app

from ..extensions import db
from ..models import Brand, Category, PriceTier, Product
from ..validation import ConflictError
from .activity_service import append_activity
from .pricing_service import parse_tiers, resolve_price
from .tombstone_service import EntityNotFound, is_product_visible, paginate, public_products_query

PRODUCT_MUTABLE_FIELDS = {
    "name", "slug", "brand_id", "category_id", "short_description", "description",
    "base_price_cents", "currency", "variants", "is_featured", "sort_order",
}
TAXONOMY_MUTABLE_FIELDS = {"name", "slug", "description"}

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_STRIP_RE.sub("-", normalized.lower()).strip("-")
    return slug or "item"


def _slug_taken(model, slug: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(model.id).filter(model.slug == slug)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    return q.first() is not None


def _resolve_slug(model, patch: dict, *, exclude_id: int | None = None) -> str:
    """Explicit slug must be free; a derived one is suffixed until free."""
    if patch.get("slug"):
        slug = slugify(patch["slug"])
        if _slug_taken(model, slug, exclude_id):
            raise ConflictError(f"Slug '{slug}' is already in use.")
        return slug

    base = slugify(patch.get("name", ""))
    slug = base
    suffix = 2
    while _slug_taken(model, slug, exclude_id):
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def _apply_patch(entity, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(entity, k, v)


# =============================================================================
# Brands and categories
# =============================================================================

def _create_taxonomy(model, kind: str, patch: dict, actor_user_id: int | None) -> dict:
    entity = model()
    _apply_patch(entity, patch, TAXONOMY_MUTABLE_FIELDS)
    entity.slug = _resolve_slug(model, patch)

    db.session.add(entity)
    db.session.flush()

    append_activity(
        event_type=f"{kind}.created",
        entity_type=kind,
        entity_id=entity.id,
        actor_user_id=actor_user_id,
        note=f"Created {kind} slug={entity.slug}",
    )
    db.session.commit()
    return entity.to_dict()


def _update_taxonomy(model, kind: str, entity_id: int, patch: dict, actor_user_id: int | None) -> dict:
    entity = db.session.get(model, entity_id)
    if entity is None:
        raise EntityNotFound(f"{kind} {entity_id} not found")

    if patch.get("slug"):
        entity.slug = _resolve_slug(model, patch, exclude_id=entity.id)
    _apply_patch(entity, patch, TAXONOMY_MUTABLE_FIELDS - {"slug"})

    append_activity(
        event_type=f"{kind}.updated",
        entity_type=kind,
        entity_id=entity.id,
        actor_user_id=actor_user_id,
        note=f"Updated fields: {', '.join(sorted(patch.keys()))}",
    )
    db.session.commit()
    return entity.to_dict()


def create_brand(*, patch: dict, actor_user_id: int | None = None) -> dict:
    return _create_taxonomy(Brand, "brand", patch, actor_user_id)


def update_brand(*, brand_id: int, patch: dict, actor_user_id: int | None = None) -> dict:
    return _update_taxonomy(Brand, "brand", brand_id, patch, actor_user_id)


def create_category(*, patch: dict, actor_user_id: int | None = None) -> dict:
    return _create_taxonomy(Category, "category", patch, actor_user_id)


def update_category(*, category_id: int, patch: dict, actor_user_id: int | None = None) -> dict:
    return _update_taxonomy(Category, "category", category_id, patch, actor_user_id)


def get_brand_by_slug(slug: str) -> Brand | None:
    return db.session.query(Brand).filter(Brand.slug == slug, Brand.is_active.is_(True)).first()


# =============================================================================
# Products
# =============================================================================

def _require_parents(brand_id: int | None, category_id: int | None) -> None:
    if brand_id is not None and db.session.get(Brand, brand_id) is None:
        raise ValueError(f"Brand {brand_id} not found")
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValueError(f"Category {category_id} not found")


def _replace_tiers(product: Product, specs) -> None:
    product.tiers = [
        PriceTier(
            min_quantity=s.min_quantity,
            max_quantity=s.max_quantity,
            price_cents=s.price_cents,
        )
        for s in specs
    ]


def create_product(*, patch: dict, tiers=None, actor_user_id: int | None = None) -> dict:
    """
    Create a product, validating its tier set first.

    Raises:
        InvalidTierDefinition: malformed or overlapping tiers
        ConflictError: explicit slug already used
        ValueError: brand/category missing
    """
    for field in ("name", "brand_id", "category_id", "base_price_cents"):
        if patch.get(field) is None:
            raise ValueError(f"{field} is required")

    specs = parse_tiers(tiers)
    _require_parents(patch["brand_id"], patch["category_id"])

    product = Product(currency=current_app.config.get("DEFAULT_CURRENCY", "GHS"))
    _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS - {"slug"})
    product.slug = _resolve_slug(Product, patch)
    _replace_tiers(product, specs)

    db.session.add(product)
    db.session.flush()

    append_activity(
        event_type="product.created",
        entity_type="product",
        entity_id=product.id,
        actor_user_id=actor_user_id,
        note=f"Created product slug={product.slug}",
        payload={"tiers": [t.to_dict() for t in product.tiers]},
    )
    db.session.commit()
    return product.to_dict()


def update_product(
    *,
    product_id: int,
    patch: dict,
    tiers=None,
    replace_tiers: bool = False,
    actor_user_id: int | None = None,
) -> dict:
    """
    Update product fields; replace the tier set when replace_tiers is True.

    Past request lines are unaffected: they carry their own unit price.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise EntityNotFound(f"product {product_id} not found")

    specs = parse_tiers(tiers) if replace_tiers else None
    _require_parents(patch.get("brand_id"), patch.get("category_id"))

    if patch.get("slug"):
        product.slug = _resolve_slug(Product, patch, exclude_id=product.id)
    _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS - {"slug"})

    if specs is not None:
        _replace_tiers(product, specs)

    changed = sorted(set(patch.keys()) | ({"tiers"} if replace_tiers else set()))
    append_activity(
        event_type="product.updated",
        entity_type="product",
        entity_id=product.id,
        actor_user_id=actor_user_id,
        note=f"Updated fields: {', '.join(changed)}",
    )
    db.session.commit()
    return product.to_dict()


def list_public_products(
    *,
    brand_slug: str | None = None,
    category_slug: str | None = None,
    featured_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Storefront listing: hides products whose brand or category is deleted."""
    q = public_products_query()
    if brand_slug:
        q = q.filter(Brand.slug == brand_slug)
    if category_slug:
        q = q.filter(Category.slug == category_slug)
    if featured_only:
        q = q.filter(Product.is_featured.is_(True))
    q = q.order_by(Product.sort_order.asc(), Product.name.asc(), Product.id.asc())
    return paginate(q, page=page, per_page=per_page)


def get_public_product(slug: str) -> Product | None:
    return public_products_query().filter(Product.slug == slug).first()


def quote_product(product_id: int, quantity: int) -> dict:
    """
    Price a single product at a quantity.

    Raises:
        EntityNotFound: product missing or hidden from the storefront
        InvalidQuantity: quantity < 1
    """
    product = db.session.get(Product, product_id)
    if product is None or not is_product_visible(product):
        raise EntityNotFound(f"product {product_id} not found")

    unit_price = resolve_price(product.base_price_cents, product.tiers, quantity)
    return {
        "product_id": product.id,
        "quantity": quantity,
        "unit_price_cents": unit_price,
        "line_total_cents": unit_price * quantity,
        "currency": product.currency,
    }
