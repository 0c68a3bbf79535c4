# Overview: Service-layer operations for soft delete; tombstone and restore of catalog, account and content rows.

"""
Tombstone Lifecycle

SOFT DELETE: is_active=False plus deleted_at. Rows are never physically
removed, so historical request lines keep pointing at real products.

RULES:
1. soft_delete never cascades. Deleting a brand leaves its products alone;
   public listings hide them through the parent's flag instead.
2. restore never cascades upward. Restoring a product under a deleted
   brand leaves the brand deleted.
3. Both operations are idempotent: deleting a deleted row or restoring an
   active row succeeds without changes.
4. Slugs stay unique across active AND deleted rows, so a restore can
   never collide with a row created while it was deleted.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Brand, Category, Product, Story, User
from ..time_utils import utcnow
from .activity_service import append_activity


ENTITY_MODELS = {
    "user": User,
    "product": Product,
    "brand": Brand,
    "category": Category,
    "story": Story,
}


class EntityNotFound(LookupError):
    """No row with that id for the entity kind."""


class UnknownEntityKind(ValueError):
    pass


def get_model(kind: str):
    model = ENTITY_MODELS.get(kind)
    if model is None:
        raise UnknownEntityKind(
            f"Unknown entity kind '{kind}'. Must be one of: {', '.join(sorted(ENTITY_MODELS))}"
        )
    return model


def _load(kind: str, entity_id: int):
    model = get_model(kind)
    entity = db.session.get(model, entity_id)
    if entity is None:
        raise EntityNotFound(f"{kind} {entity_id} not found")
    return entity


def set_active(
    kind: str,
    entity_id: int,
    active: bool,
    *,
    actor_user_id: int | None = None,
    commit: bool = True,
):
    """
    Mark a row active (restore) or inactive (soft delete).

    Returns the entity. No-op when the row is already in the target state.

    Raises:
        UnknownEntityKind: kind not in ENTITY_MODELS
        EntityNotFound: no row with entity_id
    """
    entity = _load(kind, entity_id)

    if bool(entity.is_active) != bool(active):
        entity.is_active = bool(active)
        entity.deleted_at = None if active else utcnow()

        append_activity(
            event_type=f"{kind}.{'restored' if active else 'deleted'}",
            entity_type=kind,
            entity_id=entity.id,
            actor_user_id=actor_user_id,
            note=f"{'Restored' if active else 'Soft-deleted'} {kind} {entity.id}",
        )

    if commit:
        db.session.commit()
    return entity


def soft_delete(kind: str, entity_id: int, *, actor_user_id: int | None = None, commit: bool = True):
    return set_active(kind, entity_id, False, actor_user_id=actor_user_id, commit=commit)


def restore(kind: str, entity_id: int, *, actor_user_id: int | None = None, commit: bool = True):
    return set_active(kind, entity_id, True, actor_user_id=actor_user_id, commit=commit)


def visible(query, model, *, include_inactive: bool = False):
    """Apply the default is_active filter unless an admin asked for deleted rows."""
    if include_inactive:
        return query
    return query.filter(model.is_active.is_(True))


def public_products_query():
    """
    Products a storefront may show: the product AND its brand AND its
    category are all active.
    """
    return (
        db.session.query(Product)
        .join(Brand, Product.brand_id == Brand.id)
        .join(Category, Product.category_id == Category.id)
        .filter(
            Product.is_active.is_(True),
            Brand.is_active.is_(True),
            Category.is_active.is_(True),
        )
    )


def is_product_visible(product: Product) -> bool:
    return bool(
        product.is_active
        and product.brand is not None and product.brand.is_active
        and product.category is not None and product.category.is_active
    )


def list_entities(
    kind: str,
    *,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Generic admin listing for any tombstoned kind.

    Returns dict with 'items', 'count' and, when paginated, 'pagination'.
    """
    model = get_model(kind)
    base_query = visible(db.session.query(model), model, include_inactive=include_inactive)
    base_query = base_query.order_by(model.id.asc())
    return paginate(base_query, page=page, per_page=per_page)


def paginate(base_query, *, page: int | None, per_page: int | None) -> dict:
    # If no pagination requested, return all items
    if page is None:
        rows = base_query.all()
        return {
            "items": [r.to_dict() for r in rows],
            "count": len(rows),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
