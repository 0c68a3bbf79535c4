# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/proforma/routes/catalog.py
"""
Catalog routes: products (with price tiers), brands and categories.

PUBLIC: listing, detail and price quotes. Soft-deleted products, and
products under a soft-deleted brand or category, are invisible here.

ADMIN: create, update, soft delete, restore. Tier sets are validated at
save time; a bad tier set is a 400 and nothing is written.
"""
from flask import Blueprint, request, g, current_app

from ..models import Brand, Category, Product
from ..services import catalog_service, tombstone_service
from ..services.pricing_service import InvalidQuantity, InvalidTierDefinition
from ..services.tombstone_service import EntityNotFound
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_int,
    ValidationError,
    ConflictError,
)
from ..decorators import require_admin

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "slug", "brand_id", "category_id", "short_description", "description",
        "base_price_cents", "currency", "variants", "is_featured", "sort_order",
    },
    required_on_create={"name", "brand_id", "category_id", "base_price_cents"},
    extra_fields={"tiers"},
)

TAXONOMY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug", "description"},
    required_on_create={"name"},
)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in ("1", "true", "yes")


# =============================================================================
# Products
# =============================================================================

@catalog_bp.get("/products")
def list_products():
    """
    Public product listing.

    Query params:
    - brand: brand slug (optional)
    - category: category slug (optional)
    - featured: 1 to list featured products only
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return catalog_service.list_public_products(
        brand_slug=request.args.get("brand"),
        category_slug=request.args.get("category"),
        featured_only=_flag("featured"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@catalog_bp.get("/products/<slug>")
def get_product(slug: str):
    product = catalog_service.get_public_product(slug)
    if product is None:
        return {"error": "Product not found"}, 404
    return product.to_dict()


@catalog_bp.get("/products/<int:product_id>/quote")
def quote_product(product_id: int):
    """
    Unit price for a quantity, resolved against the product's tiers.

    Query params:
    - quantity: int >= 1 (required)
    """
    raw = request.args.get("quantity")
    if raw is None:
        return {"error": "quantity is required"}, 400

    try:
        quantity = coerce_int("quantity", raw)
        return catalog_service.quote_product(product_id, quantity)
    except (ValidationError, InvalidQuantity) as e:
        return {"error": str(e)}, 400
    except EntityNotFound:
        return {"error": "Product not found"}, 404


@catalog_bp.post("/products")
@require_admin
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    tiers = patch.pop("tiers", None)

    try:
        created = catalog_service.create_product(patch=patch, tiers=tiers, actor_user_id=g.current_user.id)
    except InvalidTierDefinition as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return created, 201


@catalog_bp.put("/products/<int:product_id>")
@require_admin
def update_product_route(product_id: int):
    """
    Partial update. Sending "tiers" (even []) replaces the whole tier set.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    replace_tiers = "tiers" in patch
    tiers = patch.pop("tiers", None)

    try:
        updated = catalog_service.update_product(
            product_id=product_id,
            patch=patch,
            tiers=tiers,
            replace_tiers=replace_tiers,
            actor_user_id=g.current_user.id,
        )
    except EntityNotFound:
        return {"error": "Product not found"}, 404
    except InvalidTierDefinition as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return updated, 200


# =============================================================================
# Brands / categories
# =============================================================================

@catalog_bp.get("/brands")
def list_brands():
    return tombstone_service.list_entities("brand")


@catalog_bp.get("/categories")
def list_categories():
    return tombstone_service.list_entities("category")


def _create_taxonomy(model, create):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=model, payload=payload, policy=TAXONOMY_POLICY, partial=False)
        return create(patch=patch, actor_user_id=g.current_user.id), 201
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409


def _update_taxonomy(model, update, entity_id: int, label: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=model, payload=payload, policy=TAXONOMY_POLICY, partial=True)
        return update(entity_id, patch), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except EntityNotFound:
        return {"error": f"{label} not found"}, 404


@catalog_bp.post("/brands")
@require_admin
def create_brand_route():
    return _create_taxonomy(Brand, catalog_service.create_brand)


@catalog_bp.put("/brands/<int:brand_id>")
@require_admin
def update_brand_route(brand_id: int):
    return _update_taxonomy(
        Brand,
        lambda entity_id, patch: catalog_service.update_brand(
            brand_id=entity_id, patch=patch, actor_user_id=g.current_user.id
        ),
        brand_id,
        "Brand",
    )


@catalog_bp.post("/categories")
@require_admin
def create_category_route():
    return _create_taxonomy(Category, catalog_service.create_category)


@catalog_bp.put("/categories/<int:category_id>")
@require_admin
def update_category_route(category_id: int):
    return _update_taxonomy(
        Category,
        lambda entity_id, patch: catalog_service.update_category(
            category_id=entity_id, patch=patch, actor_user_id=g.current_user.id
        ),
        category_id,
        "Category",
    )


# =============================================================================
# Soft delete / restore
# =============================================================================

CATALOG_KINDS = {"products": "product", "brands": "brand", "categories": "category"}


@catalog_bp.delete("/<collection>/<int:entity_id>")
@require_admin
def delete_entity_route(collection: str, entity_id: int):
    """
    Soft delete. Dependents are left alone; public listings hide them.
    """
    kind = CATALOG_KINDS.get(collection)
    if kind is None:
        return {"error": "Not found"}, 404

    try:
        entity = tombstone_service.soft_delete(kind, entity_id, actor_user_id=g.current_user.id)
    except EntityNotFound:
        return {"error": f"{kind.capitalize()} not found"}, 404
    except Exception:
        current_app.logger.exception("Soft delete failed for %s %s", kind, entity_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True, kind: entity.to_dict()}, 200


@catalog_bp.post("/<collection>/<int:entity_id>/restore")
@require_admin
def restore_entity_route(collection: str, entity_id: int):
    """
    Restore. A product under a deleted brand stays hidden until the brand is restored too.
    """
    kind = CATALOG_KINDS.get(collection)
    if kind is None:
        return {"error": "Not found"}, 404

    try:
        entity = tombstone_service.restore(kind, entity_id, actor_user_id=g.current_user.id)
    except EntityNotFound:
        return {"error": f"{kind.capitalize()} not found"}, 404
    except Exception:
        current_app.logger.exception("Restore failed for %s %s", kind, entity_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True, kind: entity.to_dict()}, 200
