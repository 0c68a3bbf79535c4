"""
Catalog writes: slugs, tier validation at save time, public listing.
"""

import pytest

from conftest import make_product
from proforma.models import PriceTier, Product
from proforma.services import catalog_service
from proforma.services.pricing_service import InvalidQuantity, InvalidTierDefinition
from proforma.services.tombstone_service import EntityNotFound
from proforma.validation import ConflictError


def _product_patch(brand, category, **overrides):
    patch = {
        "name": "Whipped Shea Butter",
        "brand_id": brand.id,
        "category_id": category.id,
        "base_price_cents": 3000,
    }
    patch.update(overrides)
    return patch


def test_create_product_with_tiers(db_session, brand, category):
    created = catalog_service.create_product(
        patch=_product_patch(brand, category),
        tiers=[
            {"min_quantity": 20, "max_quantity": None, "price_cents": 2500},
            {"min_quantity": 1, "max_quantity": 19, "price_cents": 3000},
        ],
    )

    assert created["slug"] == "whipped-shea-butter"
    assert created["currency"] == "GHS"
    assert [t["min_quantity"] for t in created["tiers"]] == [1, 20]


def test_invalid_tiers_write_nothing(db_session, brand, category):
    with pytest.raises(InvalidTierDefinition):
        catalog_service.create_product(
            patch=_product_patch(brand, category),
            tiers=[{"min_quantity": 10, "max_quantity": 5, "price_cents": 100}],
        )
    assert db_session.query(Product).count() == 0


def test_update_replaces_tier_set(db_session, product):
    updated = catalog_service.update_product(
        product_id=product.id,
        patch={"base_price_cents": 2600},
        tiers=[{"min_quantity": 100, "price_cents": 1900}],
        replace_tiers=True,
    )
    assert updated["base_price_cents"] == 2600
    assert updated["tiers"] == [{"min_quantity": 100, "max_quantity": None, "price_cents": 1900}]
    assert db_session.query(PriceTier).count() == 1


def test_update_with_overlapping_tiers_keeps_old_set(db_session, product):
    with pytest.raises(InvalidTierDefinition):
        catalog_service.update_product(
            product_id=product.id,
            patch={"name": "Renamed"},
            tiers=[
                {"min_quantity": 1, "max_quantity": 20, "price_cents": 2500},
                {"min_quantity": 15, "max_quantity": None, "price_cents": 2000},
            ],
            replace_tiers=True,
        )
    db_session.rollback()
    stored = db_session.get(Product, product.id)
    assert stored.name == "Raw Shea Butter 1kg"
    assert len(stored.tiers) == 3


def test_update_without_tiers_leaves_them(db_session, product):
    catalog_service.update_product(product_id=product.id, patch={"is_featured": True})
    assert len(db_session.get(Product, product.id).tiers) == 3


def test_missing_parent(db_session, brand, category):
    with pytest.raises(ValueError):
        catalog_service.create_product(patch=_product_patch(brand, category, brand_id=999))


def test_explicit_slug_conflict(db_session, brand, category, product):
    with pytest.raises(ConflictError):
        catalog_service.create_product(patch=_product_patch(brand, category, slug=product.slug))


def test_taxonomy_slugs(db_session):
    first = catalog_service.create_brand(patch={"name": "Shea Gold"})
    second = catalog_service.create_brand(patch={"name": "Shea Gold"})
    assert (first["slug"], second["slug"]) == ("shea-gold", "shea-gold-2")

    with pytest.raises(ConflictError):
        catalog_service.update_brand(brand_id=second["id"], patch={"slug": "shea-gold"})


def test_update_missing_category(db_session):
    with pytest.raises(EntityNotFound):
        catalog_service.update_category(category_id=404, patch={"name": "x"})


def test_public_listing_filters(db_session, brand, category, product):
    make_product(brand, category, name="Featured Oil", is_active=True)
    featured = db_session.query(Product).filter_by(name="Featured Oil").one()
    featured.is_featured = True
    db_session.commit()

    assert catalog_service.list_public_products()["count"] == 2
    assert [p["name"] for p in catalog_service.list_public_products(featured_only=True)["items"]] == ["Featured Oil"]
    assert catalog_service.list_public_products(brand_slug="nope")["count"] == 0
    assert catalog_service.list_public_products(category_slug=category.slug)["count"] == 2


def test_quote(db_session, product):
    assert catalog_service.quote_product(product.id, 75) == {
        "product_id": product.id,
        "quantity": 75,
        "unit_price_cents": 2000,
        "line_total_cents": 150000,
        "currency": "GHS",
    }
    with pytest.raises(InvalidQuantity):
        catalog_service.quote_product(product.id, -3)
    with pytest.raises(EntityNotFound):
        catalog_service.quote_product(404, 1)
