from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tombstone import TombstoneMixin


class Brand(TombstoneMixin, db.Model):
    __tablename__ = "brands"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_brands_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Brand id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "is_active": self.is_active,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Category(TombstoneMixin, db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_categories_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "is_active": self.is_active,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(TombstoneMixin, db.Model):
    """
    Catalog product with a base price and optional bulk price tiers.

    Request lines copy the resolved unit price at submit time, so editing
    base_price_cents or the tier set never changes an issued quote.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_products_slug"),
        db.Index("ix_products_brand_active", "brand_id", "is_active"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(280), nullable=False)
    short_description = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    base_price_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="GHS")

    # [{"name": "Size", "options": ["250g", "500g"]}]
    variants = db.Column(db.JSON, nullable=True)

    is_featured = db.Column(db.Boolean, nullable=False, default=False, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    brand = db.relationship("Brand", backref=db.backref("products", lazy=True))
    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    tiers = db.relationship(
        "PriceTier",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="PriceTier.min_quantity",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} slug={self.slug!r} brand_id={self.brand_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brand_id": self.brand_id,
            "category_id": self.category_id,
            "name": self.name,
            "slug": self.slug,
            "short_description": self.short_description,
            "description": self.description,
            "base_price_cents": self.base_price_cents,
            "currency": self.currency,
            "tiers": [t.to_dict() for t in self.tiers],
            "variants": self.variants or [],
            "is_featured": self.is_featured,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PriceTier(db.Model):
    """
    Quantity band [min_quantity, max_quantity] with its unit price.

    max_quantity NULL means the band is open-ended.
    """
    __tablename__ = "price_tiers"
    __table_args__ = (
        db.CheckConstraint("min_quantity >= 1", name="ck_price_tiers_min_positive"),
        db.CheckConstraint(
            "max_quantity IS NULL OR max_quantity >= min_quantity",
            name="ck_price_tiers_band_order",
        ),
        db.CheckConstraint("price_cents >= 0", name="ck_price_tiers_price_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    min_quantity = db.Column(db.Integer, nullable=False)
    max_quantity = db.Column(db.Integer, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product", back_populates="tiers")

    def to_dict(self) -> dict:
        return {
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
            "price_cents": self.price_cents,
        }
