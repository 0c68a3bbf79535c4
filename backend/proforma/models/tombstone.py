from __future__ import annotations

from ..extensions import db


class TombstoneMixin:
    """
    Soft-delete columns shared by every catalog/account/content entity.

    is_active=False means "deleted" and nothing else. Business disablement
    (e.g. a suspended customer) lives in its own column on the entity.
    """
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
