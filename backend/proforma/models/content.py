from __future__ import annotations

import math
import re

from ..extensions import db
from ..time_utils import to_utc_z
from .tombstone import TombstoneMixin

WORDS_PER_MINUTE = 200

_TAG_RE = re.compile(r"<[^>]+>")


class Story(TombstoneMixin, db.Model):
    """Editorial story/review. Content arrives already sanitized."""
    __tablename__ = "stories"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_stories_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(280), nullable=False)
    excerpt = db.Column(db.String(500), nullable=True)
    content = db.Column(db.Text, nullable=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def read_time_minutes(self) -> int:
        words = _TAG_RE.sub(" ", self.content or "").split()
        return max(1, math.ceil(len(words) / WORDS_PER_MINUTE))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "excerpt": self.excerpt,
            "is_featured": self.is_featured,
            "read_time_minutes": self.read_time_minutes,
            "is_active": self.is_active,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
        }

    def to_detail_dict(self) -> dict:
        data = self.to_dict()
        data["content"] = self.content
        data["updated_at"] = to_utc_z(self.updated_at)
        return data
