# Overview: Service-layer operations for editorial stories; create, update and the public listing.

"""
Story Service

Slugs follow the catalog rules (see catalog_service): derived from the
title and suffixed when taken, or explicit and rejected when taken.

Public reads only ever see active stories. Admin listings go through
tombstone_service.list_entities("story", include_inactive=True).
"""

from __future__ import annotations

from ..extensions import db
from ..models import Story
from .activity_service import append_activity
from .catalog_service import _apply_patch, _resolve_slug
from .tombstone_service import EntityNotFound, paginate, visible

STORY_MUTABLE_FIELDS = {"title", "slug", "excerpt", "content", "is_featured"}


def _story_slug(patch: dict, *, exclude_id: int | None = None) -> str:
    return _resolve_slug(Story, {"slug": patch.get("slug"), "name": patch.get("title")}, exclude_id=exclude_id)


def create_story(*, patch: dict, actor_user_id: int | None = None) -> dict:
    story = Story()
    _apply_patch(story, patch, STORY_MUTABLE_FIELDS - {"slug"})
    story.slug = _story_slug(patch)

    db.session.add(story)
    db.session.flush()

    append_activity(
        event_type="story.created",
        entity_type="story",
        entity_id=story.id,
        actor_user_id=actor_user_id,
        note=f"Created story slug={story.slug}",
    )
    db.session.commit()
    return story.to_detail_dict()


def update_story(*, story_id: int, patch: dict, actor_user_id: int | None = None) -> dict:
    """
    Partial update. The slug only changes when one is given explicitly;
    retitling a story keeps its published URL.
    """
    story = db.session.get(Story, story_id)
    if story is None:
        raise EntityNotFound(f"story {story_id} not found")

    if patch.get("slug"):
        story.slug = _story_slug(patch, exclude_id=story.id)
    _apply_patch(story, patch, STORY_MUTABLE_FIELDS - {"slug"})

    append_activity(
        event_type="story.updated",
        entity_type="story",
        entity_id=story.id,
        actor_user_id=actor_user_id,
        note=f"Updated fields: {', '.join(sorted(patch.keys()))}",
    )
    db.session.commit()
    return story.to_detail_dict()


def list_public_stories(
    *,
    featured_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Newest first; deleted stories never appear."""
    q = visible(db.session.query(Story), Story)
    if featured_only:
        q = q.filter(Story.is_featured.is_(True))
    q = q.order_by(Story.created_at.desc(), Story.id.desc())
    return paginate(q, page=page, per_page=per_page)


def get_public_story(slug: str) -> Story | None:
    return visible(db.session.query(Story), Story).filter(Story.slug == slug).first()
