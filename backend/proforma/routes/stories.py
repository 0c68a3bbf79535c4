# Overview: Flask API routes for editorial stories; public reads and admin create/update.

# backend/proforma/routes/stories.py
"""
Story routes.

PUBLIC: listing (newest first, ?featured=1), featured shortcut, detail by slug.
ADMIN: create and update. Soft delete and restore live under /api/admin/story.
"""
from flask import Blueprint, request, g

from ..models import Story
from ..services import story_service
from ..services.tombstone_service import EntityNotFound
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, ConflictError
from ..decorators import require_admin

STORY_POLICY = ModelValidationPolicy(
    writable_fields={"title", "slug", "excerpt", "content", "is_featured"},
    required_on_create={"title"},
)

stories_bp = Blueprint("stories", __name__, url_prefix="/api/stories")


@stories_bp.get("")
def list_stories():
    """
    Query params:
    - featured: 1 to list featured stories only
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    featured = (request.args.get("featured") or "").strip().lower() in ("1", "true", "yes")
    return story_service.list_public_stories(
        featured_only=featured,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@stories_bp.get("/featured")
def list_featured_stories():
    return story_service.list_public_stories(featured_only=True)


@stories_bp.get("/<slug>")
def get_story(slug: str):
    story = story_service.get_public_story(slug)
    if story is None:
        return {"error": "Story not found"}, 404
    return story.to_detail_dict()


@stories_bp.post("")
@require_admin
def create_story_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Story, payload=payload, policy=STORY_POLICY, partial=False)
        return story_service.create_story(patch=patch, actor_user_id=g.current_user.id), 201
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409


@stories_bp.put("/<int:story_id>")
@require_admin
def update_story_route(story_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Story, payload=payload, policy=STORY_POLICY, partial=True)
        return story_service.update_story(story_id=story_id, patch=patch, actor_user_id=g.current_user.id), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except EntityNotFound:
        return {"error": "Story not found"}, 404
