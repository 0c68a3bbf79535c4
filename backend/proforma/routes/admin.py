# Overview: Flask API routes for admin operations; soft delete, restore and bulk actions across entity kinds.

# backend/proforma/routes/admin.py
"""
Admin routes shared by every tombstoned entity kind (user, product, brand,
category, story).

- GET    /api/admin/<kind>                   - List, ?include_inactive=1 shows deleted rows
- DELETE /api/admin/<kind>/<id>              - Soft delete
- POST   /api/admin/<kind>/<id>/restore      - Restore
- POST   /api/admin/<kind>/bulk              - Bulk soft_delete / restore / set_active
- GET    /api/admin/activity                 - Activity log
"""

from flask import Blueprint, request, g, current_app

from ..services import activity_service, bulk_service, tombstone_service
from ..services.bulk_service import InvalidRequest
from ..services.tombstone_service import EntityNotFound, UnknownEntityKind
from ..decorators import require_admin


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/activity")
@require_admin
def list_activity_route():
    """
    Query params:
    - entity_type, entity_id, event_type: filters (optional)
    - limit: max rows (default 200, max 1000)
    """
    limit = min(request.args.get("limit", default=200, type=int) or 200, 1000)
    events = activity_service.list_activity(
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        event_type=request.args.get("event_type"),
        limit=limit,
    )
    return {"items": [e.to_dict() for e in events], "count": len(events)}


@admin_bp.get("/<kind>")
@require_admin
def list_entities_route(kind: str):
    include_inactive = (request.args.get("include_inactive") or "").lower() in ("1", "true", "yes")
    try:
        return tombstone_service.list_entities(
            kind,
            include_inactive=include_inactive,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except UnknownEntityKind as e:
        return {"error": str(e)}, 404


@admin_bp.delete("/<kind>/<int:entity_id>")
@require_admin
def soft_delete_route(kind: str, entity_id: int):
    try:
        entity = tombstone_service.soft_delete(kind, entity_id, actor_user_id=g.current_user.id)
    except UnknownEntityKind as e:
        return {"error": str(e)}, 404
    except EntityNotFound:
        return {"error": f"{kind.capitalize()} not found"}, 404
    except Exception:
        current_app.logger.exception("Soft delete failed for %s %s", kind, entity_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True, kind: entity.to_dict()}, 200


@admin_bp.post("/<kind>/<int:entity_id>/restore")
@require_admin
def restore_route(kind: str, entity_id: int):
    try:
        entity = tombstone_service.restore(kind, entity_id, actor_user_id=g.current_user.id)
    except UnknownEntityKind as e:
        return {"error": str(e)}, 404
    except EntityNotFound:
        return {"error": f"{kind.capitalize()} not found"}, 404
    except Exception:
        current_app.logger.exception("Restore failed for %s %s", kind, entity_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True, kind: entity.to_dict()}, 200


@admin_bp.post("/<kind>/bulk")
@require_admin
def bulk_route(kind: str):
    """
    Body:
        {"ids": [1, 2, 3], "operation": "soft_delete" | "restore" | "set_active", "active": true}

    Response (200 even when some ids fail):
        {"succeeded": [1, 3], "failed": [{"id": 2, "reason": "not found"}]}
    """
    payload = request.get_json(silent=True) or {}

    try:
        result = bulk_service.bulk_apply(
            kind,
            payload.get("ids"),
            payload.get("operation") or "",
            active=payload.get("active"),
            actor_user_id=g.current_user.id,
        )
    except UnknownEntityKind as e:
        return {"error": str(e)}, 404
    except InvalidRequest as e:
        return {"error": str(e)}, 400

    return result, 200
