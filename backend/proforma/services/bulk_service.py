# Overview: Service-layer operations for multi-id admin actions; per-id outcomes, never all-or-nothing.

"""
Bulk Operation Executor

RULES:
1. Each id is processed on its own and committed on its own. One bad id
   (missing row, illegal transition, constraint error) is recorded in
   `failed` and the loop moves on.
2. Only an unusable request (empty id list, unknown operation) raises,
   and it raises before anything is touched.
3. Tombstone operations are idempotent, so re-running a bulk delete
   reports every id as succeeded. Request transitions are not: an id
   already moved shows up in `failed` with the IllegalTransition reason.

RESULT:
    {"succeeded": [1, 3], "failed": [{"id": 2, "reason": "not found"}]}
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.requests import VALID_REQUEST_STATUSES
from .activity_service import append_activity
from .request_service import ConcurrentModification, IllegalTransition, RequestNotFound, transition
from .tombstone_service import EntityNotFound, get_model, set_active


OP_SOFT_DELETE = "soft_delete"
OP_RESTORE = "restore"
OP_SET_ACTIVE = "set_active"
VALID_OPERATIONS = {OP_SOFT_DELETE, OP_RESTORE, OP_SET_ACTIVE}


class InvalidRequest(ValueError):
    """The bulk call cannot start at all."""


def _normalize_ids(ids) -> list[int]:
    if not isinstance(ids, (list, tuple)) or not ids:
        raise InvalidRequest("ids must be a non-empty list")

    seen: set[int] = set()
    ordered: list[int] = []
    for raw in ids:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise InvalidRequest(f"Invalid id {raw!r}: ids must be integers")
        if raw not in seen:
            seen.add(raw)
            ordered.append(raw)
    return ordered


def _target_active(operation: str, active: bool | None) -> bool:
    if operation == OP_SOFT_DELETE:
        return False
    if operation == OP_RESTORE:
        return True
    if operation == OP_SET_ACTIVE:
        if not isinstance(active, bool):
            raise InvalidRequest("set_active requires active=true|false")
        return active
    raise InvalidRequest(
        f"Unknown operation '{operation}'. Must be one of: {', '.join(sorted(VALID_OPERATIONS))}"
    )


def _record_summary(event_type: str, entity_type: str, actor_user_id: int | None, result: dict, extra: dict) -> None:
    try:
        append_activity(
            event_type=event_type,
            entity_type=entity_type,
            actor_user_id=actor_user_id,
            note=f"{len(result['succeeded'])} succeeded, {len(result['failed'])} failed",
            payload={**extra, **result},
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Could not record %s summary", event_type)


def bulk_apply(
    kind: str,
    ids,
    operation: str,
    *,
    active: bool | None = None,
    actor_user_id: int | None = None,
) -> dict:
    """
    Soft delete / restore / set_active over many ids of one entity kind.

    Raises:
        InvalidRequest: empty ids, non-integer ids, unknown operation
        UnknownEntityKind: kind not registered
    """
    id_list = _normalize_ids(ids)
    target = _target_active(operation, active)
    get_model(kind)

    succeeded: list[int] = []
    failed: list[dict] = []

    for entity_id in id_list:
        try:
            set_active(kind, entity_id, target, actor_user_id=actor_user_id)
            succeeded.append(entity_id)
        except EntityNotFound:
            db.session.rollback()
            failed.append({"id": entity_id, "reason": "not found"})
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception("Bulk %s failed for %s %s", operation, kind, entity_id)
            failed.append({"id": entity_id, "reason": f"storage error: {type(e).__name__}"})

    result = {"succeeded": succeeded, "failed": failed}
    _record_summary(
        f"{kind}.bulk_{operation}",
        kind,
        actor_user_id,
        result,
        {"operation": operation, "active": target},
    )
    return result


def bulk_transition(
    ids,
    target_status: str,
    *,
    actor_user_id: int | None = None,
    notes: str | None = None,
) -> dict:
    """
    Drive many requests to target_status through the state machine.

    Per-id IllegalTransition / ConcurrentModification / not found end up
    in `failed`; they never abort the batch.
    """
    id_list = _normalize_ids(ids)
    if not target_status:
        raise InvalidRequest("status is required")
    if target_status not in VALID_REQUEST_STATUSES:
        raise InvalidRequest(
            f"Invalid status '{target_status}'. Must be one of: {', '.join(sorted(VALID_REQUEST_STATUSES))}"
        )

    succeeded: list[int] = []
    failed: list[dict] = []

    for request_id in id_list:
        try:
            transition(request_id, target_status, actor_user_id=actor_user_id, notes=notes)
            succeeded.append(request_id)
        except RequestNotFound:
            failed.append({"id": request_id, "reason": "not found"})
        except (IllegalTransition, ConcurrentModification) as e:
            failed.append({"id": request_id, "reason": str(e)})
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception("Bulk transition to %s failed for request %s", target_status, request_id)
            failed.append({"id": request_id, "reason": f"storage error: {type(e).__name__}"})

    result = {"succeeded": succeeded, "failed": failed}
    _record_summary(
        "request.bulk_transition",
        "request",
        actor_user_id,
        result,
        {"target_status": target_status},
    )
    return result
