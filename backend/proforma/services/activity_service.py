# Overview: Service-layer operations for the activity log; append-only audit events.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import ActivityEvent
"""
Activity Log Invariants

- Append-only. No updates, no deletes.
- Events are flushed inside the same DB transaction as the change they
  record; the caller commits.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_activity(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int | None = None,
    actor_user_id: int | None = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
    occurred_at: Optional[datetime] = None,
) -> ActivityEvent:
    ev = ActivityEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        note=note[:255] if note else note,
        payload=payload,
        occurred_at=occurred_at,  # if None, db default applies
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_activity(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    event_type: str | None = None,
    limit: int = 200,
) -> list[ActivityEvent]:
    q = db.session.query(ActivityEvent)
    if entity_type is not None:
        q = q.filter(ActivityEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(ActivityEvent.entity_id == entity_id)
    if event_type is not None:
        q = q.filter(ActivityEvent.event_type == event_type)
    return q.order_by(ActivityEvent.id.desc()).limit(limit).all()
