# Overview: Service-layer operations for proforma requests; submission and the status state machine.

"""
Proforma Request Lifecycle

================================================================================
STATE MACHINE
================================================================================

    pending -> approved | rejected
    approved -> processing | completed        (fulfillment tracking only)
    processing -> completed                   (fulfillment tracking only)

    pending:    the only initial state
    rejected:   terminal
    completed:  terminal
    Nothing ever moves back to pending.

Fulfillment transitions are enabled by REQUEST_FULFILLMENT_TRACKING.

RULES:
1. A transition is a compare-and-set on the stored status:
       UPDATE requests SET status=:to WHERE id=:id AND status=:from
   Zero rows affected means another admin got there first:
   ConcurrentModification, nothing changed.
2. An illegal target raises IllegalTransition and changes nothing.
3. The status change commits first. Notification is published afterwards
   as a RequestStatusChanged event; a failing consumer cannot undo it.
4. Only status and notified_at are ever written after creation.
================================================================================
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from ..events import RequestStatusChanged, RequestSubmitted, get_event_bus
from ..extensions import db
from ..models import Request, RequestLine, User
from ..models.requests import VALID_REQUEST_STATUSES
from ..time_utils import utcnow
from .activity_service import append_activity
from .invoice_service import price_basket
from .sequence_service import next_request_number
from .tombstone_service import paginate


BASE_TRANSITIONS = {
    "pending": {"approved", "rejected"},
}
FULFILLMENT_TRANSITIONS = {
    "approved": {"processing", "completed"},
    "processing": {"completed"},
}
NOTIFY_ON = {"approved", "rejected"}


class IllegalTransition(ValueError):
    """Requested status change is not allowed from the current status."""


class ConcurrentModification(RuntimeError):
    """The stored status changed between read and compare-and-set."""


class RequestNotFound(LookupError):
    pass


def allowed_transitions(from_status: str) -> set[str]:
    allowed = set(BASE_TRANSITIONS.get(from_status, set()))
    if current_app.config.get("REQUEST_FULFILLMENT_TRACKING", False):
        allowed |= FULFILLMENT_TRANSITIONS.get(from_status, set())
    return allowed


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in allowed_transitions(from_status)


# =============================================================================
# Submission
# =============================================================================

def _customer_snapshot(customer: dict | None, user: User | None) -> dict:
    data = {k: v for k, v in (customer or {}).items() if v is not None}
    if user is not None:
        data.setdefault("first_name", user.first_name)
        data.setdefault("last_name", user.last_name)
        data.setdefault("email", user.email)
        data.setdefault("phone", user.phone)
        data.setdefault("company_name", user.company_name)
    return {k: v for k, v in data.items() if v is not None}


def submit_request(
    *,
    basket: list[tuple[int, int]],
    customer: dict | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Request:
    """
    Price a basket, mint a request number and persist a pending Request.

    Args:
        basket: (product_id, quantity) pairs, already validated
        customer: contact snapshot (first_name, last_name, email, phone, company_name, ...)
        notes: free text from the customer
        user_id: signed-in customer, or None for a guest

    Raises:
        ProductUnavailable: a basket product is missing or deleted
        InvalidQuantity: a quantity < 1
        AllocationFailed: the request number could not be minted
    """
    user = None
    if user_id is not None:
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            raise ValueError(f"User {user_id} not found")

    priced = price_basket(basket, default_currency=current_app.config.get("DEFAULT_CURRENCY", "GHS"))
    snapshot = _customer_snapshot(customer, user)

    # Allocation first: a retry inside it rolls the session back.
    request_number = next_request_number()

    customer_name = f"{snapshot.get('first_name', '')} {snapshot.get('last_name', '')}".strip()
    req = Request(
        request_number=request_number,
        user_id=user_id,
        customer_name=customer_name or "Anonymous Customer",
        customer_email=snapshot.get("email"),
        customer_phone=snapshot.get("phone"),
        company_name=snapshot.get("company_name"),
        customer_data=snapshot,
        is_guest=user_id is None,
        notes=notes,
        currency=priced.currency,
        total_amount_cents=priced.total_amount_cents,
        status="pending",
    )
    req.lines = [
        RequestLine(
            product_id=line.product_id,
            product_name=line.name,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            line_total_cents=line.line_total_cents,
        )
        for line in priced.lines
    ]
    db.session.add(req)
    db.session.flush()

    append_activity(
        event_type="request.submitted",
        entity_type="request",
        entity_id=req.id,
        actor_user_id=user_id,
        note=f"Submitted request {request_number}",
        payload={
            "request_number": request_number,
            "total_amount_cents": priced.total_amount_cents,
            "item_count": len(priced.lines),
            "is_guest": user_id is None,
        },
    )

    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    get_event_bus().publish(RequestSubmitted(request_id=req.id, request_number=request_number))
    return req


# =============================================================================
# State machine
# =============================================================================

def transition(
    request_id: int,
    target_status: str,
    *,
    actor_user_id: int | None = None,
    notes: str | None = None,
) -> Request:
    """
    Move a request to target_status.

    Raises:
        RequestNotFound: no such request
        IllegalTransition: target not reachable from the current status
        ConcurrentModification: status changed underneath us
    """
    if target_status not in VALID_REQUEST_STATUSES:
        raise IllegalTransition(
            f"Invalid status '{target_status}'. Must be one of: {', '.join(sorted(VALID_REQUEST_STATUSES))}"
        )

    req = db.session.get(Request, request_id)
    if req is None:
        raise RequestNotFound(f"Request {request_id} not found")

    previous_status = req.status
    if not can_transition(previous_status, target_status):
        raise IllegalTransition(
            f"Cannot move request {req.request_number} from '{previous_status}' to '{target_status}'"
        )

    stmt = (
        update(Request)
        .where(Request.id == request_id, Request.status == previous_status)
        .values(status=target_status)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.rollback()
        raise ConcurrentModification(
            f"Request {req.request_number} is no longer '{previous_status}'"
        )

    append_activity(
        event_type=f"request.{target_status}",
        entity_type="request",
        entity_id=request_id,
        actor_user_id=actor_user_id,
        note=f"Request {req.request_number} {previous_status} -> {target_status}",
        payload={
            "request_number": req.request_number,
            "previous_status": previous_status,
            "new_status": target_status,
            "notes": notes,
        },
    )
    db.session.commit()
    db.session.refresh(req)

    get_event_bus().publish(RequestStatusChanged(
        request_id=req.id,
        request_number=req.request_number,
        previous_status=previous_status,
        new_status=target_status,
        actor_user_id=actor_user_id,
        notes=notes,
    ))
    return req


def mark_notified(request_id: int) -> bool:
    """Stamp notified_at. Returns False if the request vanished."""
    result = db.session.execute(
        update(Request)
        .where(Request.id == request_id)
        .values(notified_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return bool(result.rowcount)


# =============================================================================
# Queries
# =============================================================================

def get_request(request_id: int) -> Request | None:
    return db.session.get(Request, request_id)


def get_request_by_number(request_number: str) -> Request | None:
    return (
        db.session.query(Request)
        .filter(Request.request_number == (request_number or "").strip().upper())
        .first()
    )


def list_requests(
    *,
    status: str | None = None,
    user_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Newest first; optional status and owner filters."""
    if status is not None and status not in VALID_REQUEST_STATUSES:
        raise ValueError(f"Invalid status '{status}'")

    q = db.session.query(Request)
    if status is not None:
        q = q.filter(Request.status == status)
    if user_id is not None:
        q = q.filter(Request.user_id == user_id)
    q = q.order_by(Request.created_at.desc(), Request.id.desc())
    return paginate(q, page=page, per_page=per_page)


def request_stats() -> dict:
    """Dashboard counts per status plus the quoted total of approved requests."""
    rows = (
        db.session.query(Request.status, func.count(Request.id))
        .group_by(Request.status)
        .all()
    )
    counts = {status: 0 for status in sorted(VALID_REQUEST_STATUSES)}
    for status, count in rows:
        counts[status] = count

    approved_total = (
        db.session.query(func.coalesce(func.sum(Request.total_amount_cents), 0))
        .filter(Request.status.in_(("approved", "processing", "completed")))
        .scalar()
    )
    return {
        "total": sum(counts.values()),
        "by_status": counts,
        "approved_amount_cents": int(approved_total or 0),
    }


# =============================================================================
# Document tracking
# =============================================================================

def record_document_generated(request_number: str, *, actor_user_id: int | None = None) -> Request:
    req = get_request_by_number(request_number)
    if req is None:
        raise RequestNotFound(f"Request {request_number} not found")

    append_activity(
        event_type="request.document_generated",
        entity_type="request",
        entity_id=req.id,
        actor_user_id=actor_user_id,
        note=f"Proforma PDF generated for {req.request_number}",
        payload={"status": req.status},
    )
    db.session.commit()
    return req


def record_admin_download(request_number: str, *, actor_user_id: int) -> Request:
    req = get_request_by_number(request_number)
    if req is None:
        raise RequestNotFound(f"Request {request_number} not found")

    append_activity(
        event_type="request.document_downloaded",
        entity_type="request",
        entity_id=req.id,
        actor_user_id=actor_user_id,
        note=f"Admin downloaded proforma for {req.request_number}",
    )
    db.session.commit()
    return req
