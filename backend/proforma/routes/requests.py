# Overview: Flask API routes for proforma requests; parses input and returns JSON responses.

# backend/proforma/routes/requests.py
"""
Proforma Request API Routes

- POST /api/requests                        - Submit a basket (guest or signed in)
- POST /api/requests/preview                - Price a basket without submitting
- GET  /api/requests                        - Admin listing (status filter, pagination)
- GET  /api/requests/mine                   - Caller's own requests
- GET  /api/requests/stats                  - Admin dashboard counts
- GET  /api/requests/<id>                   - Owner or admin
- GET  /api/requests/number/<number>        - Owner or admin, by request number
- GET  /api/requests/user/<user_id>         - Admin: one customer's requests
- PUT  /api/requests/<id>/status            - Admin: drive the state machine
- POST /api/requests/bulk/status            - Admin: many requests, per-id outcomes
- POST /api/requests/<number>/document      - Renderer payload for the customer copy
- POST /api/requests/<number>/admin-document - Renderer payload for the admin copy

SECURITY:
- Actor ids come from the gateway headers (g.current_user), never from the body
- Status changes are admin-only and recorded in the activity log with the actor
"""

from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..services import bulk_service, invoice_service, request_service
from ..services.bulk_service import InvalidRequest
from ..services.invoice_service import MixedCurrencyBasket, ProductUnavailable
from ..services.pricing_service import InvalidQuantity
from ..services.request_service import ConcurrentModification, IllegalTransition, RequestNotFound
from ..services.sequence_service import AllocationFailed
from ..validation import ValidationError, parse_basket
from ..decorators import optional_actor, require_actor, require_admin


requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")

CUSTOMER_FIELDS = {
    "first_name", "last_name", "email", "phone", "company_name",
    "company_type", "company_role", "address", "city", "country",
}


def _customer_from_payload(raw) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("customer must be an object")
    customer = {}
    for key, value in raw.items():
        if key not in CUSTOMER_FIELDS:
            raise ValidationError(f"Field not allowed: customer.{key}")
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"customer.{key} must be a string")
        customer[key] = value.strip() if isinstance(value, str) else None
    return customer


def _is_admin(user) -> bool:
    return user is not None and user.role in ("admin", "super_admin")


@requests_bp.post("")
@optional_actor
def submit_request_route():
    """
    Submit a basket for a proforma quote.

    Body:
        {
            "items": [{"product_id": 1, "quantity": 10}, ...],
            "customer": {"first_name": ..., "email": ..., ...},   // required for guests
            "notes": "..."
        }

    Error responses:
        400: Invalid basket or customer data, product unavailable, mixed currencies
        503: Request number could not be allocated
    """
    payload = request.get_json(silent=True) or {}

    try:
        basket = parse_basket(payload.get("items"))
        customer = _customer_from_payload(payload.get("customer"))
        notes = payload.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")
    except ValidationError as e:
        return {"error": str(e)}, 400

    user = g.current_user
    if user is None and not customer.get("email"):
        return {"error": "customer.email is required for guest requests"}, 400

    try:
        req = request_service.submit_request(
            basket=basket,
            customer=customer,
            notes=notes,
            user_id=user.id if user else None,
        )
    except ProductUnavailable as e:
        return {"error": str(e), "product_id": e.product_id}, 400
    except (InvalidQuantity, MixedCurrencyBasket) as e:
        return {"error": str(e)}, 400
    except AllocationFailed:
        current_app.logger.exception("Request submission failed: numbering unavailable")
        return {"error": "Request numbering is temporarily unavailable"}, 503
    except Exception:
        current_app.logger.exception("Request submission failed")
        return {"error": "Internal server error"}, 500

    return {"request": req.to_dict(), "message": f"Request {req.request_number} submitted"}, 201


@requests_bp.post("/preview")
def preview_request_route():
    payload = request.get_json(silent=True) or {}
    try:
        basket = parse_basket(payload.get("items"))
        return invoice_service.basket_preview(
            basket, default_currency=current_app.config.get("DEFAULT_CURRENCY", "GHS")
        )
    except (ValidationError, InvalidQuantity, MixedCurrencyBasket) as e:
        return {"error": str(e)}, 400
    except ProductUnavailable as e:
        return {"error": str(e), "product_id": e.product_id}, 400


@requests_bp.get("")
@require_admin
def list_requests_route():
    """
    Query params:
    - status: pending|approved|rejected|processing|completed (optional)
    - page, per_page: pagination (optional)
    """
    try:
        return request_service.list_requests(
            status=request.args.get("status") or None,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValueError as e:
        return {"error": str(e)}, 400


@requests_bp.get("/mine")
@require_actor
def my_requests_route():
    return request_service.list_requests(
        user_id=g.current_user.id,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@requests_bp.get("/stats")
@require_admin
def request_stats_route():
    return request_service.request_stats()


@requests_bp.get("/user/<int:user_id>")
@require_admin
def user_requests_route(user_id: int):
    return request_service.list_requests(user_id=user_id)


@requests_bp.get("/<int:request_id>")
@require_actor
def get_request_route(request_id: int):
    req = request_service.get_request(request_id)
    # Someone else's request looks the same as a missing one
    if req is None or (req.user_id != g.current_user.id and not _is_admin(g.current_user)):
        return {"error": "Request not found"}, 404
    return {"request": req.to_dict()}


@requests_bp.get("/number/<request_number>")
@require_actor
def get_request_by_number_route(request_number: str):
    req = request_service.get_request_by_number(request_number)
    if req is None or (req.user_id != g.current_user.id and not _is_admin(g.current_user)):
        return {"error": "Request not found"}, 404
    return {"request": req.to_dict()}


@requests_bp.put("/<int:request_id>/status")
@require_admin
def update_status_route(request_id: int):
    """
    Move a request through the state machine.

    Body:
        {"status": "approved", "notes": "optional admin note"}

    Error responses:
        400: Illegal transition or unknown status
        404: Request not found
        409: Another admin changed the status first
    """
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    notes = payload.get("notes")
    if not isinstance(status, str) or not status.strip():
        return {"error": "status is required"}, 400
    if notes is not None and not isinstance(notes, str):
        return {"error": "notes must be a string"}, 400

    try:
        req = request_service.transition(
            request_id,
            status.strip().lower(),
            actor_user_id=g.current_user.id,
            notes=notes,
        )
    except RequestNotFound:
        return {"error": "Request not found"}, 404
    except IllegalTransition as e:
        return {"error": str(e)}, 400
    except ConcurrentModification as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Status update failed for request %s", request_id)
        return {"error": "Internal server error"}, 500

    return {
        "request": req.to_dict(),
        "message": f"Request {req.request_number} is now {req.status}",
    }, 200


@requests_bp.post("/bulk/status")
@require_admin
def bulk_status_route():
    """
    Body: {"ids": [1, 2, 3], "status": "approved", "notes": "..."}

    Always 200 once started; per-id failures are in the body.
    """
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not isinstance(status, str) or not status.strip():
        return {"error": "status is required"}, 400

    try:
        result = bulk_service.bulk_transition(
            payload.get("ids"),
            status.strip().lower(),
            actor_user_id=g.current_user.id,
            notes=payload.get("notes"),
        )
    except InvalidRequest as e:
        return {"error": str(e)}, 400

    return result, 200


@requests_bp.post("/<request_number>/document")
@optional_actor
def customer_document_route(request_number: str):
    """
    Renderer payload for the customer's copy, and record that it was generated.

    Open to guests: the request number printed on the confirmation page is the key.
    """
    req = request_service.get_request_by_number(request_number)
    if req is None:
        return {"error": "Request not found"}, 404

    actor_id = g.current_user.id if g.current_user else None
    try:
        request_service.record_document_generated(req.request_number, actor_user_id=actor_id)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Could not record document generation for %s", req.request_number)

    return {"document": invoice_service.assemble_document(req)}, 200


@requests_bp.post("/<request_number>/admin-document")
@require_admin
def admin_document_route(request_number: str):
    try:
        req = request_service.record_admin_download(request_number, actor_user_id=g.current_user.id)
    except RequestNotFound:
        return {"error": "Request not found"}, 404

    document = invoice_service.assemble_document(req)
    document["admin_copy"] = True
    document["downloaded_by"] = g.current_user.email
    return {"document": document}, 200
