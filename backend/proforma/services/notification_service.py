# Overview: Best-effort request notifications; consumes request events and emails customers.

"""
Notification Consumer

WHY AN EVENT CONSUMER:
request_service commits a status change and then publishes an event. This
module subscribes to those events and does the slow, fallible work
(render the proforma, send the email). A failure here is logged and
dropped: the committed status is the authoritative fact.

FLOW (approved / rejected / submitted):
1. Re-assemble the invoice payload with the new status
2. Hand it to the renderer (optional, may fail -> no attachment)
3. Notifier.notify(request, status, document=..., attachment=...)
4. On success, stamp notified_at

No retry queue. Exactly-once delivery is not promised.
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Protocol

from flask import Flask, current_app

from ..events import RequestStatusChanged, RequestSubmitted, get_event_bus
from ..extensions import db
from ..models import Request
from .activity_service import append_activity
from .invoice_service import assemble_document
from .pricing_service import format_cents
from . import request_service


NOTIFIER_KEY = "proforma.notifier"
RENDERER_KEY = "proforma.renderer"

SUBJECTS = {
    "pending": "Request Confirmation - {number}",
    "approved": "Request Approved - {number}",
    "rejected": "Request Update - {number}",
}


class Notifier(Protocol):
    def notify(self, request: Request, status: str, *, document: dict, attachment: bytes | None = None) -> None:
        ...


class DocumentRenderer(Protocol):
    def render(self, document: dict) -> bytes | None:
        ...


class NullRenderer:
    """No PDF service configured: notifications go out without an attachment."""

    def render(self, document: dict) -> bytes | None:
        return None


class LogNotifier:
    """Writes the email to the application log instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def notify(self, request: Request, status: str, *, document: dict, attachment: bytes | None = None) -> None:
        subject = build_subject(request.request_number, status)
        current_app.logger.info(
            "notification to=%s subject=%r attachment=%s",
            request.customer_email or "<none>",
            subject,
            "yes" if attachment else "no",
        )
        self.sent.append((request.request_number, status))


class SmtpNotifier:
    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def notify(self, request: Request, status: str, *, document: dict, attachment: bytes | None = None) -> None:
        if not request.customer_email:
            current_app.logger.warning(
                "Skipping email for %s: no customer email on file", request.request_number
            )
            return

        message = EmailMessage()
        message["Subject"] = build_subject(request.request_number, status)
        message["From"] = self.sender
        message["To"] = request.customer_email
        message.set_content(build_body(document))
        if attachment:
            message.add_attachment(
                attachment,
                maintype="application",
                subtype="pdf",
                filename=f"proforma-{request.request_number}.pdf",
            )

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)


def build_subject(request_number: str, status: str) -> str:
    template = SUBJECTS.get(status, "Request Update - {number}")
    return template.format(number=request_number)


def build_body(document: dict) -> str:
    customer = document.get("customer") or {}
    lines = [
        f"Dear {customer.get('name') or 'Customer'},",
        "",
        f"Request {document['request_number']} is now {document['status']}.",
        "",
    ]
    for line in document.get("lines", []):
        lines.append(
            f"  {line['name']} x {line['quantity']} @ {line['unit_price']} = {line['line_total']}"
        )
    lines.append("")
    lines.append(f"Total: {document['currency']} {format_cents(document['total_amount_cents'])}")
    return "\n".join(lines)


def build_notifier(config) -> Notifier:
    backend = (config.get("NOTIFIER_BACKEND") or "log").strip().lower()
    if backend == "smtp":
        return SmtpNotifier(
            host=config["SMTP_HOST"],
            port=config["SMTP_PORT"],
            sender=config["MAIL_SENDER"],
            username=config.get("SMTP_USERNAME"),
            password=config.get("SMTP_PASSWORD"),
            use_tls=config.get("SMTP_USE_TLS", True),
            timeout=config.get("NOTIFIER_TIMEOUT_SECONDS", 10.0),
        )
    if backend == "log":
        return LogNotifier()
    raise ValueError(f"Unknown NOTIFIER_BACKEND '{backend}'")


def get_notifier() -> Notifier:
    return current_app.extensions[NOTIFIER_KEY]


def get_renderer() -> DocumentRenderer:
    return current_app.extensions[RENDERER_KEY]


def set_notifier(app: Flask, notifier: Notifier) -> None:
    app.extensions[NOTIFIER_KEY] = notifier


def set_renderer(app: Flask, renderer: DocumentRenderer) -> None:
    app.extensions[RENDERER_KEY] = renderer


# =============================================================================
# Consumers
# =============================================================================

def deliver(request_id: int, status: str) -> bool:
    """
    Render and send one notification. Returns True when the notifier succeeded.

    Never raises: every failure is logged with the request number and status.
    """
    req = request_service.get_request(request_id)
    if req is None:
        current_app.logger.warning("Notification skipped: request %s not found", request_id)
        return False

    document = assemble_document(req, status=status)

    attachment = None
    try:
        attachment = get_renderer().render(document)
    except Exception:
        current_app.logger.exception(
            "Proforma render failed for %s (status=%s)", req.request_number, status
        )

    if attachment:
        try:
            request_service.record_document_generated(req.request_number)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Could not record document generation for %s", req.request_number)

    try:
        get_notifier().notify(req, status, document=document, attachment=attachment)
    except Exception:
        current_app.logger.exception(
            "Notification failed for %s (status=%s)", req.request_number, status
        )
        return False

    try:
        request_service.mark_notified(req.id)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Could not stamp notified_at for %s", req.request_number)
    return True


def on_request_submitted(event: RequestSubmitted) -> None:
    deliver(event.request_id, "pending")


def on_status_changed(event: RequestStatusChanged) -> None:
    if event.new_status not in request_service.NOTIFY_ON:
        return
    delivered = deliver(event.request_id, event.new_status)
    if not delivered:
        # Visible in the activity feed so an admin can resend by hand.
        try:
            append_activity(
                event_type="request.notification_failed",
                entity_type="request",
                entity_id=event.request_id,
                actor_user_id=event.actor_user_id,
                note=f"Notification for {event.request_number} ({event.new_status}) not delivered",
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Could not record notification failure for %s", event.request_number)


def init_app(app: Flask) -> None:
    """Install the configured notifier and subscribe the consumers."""
    app.extensions.setdefault(NOTIFIER_KEY, build_notifier(app.config))
    app.extensions.setdefault(RENDERER_KEY, NullRenderer())

    bus = get_event_bus()
    bus.subscribe(RequestSubmitted, on_request_submitted)
    bus.subscribe(RequestStatusChanged, on_status_changed)
