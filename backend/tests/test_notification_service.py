"""
Email content and notifier selection.
"""

import pytest

from proforma.services import notification_service, request_service
from proforma.services.notification_service import LogNotifier, SmtpNotifier


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, username, password):
        self.credentials = (username, password)

    def send_message(self, message):
        self.messages.append(message)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(notification_service.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_subjects():
    assert notification_service.build_subject("OGL-00126", "pending") == "Request Confirmation - OGL-00126"
    assert notification_service.build_subject("OGL-00126", "approved") == "Request Approved - OGL-00126"
    assert notification_service.build_subject("OGL-00126", "rejected") == "Request Update - OGL-00126"


def test_build_notifier_backends():
    assert isinstance(notification_service.build_notifier({"NOTIFIER_BACKEND": "log"}), LogNotifier)
    smtp = notification_service.build_notifier({
        "NOTIFIER_BACKEND": "smtp",
        "SMTP_HOST": "mail.example.com",
        "SMTP_PORT": 587,
        "MAIL_SENDER": "sales@example.com",
    })
    assert isinstance(smtp, SmtpNotifier)
    with pytest.raises(ValueError):
        notification_service.build_notifier({"NOTIFIER_BACKEND": "pigeon"})


def test_smtp_sends_with_attachment(app, db_session, product, fake_smtp, notifier):
    req = request_service.submit_request(
        basket=[(product.id, 10)],
        customer={"first_name": "Ama", "email": "ama@example.com"},
    )
    smtp = SmtpNotifier(host="mail.example.com", port=587, sender="sales@example.com", username="sales", password="pw")
    document = notification_service.assemble_document(req, status="approved")

    smtp.notify(req, "approved", document=document, attachment=b"%PDF-1.4")

    sent = fake_smtp.instances[0]
    assert sent.started_tls is True
    assert sent.credentials == ("sales", "pw")
    message = sent.messages[0]
    assert message["Subject"] == f"Request Approved - {req.request_number}"
    assert message["To"] == "ama@example.com"
    assert [p.get_filename() for p in message.iter_attachments()] == [f"proforma-{req.request_number}.pdf"]
    body = message.get_body(preferencelist=("plain",)).get_content()
    assert "Raw Shea Butter 1kg x 10 @ 22.00 = 220.00" in body
    assert "Total: GHS 220.00" in body


def test_smtp_skips_request_without_email(app, db_session, product, fake_smtp, notifier):
    req = request_service.submit_request(basket=[(product.id, 1)], customer={"first_name": "Walk-in"})
    smtp = SmtpNotifier(host="mail.example.com", port=25, sender="sales@example.com", use_tls=False)

    smtp.notify(req, "pending", document=notification_service.assemble_document(req))

    assert fake_smtp.instances == []


def test_log_notifier_keeps_record(app, db_session, product):
    log = LogNotifier()
    previous = app.extensions[notification_service.NOTIFIER_KEY]
    notification_service.set_notifier(app, log)
    try:
        req = request_service.submit_request(basket=[(product.id, 1)], customer={"email": "a@example.com"})
    finally:
        notification_service.set_notifier(app, previous)
    assert len(log.sent) == 1
    assert log.sent[0][0] == req.request_number
