"""
Request submission and the status state machine.
"""

import pytest
from sqlalchemy import update

from conftest import make_product
from proforma.extensions import db
from proforma.models import ActivityEvent, Request
from proforma.services import request_service, tombstone_service
from proforma.services.invoice_service import MixedCurrencyBasket, ProductUnavailable
from proforma.services.pricing_service import InvalidQuantity
from proforma.services.request_service import (
    ConcurrentModification,
    IllegalTransition,
    RequestNotFound,
    can_transition,
)
from proforma.services.sequence_service import AllocationFailed


def _submit(product, quantity=10, **kwargs):
    kwargs.setdefault("customer", {"first_name": "Ama", "last_name": "Mensah", "email": "ama@example.com"})
    return request_service.submit_request(basket=[(product.id, quantity)], **kwargs)


def _events(entity_id):
    return [
        e.event_type
        for e in db.session.query(ActivityEvent)
        .filter_by(entity_type="request", entity_id=entity_id)
        .order_by(ActivityEvent.id)
    ]


class TestSubmit:

    @pytest.mark.parametrize("quantity,unit", [(5, 2500), (10, 2200), (75, 2000)])
    def test_lines_priced_by_tier(self, db_session, product, notifier, quantity, unit):
        req = _submit(product, quantity)

        line = req.lines[0]
        assert line.unit_price_cents == unit
        assert line.line_total_cents == unit * quantity
        assert req.total_amount_cents == unit * quantity
        assert req.status == "pending"

    def test_total_is_sum_of_lines(self, db_session, brand, category, product, notifier):
        other = make_product(brand, category, name="Shea Soap", base_price_cents=800)
        req = request_service.submit_request(
            basket=[(product.id, 50), (other.id, 3)],
            customer={"email": "buyer@example.com"},
        )
        assert req.total_amount_cents == 50 * 2000 + 3 * 800
        assert len(req.lines) == 2

    def test_duplicate_lines_merge_before_pricing(self, db_session, product, notifier):
        req = request_service.submit_request(
            basket=[(product.id, 6), (product.id, 6)],
            customer={"email": "buyer@example.com"},
        )
        assert len(req.lines) == 1
        assert req.lines[0].quantity == 12
        assert req.lines[0].unit_price_cents == 2200

    def test_number_minted_once_per_submission(self, db_session, product, notifier):
        first = _submit(product)
        second = _submit(product)
        assert first.request_number != second.request_number
        assert first.request_number.startswith("OGL-001")
        assert second.request_number.startswith("OGL-002")

    def test_guest_snapshot(self, db_session, product, notifier):
        req = _submit(product, customer={"first_name": "Yaw", "email": "yaw@example.com", "company_name": "Yaw Ltd"})
        assert req.is_guest is True
        assert req.user_id is None
        assert req.customer_name == "Yaw"
        assert req.company_name == "Yaw Ltd"

    def test_signed_in_customer_fills_missing_fields(self, db_session, product, customer, notifier):
        req = _submit(product, customer={}, user_id=customer.id)
        assert req.is_guest is False
        assert req.customer_email == customer.email
        assert req.company_name == "Mensah Trading"
        assert req.customer_name == "Ama Mensah"

    def test_deleted_product_rejected(self, db_session, product, notifier):
        tombstone_service.soft_delete("product", product.id)
        with pytest.raises(ProductUnavailable):
            _submit(product)
        assert db_session.query(Request).count() == 0

    def test_invalid_quantity_not_clamped(self, db_session, product, notifier):
        with pytest.raises(InvalidQuantity):
            _submit(product, 0)
        assert db_session.query(Request).count() == 0

    @pytest.mark.parametrize("basket_quantities", [(0, 5), (-3, 5), (5, 0), (0, -3, 5)])
    def test_each_entry_checked_before_merging(self, db_session, product, notifier, basket_quantities):
        with pytest.raises(InvalidQuantity):
            request_service.submit_request(
                basket=[(product.id, q) for q in basket_quantities],
                customer={"email": "buyer@example.com"},
            )
        assert db_session.query(Request).count() == 0

    def test_mixed_currency_basket_rejected(self, db_session, brand, category, product, notifier):
        imported = make_product(brand, category, name="Imported Argan Oil", base_price_cents=1000, currency="USD")

        with pytest.raises(MixedCurrencyBasket):
            request_service.submit_request(
                basket=[(product.id, 1), (imported.id, 1)],
                customer={"email": "buyer@example.com"},
            )
        assert db_session.query(Request).count() == 0
        assert notifier.sent == []

    def test_allocation_failure_persists_nothing(self, db_session, product, notifier, counter_unavailable):
        with pytest.raises(AllocationFailed):
            _submit(product)

        db_session.rollback()
        assert db_session.query(Request).count() == 0
        assert db_session.query(ActivityEvent).count() == 0
        assert notifier.sent == []

    def test_confirmation_sent_and_stamped(self, db_session, product, notifier):
        req = _submit(product)
        assert [(n["request_number"], n["status"]) for n in notifier.sent] == [(req.request_number, "pending")]
        db_session.expire_all()
        assert db_session.get(Request, req.id).notified_at is not None

    def test_later_tier_edit_does_not_change_request(self, db_session, product, notifier):
        from proforma.services import catalog_service

        req = _submit(product, 10)
        catalog_service.update_product(
            product_id=product.id,
            patch={},
            tiers=[{"min_quantity": 1, "max_quantity": None, "price_cents": 100}],
            replace_tiers=True,
        )
        db_session.expire_all()
        stored = db_session.get(Request, req.id)
        assert stored.lines[0].unit_price_cents == 2200
        assert stored.total_amount_cents == 22000


class TestStateMachine:

    def test_pending_to_approved_once(self, db_session, product, admin, notifier):
        req = _submit(product)

        updated = request_service.transition(req.id, "approved", actor_user_id=admin.id)
        assert updated.status == "approved"

        with pytest.raises(IllegalTransition):
            request_service.transition(req.id, "approved", actor_user_id=admin.id)

    def test_pending_to_rejected(self, db_session, product, notifier):
        req = _submit(product)
        assert request_service.transition(req.id, "rejected").status == "rejected"

    @pytest.mark.parametrize("target", ["processing", "completed", "pending"])
    def test_illegal_from_pending(self, db_session, product, notifier, target):
        req = _submit(product)
        with pytest.raises(IllegalTransition):
            request_service.transition(req.id, target)
        db_session.expire_all()
        assert db_session.get(Request, req.id).status == "pending"

    def test_unknown_status(self, db_session, product, notifier):
        req = _submit(product)
        with pytest.raises(IllegalTransition):
            request_service.transition(req.id, "shipped")

    def test_rejected_is_terminal(self, db_session, product, notifier, fulfillment_tracking):
        req = _submit(product)
        request_service.transition(req.id, "rejected")
        for target in ("pending", "approved", "processing", "completed"):
            with pytest.raises(IllegalTransition):
                request_service.transition(req.id, target)

    def test_missing_request(self, db_session):
        with pytest.raises(RequestNotFound):
            request_service.transition(12345, "approved")

    def test_fulfillment_track_disabled_by_default(self, app, db_session, product, notifier):
        req = _submit(product)
        request_service.transition(req.id, "approved")
        with app.app_context():
            assert can_transition("approved", "processing") is False
        with pytest.raises(IllegalTransition):
            request_service.transition(req.id, "processing")

    def test_fulfillment_track_when_enabled(self, db_session, product, notifier, fulfillment_tracking):
        req = _submit(product)
        request_service.transition(req.id, "approved")
        request_service.transition(req.id, "processing")
        assert request_service.transition(req.id, "completed").status == "completed"
        with pytest.raises(IllegalTransition):
            request_service.transition(req.id, "approved")

    def test_stale_status_is_concurrent_modification(self, db_session, product, notifier):
        req = _submit(product)
        db_session.get(Request, req.id)  # identity map now holds status=pending

        # Another admin's change lands underneath the loaded row
        db_session.execute(
            update(Request)
            .where(Request.id == req.id)
            .values(status="rejected")
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConcurrentModification):
            request_service.transition(req.id, "approved")

        assert "request.approved" not in _events(req.id)
        assert [n["status"] for n in notifier.sent] == ["pending"]

    def test_transition_records_activity_with_actor(self, db_session, product, admin, notifier):
        req = _submit(product)
        request_service.transition(req.id, "approved", actor_user_id=admin.id, notes="Stock confirmed")

        event = (
            db_session.query(ActivityEvent)
            .filter_by(entity_type="request", entity_id=req.id, event_type="request.approved")
            .one()
        )
        assert event.actor_user_id == admin.id
        assert event.payload["previous_status"] == "pending"
        assert event.payload["notes"] == "Stock confirmed"

    def test_only_status_and_notified_at_change(self, db_session, product, notifier):
        req = _submit(product)
        before = req.to_dict()
        request_service.transition(req.id, "approved", notes="ignored for the row")
        db_session.expire_all()
        after = db_session.get(Request, req.id).to_dict()

        for key in ("request_number", "customer", "lines", "notes", "total_amount_cents", "created_at"):
            assert after[key] == before[key]
        assert after["status"] == "approved"


class TestNotificationDecoupling:

    def test_failing_notifier_does_not_undo_transition(self, db_session, product, failing_notifier):
        req = _submit(product)

        updated = request_service.transition(req.id, "approved")

        assert updated.status == "approved"
        db_session.expire_all()
        stored = db_session.get(Request, req.id)
        assert stored.status == "approved"
        assert stored.notified_at is None
        assert failing_notifier.calls == 2  # confirmation + approval
        assert "request.notification_failed" in _events(req.id)

    def test_approval_notifies_with_new_status(self, db_session, product, notifier):
        req = _submit(product)
        request_service.transition(req.id, "approved")

        last = notifier.sent[-1]
        assert last["status"] == "approved"
        assert last["document"]["status"] == "approved"
        assert last["document"]["request_number"] == req.request_number

    def test_fulfillment_steps_do_not_notify(self, db_session, product, notifier, fulfillment_tracking):
        req = _submit(product)
        request_service.transition(req.id, "approved")
        request_service.transition(req.id, "processing")
        assert [n["status"] for n in notifier.sent] == ["pending", "approved"]

    def test_renderer_failure_still_notifies(self, app, db_session, product, notifier):
        from proforma.services import notification_service

        class BrokenRenderer:
            def render(self, document):
                raise RuntimeError("renderer down")

        previous = app.extensions[notification_service.RENDERER_KEY]
        notification_service.set_renderer(app, BrokenRenderer())
        try:
            req = _submit(product)
            request_service.transition(req.id, "rejected")
        finally:
            notification_service.set_renderer(app, previous)

        assert [n["status"] for n in notifier.sent] == ["pending", "rejected"]
        assert all(n["attachment"] is None for n in notifier.sent)

    def test_rendered_attachment_is_recorded(self, app, db_session, product, notifier):
        from proforma.services import notification_service

        class PdfRenderer:
            def render(self, document):
                return b"%PDF-1.4 " + document["request_number"].encode()

        previous = app.extensions[notification_service.RENDERER_KEY]
        notification_service.set_renderer(app, PdfRenderer())
        try:
            req = _submit(product)
        finally:
            notification_service.set_renderer(app, previous)

        assert notifier.sent[0]["attachment"].endswith(req.request_number.encode())
        assert "request.document_generated" in _events(req.id)


class TestQueries:

    def test_list_filters_and_orders(self, db_session, product, notifier):
        first = _submit(product)
        second = _submit(product)
        request_service.transition(first.id, "approved")

        pending = request_service.list_requests(status="pending")
        assert [r["id"] for r in pending["items"]] == [second.id]

        everything = request_service.list_requests()
        assert [r["id"] for r in everything["items"]] == [second.id, first.id]

    def test_list_rejects_unknown_status(self, db_session):
        with pytest.raises(ValueError):
            request_service.list_requests(status="lost")

    def test_pagination(self, db_session, product, notifier):
        for _ in range(3):
            _submit(product)
        page = request_service.list_requests(page=2, per_page=2)
        assert page["count"] == 1
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["has_prev"] is True

    def test_my_requests(self, db_session, product, customer, notifier):
        mine = _submit(product, customer={}, user_id=customer.id)
        _submit(product)
        result = request_service.list_requests(user_id=customer.id)
        assert [r["id"] for r in result["items"]] == [mine.id]

    def test_lookup_by_number_is_case_insensitive(self, db_session, product, notifier):
        req = _submit(product)
        assert request_service.get_request_by_number(req.request_number.lower()).id == req.id

    def test_stats(self, db_session, product, notifier):
        a = _submit(product, 10)
        _submit(product, 5)
        request_service.transition(a.id, "approved")

        stats = request_service.request_stats()
        assert stats["total"] == 2
        assert stats["by_status"]["approved"] == 1
        assert stats["by_status"]["pending"] == 1
        assert stats["approved_amount_cents"] == 22000

    def test_document_events(self, db_session, product, admin, notifier):
        req = _submit(product)
        request_service.record_document_generated(req.request_number)
        request_service.record_admin_download(req.request_number, actor_user_id=admin.id)

        events = _events(req.id)
        assert "request.document_generated" in events
        assert "request.document_downloaded" in events

        with pytest.raises(RequestNotFound):
            request_service.record_admin_download("OGL-99999", actor_user_id=admin.id)
