"""
Concurrency tests against a file-backed SQLite database.

Each worker thread runs in its own app context and therefore its own
session and connection, like concurrent HTTP requests would.
"""

import os
import tempfile
import threading

import pytest

from proforma import create_app
from proforma.extensions import db
from proforma.models import Brand, Category, Product, Request
from proforma.services import request_service
from proforma.services.request_service import ConcurrentModification, IllegalTransition
from proforma.services.sequence_service import next_request_number, parse_request_number


@pytest.fixture
def file_app():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
    })

    with app.app_context():
        db.drop_all()
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()
    tmpdir.cleanup()


def _run_threads(target, count):
    threads = [threading.Thread(target=target) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_concurrent_allocation_yields_distinct_contiguous_numbers(file_app):
    workers = 10
    numbers = []
    errors = []
    lock = threading.Lock()
    barrier = threading.Barrier(workers)

    def worker():
        with file_app.app_context():
            try:
                barrier.wait()
                number = next_request_number(2025)
                db.session.commit()
                with lock:
                    numbers.append(number)
            except Exception as exc:
                db.session.rollback()
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    _run_threads(worker, workers)

    assert errors == []
    assert len(numbers) == workers
    assert len(set(numbers)) == workers
    assert sorted(parse_request_number(n)[1] for n in numbers) == list(range(1, workers + 1))


def test_concurrent_approvals_apply_once(file_app):
    with file_app.app_context():
        brand = Brand(name="Ogla", slug="ogla")
        category = Category(name="Oils", slug="oils")
        db.session.add_all([brand, category])
        db.session.flush()
        product = Product(
            brand_id=brand.id, category_id=category.id, name="Shea Oil", slug="shea-oil",
            base_price_cents=1500, currency="GHS",
        )
        db.session.add(product)
        db.session.commit()

        req = request_service.submit_request(
            basket=[(product.id, 3)],
            customer={"first_name": "Ama", "email": "ama@example.com"},
        )
        request_id = req.id

    workers = 2
    outcomes = []
    lock = threading.Lock()
    barrier = threading.Barrier(workers)

    def worker():
        with file_app.app_context():
            try:
                barrier.wait()
                request_service.transition(request_id, "approved")
                result = "ok"
            except (ConcurrentModification, IllegalTransition) as exc:
                result = type(exc).__name__
            finally:
                db.session.remove()
            with lock:
                outcomes.append(result)

    _run_threads(worker, workers)

    assert outcomes.count("ok") == 1
    assert len(outcomes) == workers

    with file_app.app_context():
        assert db.session.get(Request, request_id).status == "approved"
