"""
Pytest fixtures for the proforma backend tests.

Provides the app with an in-memory database, per-test table cleanup,
catalog/user factories, a recording notifier and identity headers.
"""

import pytest
from sqlalchemy.exc import OperationalError

from proforma import create_app
from proforma.extensions import db
from proforma.models import Brand, Category, PriceTier, Product, Story, User
from proforma.services import concurrency, notification_service


class RecordingNotifier:
    """Captures notifications instead of sending them."""

    def __init__(self):
        self.sent = []

    def notify(self, request, status, *, document, attachment=None):
        self.sent.append({
            "request_number": request.request_number,
            "status": status,
            "document": document,
            "attachment": attachment,
        })


class FailingNotifier:
    def __init__(self):
        self.calls = 0

    def notify(self, request, status, *, document, attachment=None):
        self.calls += 1
        raise ConnectionError("SMTP server unreachable")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'NOTIFIER_BACKEND': 'log',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def notifier(app):
    """Install a recording notifier for the duration of a test."""
    previous = app.extensions[notification_service.NOTIFIER_KEY]
    recorder = RecordingNotifier()
    notification_service.set_notifier(app, recorder)
    yield recorder
    notification_service.set_notifier(app, previous)


@pytest.fixture(scope='function')
def failing_notifier(app):
    previous = app.extensions[notification_service.NOTIFIER_KEY]
    failing = FailingNotifier()
    notification_service.set_notifier(app, failing)
    yield failing
    notification_service.set_notifier(app, previous)


@pytest.fixture(scope='function')
def fulfillment_tracking(app):
    app.config['REQUEST_FULFILLMENT_TRACKING'] = True
    yield
    app.config['REQUEST_FULFILLMENT_TRACKING'] = False


@pytest.fixture(scope='function')
def counter_unavailable(monkeypatch):
    """Every statement touching request_sequences fails as if the database were locked."""
    real_execute = db.session.execute

    def execute(statement, *args, **kwargs):
        if "request_sequences" in str(statement):
            raise OperationalError(str(statement), {}, Exception("database is locked"))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)
    monkeypatch.setattr(db.session, "execute", execute)


# =============================================================================
# Factories
# =============================================================================

def make_brand(name="Ogla", slug=None, is_active=True):
    brand = Brand(name=name, slug=slug or name.lower().replace(" ", "-"), is_active=is_active)
    db.session.add(brand)
    db.session.commit()
    return brand


def make_category(name="Shea Butter", slug=None, is_active=True):
    category = Category(name=name, slug=slug or name.lower().replace(" ", "-"), is_active=is_active)
    db.session.add(category)
    db.session.commit()
    return category


def make_product(brand, category, *, name="Raw Shea Butter 1kg", slug=None, base_price_cents=2500, tiers=None, is_active=True, currency="GHS"):
    product = Product(
        brand_id=brand.id,
        category_id=category.id,
        name=name,
        slug=slug or name.lower().replace(" ", "-"),
        base_price_cents=base_price_cents,
        currency=currency,
        is_active=is_active,
    )
    product.tiers = [
        PriceTier(min_quantity=lo, max_quantity=hi, price_cents=price)
        for lo, hi, price in (tiers or [])
    ]
    db.session.add(product)
    db.session.commit()
    return product


def make_user(email="customer@example.com", role="customer", **kwargs):
    user = User(email=email, first_name=kwargs.pop("first_name", "Ama"), last_name=kwargs.pop("last_name", "Mensah"), role=role, **kwargs)
    db.session.add(user)
    db.session.commit()
    return user


def make_story(title="Harvest Season", slug=None):
    story = Story(title=title, slug=slug or title.lower().replace(" ", "-"), content="<p>...</p>")
    db.session.add(story)
    db.session.commit()
    return story


STANDARD_TIERS = [(1, 9, 2500), (10, 49, 2200), (50, None, 2000)]


@pytest.fixture(scope='function')
def brand(db_session):
    return make_brand()


@pytest.fixture(scope='function')
def category(db_session):
    return make_category()


@pytest.fixture(scope='function')
def product(db_session, brand, category):
    """Base 25.00 with bands 1-9 @ 25.00, 10-49 @ 22.00, 50+ @ 20.00."""
    return make_product(brand, category, tiers=STANDARD_TIERS)


@pytest.fixture(scope='function')
def customer(db_session):
    return make_user(company_name="Mensah Trading", phone="+233200000000")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user(email="admin@example.com", role="admin", first_name="Kofi", last_name="Admin")


def actor_headers(user) -> dict:
    """Headers the auth gateway forwards for an authenticated caller."""
    return {'X-Actor-Id': str(user.id), 'X-Actor-Role': user.role}


@pytest.fixture(scope='function')
def admin_headers(admin):
    return actor_headers(admin)


@pytest.fixture(scope='function')
def customer_headers(customer):
    return actor_headers(customer)
