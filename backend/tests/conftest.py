"""
Pytest fixtures for vendorhub backend tests.

Provides the app on in-memory SQLite, a recording task dispatcher, seeded
users, and a product factory that stocks products through the ledger.
"""

import os

os.environ.setdefault("RUN_INLINE_JOBS", "1")

import pytest

from vendorhub import create_app
from vendorhub.extensions import db
from vendorhub.models import Product, ProductVariant, User
from vendorhub.wiring import get_services


class RecordingDispatcher:
    """Captures dispatched side effects instead of enqueuing them."""

    def __init__(self):
        self.calls = []

    def dispatch(self, task_name, **kwargs):
        self.calls.append((task_name, kwargs))

    def names(self):
        return [name for name, _ in self.calls]

    def of(self, task_name):
        return [kwargs for name, kwargs in self.calls if name == task_name]

    def clear(self):
        self.calls.clear()


_dispatcher = RecordingDispatcher()


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'INVOICE_STORAGE_DIR': str(tmp_path_factory.mktemp("invoices")),
            'INVOICE_RETRY_BACKOFF': 0,
        },
        dispatcher=_dispatcher,
    )

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
        _dispatcher.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def dispatcher(db_session):
    return _dispatcher


@pytest.fixture(scope='function')
def services(db_session):
    return get_services()


def _user(db_session, name, email, role):
    user = User(name=name, email=email, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return _user(db_session, "Admin", "admin@vendorhub.test", "admin")


@pytest.fixture(scope='function')
def vendor(db_session):
    return _user(db_session, "Vendor One", "vendor1@vendorhub.test", "vendor")


@pytest.fixture(scope='function')
def other_vendor(db_session):
    return _user(db_session, "Vendor Two", "vendor2@vendorhub.test", "vendor")


@pytest.fixture(scope='function')
def customer(db_session):
    return _user(db_session, "Customer", "customer@vendorhub.test", "customer")


@pytest.fixture(scope='function')
def other_customer(db_session):
    return _user(db_session, "Other Customer", "other@vendorhub.test", "customer")


@pytest.fixture(scope='function')
def make_product(db_session, services, vendor, dispatcher):
    """
    Factory: create a product and stock it with a 'purchase' entry, so the
    cached balance starts out equal to the ledger sum.
    """
    counter = {"n": 0}

    def _make(
        *,
        stock=10,
        price_cents=1000,
        sale_price_cents=None,
        low_stock_threshold=5,
        track_inventory=True,
        owner=None,
        name=None,
    ):
        counter["n"] += 1
        product = Product(
            vendor_id=(owner or vendor).id,
            sku=f"SKU-{counter['n']:04d}",
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
            sale_price_cents=sale_price_cents,
            low_stock_threshold=low_stock_threshold,
            track_inventory=track_inventory,
            stock_quantity=0,
        )
        db_session.add(product)
        db_session.commit()
        if stock and track_inventory:
            services.ledger.receive(product_id=product.id, quantity=stock, actor_id=None)
        dispatcher.clear()
        return product

    return _make


@pytest.fixture(scope='function')
def make_variant(db_session, services, dispatcher):
    def _make(product, *, stock=5, price_cents=None, name="Large"):
        variant = ProductVariant(
            product_id=product.id,
            sku=f"{product.sku}-{name.upper()}",
            name=name,
            price_cents=price_cents,
            stock_quantity=0,
        )
        db_session.add(variant)
        db_session.commit()
        if stock:
            services.ledger.receive(
                product_id=product.id, variant_id=variant.id, quantity=stock, actor_id=None,
            )
        dispatcher.clear()
        return variant

    return _make


def actor_headers(user=None, role=None) -> dict:
    """Identity headers as set by the upstream authenticator."""
    headers = {"X-Actor-Role": role or user.role}
    if user is not None:
        headers["X-Actor-Id"] = str(user.id)
    return headers


@pytest.fixture(scope='function')
def headers():
    return actor_headers
