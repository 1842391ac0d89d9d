# Overview: Concurrency tests; two writers racing for the last unit of stock.

"""
Concurrent Order Tests

Uses a file-backed SQLite database so each thread gets its own connection
and the write lock taken by begin_write() actually serializes them.
"""

import threading

import pytest

from vendorhub import create_app
from vendorhub.errors import InsufficientStock
from vendorhub.extensions import db
from vendorhub.models import InventoryEntry, Order, Product, User
from vendorhub.wiring import get_services

from conftest import RecordingDispatcher


@pytest.fixture
def file_app(tmp_path):
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
            'INVOICE_STORAGE_DIR': str(tmp_path / "invoices"),
        },
        dispatcher=RecordingDispatcher(),
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _seed(app, stock):
    with app.app_context():
        vendor = User(name="V", email="v@test", role="vendor")
        buyers = [User(name=f"C{i}", email=f"c{i}@test", role="customer") for i in range(2)]
        db.session.add_all([vendor, *buyers])
        db.session.commit()

        product = Product(vendor_id=vendor.id, sku="LAST-1", name="Last one", price_cents=500, stock_quantity=0)
        db.session.add(product)
        db.session.commit()
        get_services().ledger.receive(product_id=product.id, quantity=stock, actor_id=None)
        return product.id, [b.id for b in buyers]


def _race(app, product_id, buyer_ids):
    barrier = threading.Barrier(len(buyer_ids))
    results = []
    lock = threading.Lock()

    def _buy(customer_id):
        with app.app_context():
            barrier.wait()
            try:
                get_services().orders.create_order(customer_id, [{"product_id": product_id, "quantity": 1}])
                outcome = "ok"
            except InsufficientStock:
                outcome = "short"
            except Exception as e:  # surfaced through the assertion below
                outcome = f"error: {e!r}"
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=_buy, args=(cid,)) for cid in buyer_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return sorted(results)


def test_last_unit_is_sold_exactly_once(file_app):
    product_id, buyers = _seed(file_app, stock=1)

    results = _race(file_app, product_id, buyers)

    assert results == ["ok", "short"]
    with file_app.app_context():
        product = db.session.get(Product, product_id)
        assert product.stock_quantity == 0
        assert db.session.query(Order).count() == 1
        sales = db.session.query(InventoryEntry).filter_by(product_id=product_id, transaction_type="sale").all()
        assert [e.balance_after for e in sales] == [0]
        assert get_services().ledger.reconcile(product_id)["consistent"]


def test_enough_stock_for_both(file_app):
    product_id, buyers = _seed(file_app, stock=2)

    results = _race(file_app, product_id, buyers)

    assert results == ["ok", "ok"]
    with file_app.app_context():
        assert db.session.get(Product, product_id).stock_quantity == 0
        balances = sorted(
            e.balance_after
            for e in db.session.query(InventoryEntry).filter_by(product_id=product_id, transaction_type="sale")
        )
        assert balances == [0, 1]
