"""
Concurrency tests against a file-backed SQLite database.

Each worker runs in its own thread with its own app context and session, so
the writers genuinely contend for the same stock rows.

Verifies:
- Concurrent checkouts never oversell and every unit sold has a SALE row
- Interleaved purchases and dispatches conserve warehouse stock
- A transfer received by many callers at once credits the store once
"""

import threading
from decimal import Decimal

import pytest

from stockledger import create_app
from stockledger.config import TestConfig
from stockledger.errors import ConcurrencyConflict, InsufficientStock, InvalidTransition
from stockledger.extensions import db
from stockledger.identity import Caller, ROLE_ADMIN
from stockledger.models import Location, Product, Transaction
from stockledger.models.inventory import TX_TYPE_SALE
from stockledger.models.locations import LOCATION_TYPE_STORE, LOCATION_TYPE_WAREHOUSE
from stockledger.services import inventory_service, sales_service, transfer_service
from stockledger.services.sales_service import CheckoutItem


WORKERS = 10


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.db"

    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{db_path}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}
        LEDGER_RETRY_ATTEMPTS = 5
        LOG_LEVEL = "INFO"

    app = create_app(FileConfig)

    with app.app_context():
        db.create_all()

        warehouse = Location(name="Central Godown", type=LOCATION_TYPE_WAREHOUSE)
        store = Location(name="Store A", type=LOCATION_TYPE_STORE)
        product = Product(sku="CONCUR-1", name="Concurrent Product", price=Decimal("10.00"), gst_rate=Decimal("12"))
        db.session.add_all([warehouse, store, product])
        db.session.commit()

        app.ids = {"warehouse": warehouse.id, "store": store.id, "product": product.id}

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def run_workers(app, targets):
    """Run each callable in its own thread and app context; collect results or exceptions."""
    results = []
    lock = threading.Lock()
    start = threading.Barrier(len(targets))

    def worker(target):
        with app.app_context():
            try:
                start.wait()
                outcome = target(db.session)
            except Exception as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_checkouts_never_oversell(file_app):
    ids = file_app.ids
    with file_app.app_context():
        inventory_service.adjust_quantity(db.session, ids["product"], ids["store"], 5)
        db.session.commit()

    def sell_one(session):
        return sales_service.checkout(session, [CheckoutItem(ids["product"], 1)], None, ids["store"])

    results = run_workers(file_app, [sell_one] * WORKERS)

    sold = [r for r in results if isinstance(r, sales_service.CheckoutResult)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert all(isinstance(f, (InsufficientStock, ConcurrencyConflict)) for f in failures), failures
    assert len(sold) <= 5

    with file_app.app_context():
        on_hand = inventory_service.get_quantity(db.session, ids["product"], ids["store"])
        sale_count = db.session.query(Transaction).filter_by(type=TX_TYPE_SALE).count()

    assert on_hand == 5 - len(sold)
    assert on_hand >= 0
    assert sale_count == len(sold)
    assert len({r.invoice_id for r in sold}) == len(sold)


def test_purchases_and_dispatches_conserve_stock(file_app):
    ids = file_app.ids
    with file_app.app_context():
        inventory_service.record_purchase(db.session, ids["product"], 10)

    def purchase(session):
        inventory_service.record_purchase(session, ids["product"], 3)
        return 3

    def dispatch(session):
        transfer_service.dispatch_transfer(session, ids["product"], 4, ids["store"])
        return -4

    results = run_workers(file_app, [purchase, dispatch] * (WORKERS // 2))

    failures = [r for r in results if isinstance(r, Exception)]
    assert all(isinstance(f, (InsufficientStock, ConcurrencyConflict)) for f in failures), failures
    applied = sum(r for r in results if isinstance(r, int))

    with file_app.app_context():
        warehouse_qty = inventory_service.get_quantity(db.session, ids["product"], ids["warehouse"])
        store_qty = inventory_service.get_quantity(db.session, ids["product"], ids["store"])

    assert warehouse_qty == 10 + applied
    assert warehouse_qty >= 0
    # Dispatched units stay in transit until received
    assert store_qty == 0


def test_concurrent_receive_credits_once(file_app):
    ids = file_app.ids
    with file_app.app_context():
        inventory_service.record_purchase(db.session, ids["product"], 10)
        transfer_id = transfer_service.dispatch_transfer(db.session, ids["product"], 5, ids["store"]).id

    admin = Caller(role=ROLE_ADMIN)

    def receive(session):
        return transfer_service.receive_transfer(session, transfer_id, admin).id

    results = run_workers(file_app, [receive] * WORKERS)

    received = [r for r in results if isinstance(r, int)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert all(isinstance(f, (InvalidTransition, ConcurrencyConflict)) for f in failures), failures
    assert len(received) <= 1

    with file_app.app_context():
        store_qty = inventory_service.get_quantity(db.session, ids["product"], ids["store"])

    assert store_qty == 5 * len(received)
