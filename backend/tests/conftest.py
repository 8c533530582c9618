"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, a warehouse with two stores, catalog products
and test client helpers.
"""

from decimal import Decimal

import pytest

from stockledger import create_app
from stockledger.config import TestConfig
from stockledger.extensions import db
from stockledger.identity import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF
from stockledger.models import Location, Product
from stockledger.models.locations import LOCATION_TYPE_STORE, LOCATION_TYPE_WAREHOUSE
from stockledger.services.inventory_service import adjust_quantity


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def warehouse(db_session):
    location = Location(name="Central Godown", type=LOCATION_TYPE_WAREHOUSE)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def store_a(db_session, warehouse):
    location = Location(name="Store A", type=LOCATION_TYPE_STORE)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def store_b(db_session, warehouse):
    location = Location(name="Store B", type=LOCATION_TYPE_STORE)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def football(db_session):
    """100.00 at 18% GST."""
    product = Product(
        sku="FB-001",
        name="Match Football",
        category="Balls",
        price=Decimal("100.00"),
        cost_price=Decimal("60.00"),
        gst_rate=Decimal("18"),
        hsn_code="9506",
        min_stock_alert=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def jersey(db_session):
    """250.00 at 5% GST."""
    product = Product(
        sku="JR-BLU-M",
        name="Training Jersey",
        category="Apparel",
        price=Decimal("250.00"),
        gst_rate=Decimal("5"),
        hsn_code="6109",
        min_stock_alert=10,
        size="M",
        color="Blue",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def put_stock(db_session):
    """Set up opening stock through the ledger itself."""
    def _put(product, location, quantity):
        adjust_quantity(db_session, product.id, location.id, quantity)
        db_session.commit()
    return _put


def caller_headers(role: str, location_id: int | None = None) -> dict:
    """Helper to create gateway identity headers."""
    headers = {'X-User-Role': role, 'X-User-Id': f'test-{role.lower()}'}
    if location_id is not None:
        headers['X-Location-Id'] = str(location_id)
    return headers


@pytest.fixture(scope='function')
def admin_headers():
    return caller_headers(ROLE_ADMIN)


@pytest.fixture(scope='function')
def manager_headers(store_a):
    """Manager assigned to Store A."""
    return caller_headers(ROLE_MANAGER, store_a.id)


@pytest.fixture(scope='function')
def staff_b_headers(store_b):
    """Staff assigned to Store B."""
    return caller_headers(ROLE_STAFF, store_b.id)
