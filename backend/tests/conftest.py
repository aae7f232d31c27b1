"""
Pytest fixtures for the back-office backend tests.

Provides the application on an in-memory database, a per-test table wipe,
the Flask test client and small master-data factories.
"""

from decimal import Decimal

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Customer, InventoryTransaction, Item, StockBalance, Store, Supplier


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ALLOW_NEGATIVE_STOCK': False,
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
        app.config['ALLOW_NEGATIVE_STOCK'] = False


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(code="MAIN", name="Main Store")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    store = Store(code="WH1", name="Warehouse")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def item(db_session):
    item = Item(
        code="I1",
        name="Mineral Water 1L",
        cost_price=Decimal("100"),
        retail_price=Decimal("150"),
        wholesale_price=Decimal("130"),
        reorder_level=2,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_b(db_session):
    item = Item(code="I2", name="Orange Juice", cost_price=Decimal("50"), retail_price=Decimal("80"))
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Acme Distributors")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="City Mart", customer_type="wholesale")
    db_session.add(customer)
    db_session.commit()
    return customer


def on_hand(item_id: int, store_id: int) -> int:
    """Current quantity_on_hand straight from the database (0 when no row)."""
    value = (
        db.session.query(StockBalance.quantity_on_hand)
        .filter_by(item_id=item_id, store_id=store_id)
        .scalar()
    )
    return value or 0


def ledger_rows(**filters) -> list[InventoryTransaction]:
    return (
        db.session.query(InventoryTransaction)
        .filter_by(**filters)
        .order_by(InventoryTransaction.id.asc())
        .all()
    )


def receive(client, supplier, store, item, qty: int, cost=100, **extra):
    """POST a one-line GRN and return the response."""
    line = {"item_id": item.id, "received_qty": qty, "cost_price": cost}
    line.update(extra)
    return client.post('/api/purchase-grns', json={
        "supplier_id": supplier.id,
        "store_id": store.id,
        "items": [line],
    })
