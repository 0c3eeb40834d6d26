"""
Pytest fixtures for SFA backend tests.

Provides test database setup, reference data (clients, products, sales reps),
stock seeding helpers, and test client.
"""

import pytest
from decimal import Decimal

from sfa import create_app
from sfa.extensions import db
from sfa.models import Client, ClientStock, Product, SalesRep
from sfa.services import stock_ledger_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
def outlet(db_session):
    """Create a client (outlet)."""
    outlet = Client(name="Corner Shop", contact="0700000001", region="Nairobi")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def other_outlet(db_session):
    outlet = Client(name="Highway Kiosk", contact="0700000002", region="Mombasa")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def rep(db_session):
    """Create a sales rep."""
    rep = SalesRep(name="Jane Rep", email="jane@sfa.local")
    db_session.add(rep)
    db_session.commit()
    return rep


@pytest.fixture(scope='function')
def products(db_session):
    """Create three products."""
    items = [
        Product(name="Cola 500ml", category="Drinks", unit_price=Decimal("2.00")),
        Product(name="Crisps", category="Snacks", unit_price=Decimal("1.50")),
        Product(name="Water 1L", category="Drinks", unit_price=Decimal("0.80")),
    ]
    db_session.add_all(items)
    db_session.commit()
    return items


@pytest.fixture(scope='function')
def set_stock(db_session):
    """Helper to seed a ledger row through the ledger service."""
    def _set(client_id: int, product_id: int, quantity: int):
        return stock_ledger_service.set_client_stock(db_session, client_id, product_id, quantity)
    return _set


@pytest.fixture(scope='function')
def ledger_snapshot(db_session):
    """Helper returning all ledger rows as {(client_id, product_id): quantity}."""
    def _snapshot() -> dict:
        db_session.expire_all()
        return {
            (row.client_id, row.product_id): row.quantity
            for row in db_session.query(ClientStock).all()
        }
    return _snapshot
