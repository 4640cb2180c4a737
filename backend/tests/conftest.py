"""
Pytest fixtures for innkeep backend tests.

Provides an in-memory database, a per-test table wipe and small factories
for catalog items, resources and customers.
"""

import pytest
from datetime import date

from innkeep import create_app
from innkeep.extensions import db
from innkeep.services import catalog_service, customer_service, resource_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOYALTY_CENTS_PER_POINT': 100,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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
def make_item(db_session):
    """Factory for catalog items."""
    def _make(name="Tea", price_cents=150, track_stock=False, stock_quantity=0, low_stock_threshold=0):
        return catalog_service.create_item(
            name,
            price_cents,
            track_stock=track_stock,
            stock_quantity=stock_quantity,
            low_stock_threshold=low_stock_threshold,
        )
    return _make


@pytest.fixture(scope='function')
def stocked_item(make_item):
    """Tracked item with 5 units on hand."""
    return make_item(name="Soap", price_cents=300, track_stock=True, stock_quantity=5, low_stock_threshold=2)


@pytest.fixture(scope='function')
def room(db_session):
    return resource_service.create_resource("101", 5000)


@pytest.fixture(scope='function')
def guest(db_session, room):
    """Active customer checked into room 101 on 2026-03-01."""
    return customer_service.register_customer(
        "Ada Guest",
        phone="555-0100",
        resource_id=room.id,
        check_in=date(2026, 3, 1),
    )


@pytest.fixture(scope='function')
def walk_in(db_session):
    """Active customer with no resource."""
    return customer_service.register_customer("Walk In")
