"""
Pytest fixtures for radstock backend tests.

Provides test database setup, catalog/party fixtures, and test client.
"""

import pytest
from radstock import create_app
from radstock.extensions import db
from radstock.models import Customer, Radiator, User, Warehouse
from radstock.services import stock_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_THRESHOLD': 5,
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
        # Core deletes bypass the append-only mapper events on stock_history
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def warehouses(db_session):
    """WH1 and WH2."""
    wh1 = Warehouse(code="WH1", name="Auckland")
    wh2 = Warehouse(code="WH2", name="Christchurch")
    db_session.add_all([wh1, wh2])
    db_session.commit()
    return wh1, wh2


@pytest.fixture(scope='function')
def radiator(db_session):
    rad = Radiator(
        code="R1",
        brand="Denso",
        name="Corolla Radiator",
        year=2015,
        retail_price_cents=10000,
        trade_price_cents=8000,
    )
    db_session.add(rad)
    db_session.commit()
    return rad


@pytest.fixture(scope='function')
def second_radiator(db_session):
    rad = Radiator(code="R2", brand="Koyo", name="Hilux Radiator", year=2018, retail_price_cents=25000)
    db_session.add(rad)
    db_session.commit()
    return rad


@pytest.fixture(scope='function')
def customer(db_session):
    cust = Customer(first_name="Aroha", last_name="Smith", email="aroha@example.com")
    db_session.add(cust)
    db_session.commit()
    return cust


@pytest.fixture(scope='function')
def staff_user(db_session):
    user = User(username="counter1", email="counter1@example.com", role="STAFF")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def seed_stock(db_session):
    """Seed stock through the ledger so history and levels agree."""
    def _seed(radiator_id: int, warehouse_code: str, quantity: int):
        return stock_service.update_stock(radiator_id, warehouse_code, quantity, note="test seed")
    return _seed
