"""
Pytest fixtures for cuehall backend tests.

Provides test database setup, two-tenant fixtures, and test client.
"""

from datetime import datetime, timedelta

import pytest
from cuehall import create_app
from cuehall.extensions import db
from cuehall.models import Account, Operator, PoolTable, Customer
from cuehall.services.tenant_service import Actor


# Fixed clock for time-dependent tests
T0 = datetime(2026, 3, 14, 18, 0, 0)


def minutes_after(start: datetime, minutes: float) -> datetime:
    return start + timedelta(minutes=minutes)


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
def account_a(db_session):
    """Create Account A (first tenant)."""
    account = Account(name="Hall A - Corner Pocket", code="CORNER", is_active=True)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def account_b(db_session):
    """Create Account B (second tenant)."""
    account = Account(name="Hall B - Break Room", code="BREAK", is_active=True)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def operator_a(db_session, account_a):
    operator = Operator(account_id=account_a.id, username="desk_a", is_active=True)
    db_session.add(operator)
    db_session.commit()
    return operator


@pytest.fixture(scope='function')
def operator_b(db_session, account_b):
    operator = Operator(account_id=account_b.id, username="desk_b", is_active=True)
    db_session.add(operator)
    db_session.commit()
    return operator


@pytest.fixture(scope='function')
def actor_a(account_a, operator_a):
    return Actor(account_id=account_a.id, operator_id=operator_a.id)


@pytest.fixture(scope='function')
def actor_b(account_b, operator_b):
    return Actor(account_id=account_b.id, operator_id=operator_b.id)


@pytest.fixture(scope='function')
def table_a(db_session, account_a):
    """Table in Account A at 60000 per hour (1000 per minute)."""
    table = PoolTable(account_id=account_a.id, name="Table 1", hourly_rate=60000, is_active=True)
    db_session.add(table)
    db_session.commit()
    return table


@pytest.fixture(scope='function')
def table_b(db_session, account_b):
    table = PoolTable(account_id=account_b.id, name="Table 1", hourly_rate=60000, is_active=True)
    db_session.add(table)
    db_session.commit()
    return table


@pytest.fixture(scope='function')
def customer_a(db_session, account_a):
    customer = Customer(account_id=account_a.id, name="Customer A")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, account_b):
    customer = Customer(account_id=account_b.id, name="Customer B")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def headers_a(account_a, operator_a):
    return {"X-Account-Id": str(account_a.id), "X-Operator-Id": str(operator_a.id)}


@pytest.fixture(scope='function')
def headers_b(account_b, operator_b):
    return {"X-Account-Id": str(account_b.id), "X-Operator-Id": str(operator_b.id)}
