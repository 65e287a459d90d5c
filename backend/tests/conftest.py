"""
Pytest fixtures for Kaunter backend tests.

Provides test database setup, two-tenant fixtures, and test client.
"""

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from kaunter import create_app
from kaunter.extensions import db
from kaunter.models import Company, User, Item, Order, OrderItem
from kaunter.models.auth import ROLE_COMPANY_ADMIN, ROLE_SUPER_ADMIN


MYT = ZoneInfo("Asia/Kuala_Lumpur")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'Asia/Kuala_Lumpur',
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
def company_a(db_session):
    """Create Company A (first tenant)."""
    company = Company(name="Company A - Kopitiam", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Create Company B (second tenant)."""
    company = Company(name="Company B - Mamak", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def admin_a(db_session, company_a):
    """Company admin of Company A."""
    user = User(company_id=company_a.id, username="admin_a", role=ROLE_COMPANY_ADMIN)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_b(db_session, company_b):
    """Company admin of Company B."""
    user = User(company_id=company_b.id, username="admin_b", role=ROLE_COMPANY_ADMIN)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def super_admin(db_session):
    """Super admin without a company."""
    user = User(company_id=None, username="root", role=ROLE_SUPER_ADMIN)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def item_a(db_session, company_a, admin_a):
    """Item A in Company A priced 10.00."""
    item = Item(company_id=company_a.id, name="Item A", price=Decimal("10.00"), created_by=admin_a.id)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_b(db_session, company_a, admin_a):
    """Item B in Company A priced 5.50."""
    item = Item(company_id=company_a.id, name="Item B", price=Decimal("5.50"), created_by=admin_a.id)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def foreign_item(db_session, company_b, admin_b):
    """Item owned by Company B."""
    item = Item(company_id=company_b.id, name="Foreign Item", price=Decimal("7.00"), created_by=admin_b.id)
    db_session.add(item)
    db_session.commit()
    return item


def make_order(
    session,
    company,
    created_at: datetime,
    total: str,
    status: str = "paid",
    payment_type: str = "cash",
    lines=None,
) -> Order:
    """
    Insert an order directly, bypassing the engine, for report tests.

    ``lines`` is a list of (name, unit_price, quantity); defaults to one line
    carrying the whole total.
    """
    order = Order(
        company_id=company.id,
        total_amount=Decimal(total),
        payment_type=payment_type,
        status=status,
        created_at=created_at,
    )
    session.add(order)
    session.flush()
    for name, price, quantity in lines or [("Line", total, 1)]:
        session.add(OrderItem(
            order_id=order.id,
            item_name_snapshot=name,
            item_price_snapshot=Decimal(price),
            quantity=quantity,
        ))
    session.commit()
    return order


def principal_headers(user) -> dict:
    """Headers the upstream identity provider forwards for ``user``."""
    return {'X-User-Id': str(user.id)}
