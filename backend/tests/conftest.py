"""
Pytest fixtures for StockCycle backend tests.

Provides test database setup, user/product/order/report factories, and
test client helpers.
"""

from datetime import date, datetime

import pytest
from stockcycle import create_app
from stockcycle.extensions import db
from stockcycle.models import Product
from stockcycle.models.auth import ROLE_ADMIN, ROLE_DISTRIBUTOR
from stockcycle.services import auth_service, order_service, report_service, session_service


TEST_PASSWORD = "Password123"

# Monday; its intake window is Sat 2024-01-06 00:00 .. Sat 2024-01-13 00:00
CYCLE_ANCHOR = date(2024, 1, 8)
IN_INTAKE = datetime(2024, 1, 9, 10, 0)


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


def make_user(username: str, role: str = ROLE_DISTRIBUTOR, group: str | None = "NEW", name: str | None = None):
    return auth_service.create_user(
        username=username,
        password=TEST_PASSWORD,
        name=name or username.title(),
        role=role,
        group=group,
        rounds=4,
    )


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user("admin", role=ROLE_ADMIN, group=None, name="Administrator")


@pytest.fixture(scope='function')
def distributor(db_session):
    return make_user("north", group="GOLD", name="North Depot")


@pytest.fixture(scope='function')
def other_distributor(db_session):
    return make_user("south", group="SILVER", name="South Depot")


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name: str = "Widget", price_cents: int = 10, stock: int = 1000) -> Product:
        product = Product(name=name, price_cents=price_cents, stock=stock)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def widget(make_product):
    return make_product("Widget", price_cents=10, stock=1000)


@pytest.fixture(scope='function')
def place_order(db_session, admin):
    """Create an order at a fixed time, optionally approving it."""
    def _place(distributor, items, *, created_at=IN_INTAKE, approve=True):
        order = order_service.create_order(distributor.id, items, created_at=created_at)
        if approve:
            order = order_service.approve_order(order.id, admin.id)
        return order
    return _place


@pytest.fixture(scope='function')
def file_report(db_session, admin):
    """File a report for a cycle, optionally deciding it."""
    def _file(distributor, entries, *, week_start=CYCLE_ANCHOR, status=None):
        report = report_service.create_report(distributor.id, entries, week_start=week_start)
        if status is not None:
            report = report_service.set_report_status(report.id, status, admin.id)
        return report
    return _file


def token_for(user) -> str:
    _, token = session_service.create_session(user.id)
    return token


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
