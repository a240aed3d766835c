from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from core import config as core_config
from core.db import Database
from main import create_app
from models.product import Product
from models.user import User
from schemas.order import OrderCreate
from security import jwt as jwt_utils
from services.gateways.registry import build_gateways
from services.store import StateStore

from helpers import order_payload


@pytest.fixture(scope="session", autouse=True)
def test_settings():
    core_config.settings.JWT_SECRET = "test-secret"
    core_config.settings.TESTING = True
    core_config.settings.ZALOPAY_LIVE = False
    core_config.settings.STOCK_GUARD = True
    yield core_config.settings


@pytest.fixture()
def database():
    database = Database("sqlite+pysqlite:///:memory:")
    database.init()
    database.create_all()
    yield database
    database.shutdown()


@pytest.fixture()
def db_session(database):
    session = database.new_session()
    yield session
    session.close()


@pytest.fixture()
def store(db_session):
    return StateStore(db_session)


@pytest.fixture()
def gateways(test_settings):
    return build_gateways(test_settings)


@pytest.fixture()
def app(database, test_settings):
    return create_app(settings=test_settings, database=database)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_product(db_session):
    """Factory for catalogue products."""

    def _make(name="Oolong Tea", price="50000", stock=5):
        product = Product(name=name, price=Decimal(price), stock=stock, is_active=True)
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def customer(db_session):
    """Create a regular customer."""
    user = User(full_name="Test Customer", email="customer@example.com", role="user", is_active=True)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin(db_session):
    """Create an admin user."""
    user = User(full_name="Shop Admin", email="admin@example.com", role="admin", is_active=True)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def customer_headers(customer):
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(str(customer.id), role=customer.role)}"}


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(str(admin.id), role=admin.role)}"}


@pytest.fixture
def order_data():
    """Build an ``OrderCreate`` from ``(product, quantity)`` pairs."""

    def _build(*lines, **totals):
        items = [{"product_id": product.id, "quantity": quantity} for product, quantity in lines]
        return OrderCreate(**order_payload(items, **totals))

    return _build
