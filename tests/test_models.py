import pytest
from datetime import datetime
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401
from core.db import Base
from models.order import Order
from models.order_item import OrderItem
from models.payment import Payment
from models.product import Product
from models.user import User


@pytest.fixture
def db_session():
    """Create a test database session"""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


def _order(**overrides):
    fields = dict(
        order_number="ORD-1-ABC",
        customer_info={"full_name": "Nguyen Van A", "email": "a@example.com", "phone": "0912345678", "address": "1 Le Loi"},
        payment_method="cod",
        subtotal=Decimal("100000"),
        shipping_fee=Decimal("30000"),
        total=Decimal("130000"),
    )
    fields.update(overrides)
    return Order(**fields)


class TestUser:
    """Test cases for User model"""

    def test_user_default_values(self, db_session):
        user = User(full_name="Jane Smith", email="jane@example.com")
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)

        assert user.role == "user"
        assert user.is_active is True
        assert user.is_admin is False
        assert isinstance(user.created_at, datetime)

    def test_admin_role(self):
        assert User(full_name="Root", email="root@example.com", role="admin").is_admin is True

    def test_email_unique(self, db_session):
        db_session.add(User(full_name="A", email="dup@example.com"))
        db_session.commit()
        db_session.add(User(full_name="B", email="dup@example.com"))
        with pytest.raises(IntegrityError):
            db_session.commit()


class TestOrder:
    """Test cases for Order and OrderItem models"""

    def test_order_defaults(self, db_session):
        order = _order()
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)

        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.shipping_method == "standard"
        assert order.user_id is None
        assert order.customer_info["phone"] == "0912345678"

    def test_items_keep_position_order(self, db_session):
        first = Product(name="Green Tea", price=Decimal("40000"), stock=3)
        second = Product(name="Black Tea", price=Decimal("45000"), stock=3)
        db_session.add_all([first, second])
        db_session.flush()

        order = _order(
            items=[
                OrderItem(product_id=second.id, position=1, name=second.name, quantity=1,
                          unit_price=second.price, total=second.price),
                OrderItem(product_id=first.id, position=0, name=first.name, quantity=2,
                          unit_price=first.price, total=first.price * 2),
            ]
        )
        db_session.add(order)
        db_session.commit()
        db_session.expire_all()

        loaded = db_session.get(Order, order.id)
        assert [item.name for item in loaded.items] == ["Green Tea", "Black Tea"]
        assert loaded.items[0].total == Decimal("80000")

    def test_order_number_unique(self, db_session):
        db_session.add(_order())
        db_session.commit()
        db_session.add(_order())
        with pytest.raises(IntegrityError):
            db_session.commit()


class TestPayment:
    """Test cases for Payment model"""

    def test_payment_defaults(self, db_session):
        order = _order()
        db_session.add(order)
        db_session.flush()
        payment = Payment(order_id=order.id, amount=order.total, payment_method="cod")
        db_session.add(payment)
        db_session.commit()
        db_session.refresh(payment)

        assert payment.payment_status == "pending"
        assert payment.currency == "VND"
        assert payment.gateway_response == {}
        assert payment.payment_metadata == {}
        assert payment.payment_date is None
        assert payment.order.order_number == "ORD-1-ABC"
