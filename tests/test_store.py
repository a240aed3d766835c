from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from models.payment import Payment
from services.orders import OrderIntake


@pytest.fixture
def order(store, make_product, order_data):
    product = make_product(stock=10)
    return OrderIntake(store).create_order(order_data((product, 1)))


def _payment(store, order, **fields):
    values = {
        "order_id": order.id,
        "amount": order.total,
        "payment_method": "vnpay",
        "payment_status": "processing",
        "description": "Payment",
        "gateway_response": {},
        "payment_metadata": {},
    }
    values.update(fields)
    payment = store.create_payment(**values)
    store.commit()
    return payment


class TestProducts:
    def test_guarded_decrement_refuses_to_oversell(self, store, make_product):
        product = make_product(stock=2)

        assert store.decrement_stock(product.id, 3, guarded=True) is False
        assert store.decrement_stock(product.id, 2, guarded=True) is True
        store.commit()

        refreshed = store.get_products([product.id])[product.id]
        store.db.refresh(refreshed)
        assert refreshed.stock == 0
        assert refreshed.sold_count == 2

    def test_unguarded_decrement_can_go_negative(self, store, make_product):
        product = make_product(stock=1)

        assert store.decrement_stock(product.id, 3, guarded=False) is True
        store.commit()
        store.db.refresh(product)
        assert product.stock == -2

    def test_get_products_ignores_unknown_ids(self, store, make_product):
        product = make_product()
        assert set(store.get_products([product.id, 9999])) == {product.id}
        assert store.get_products([]) == {}


class TestOrders:
    def test_find_by_number(self, store, order):
        assert store.get_order_by_number(order.order_number).id == order.id
        assert store.get_order_by_number("ORD-missing") is None

    def test_update_order_refreshes_timestamp(self, store, order):
        before = order.updated_at
        updated = store.update_order(order.id, status="processing")
        store.commit()
        assert updated.status == "processing"
        assert updated.updated_at >= before

    def test_update_unknown_order(self, store):
        assert store.update_order(424242, status="shipped") is None

    def test_list_and_count_with_filters(self, store, make_product, order_data):
        product = make_product(stock=10)
        intake = OrderIntake(store)
        first = intake.create_order(order_data((product, 1)))
        second = intake.create_order(order_data((product, 1)))
        store.update_order(second.id, status="shipped")
        store.commit()

        assert store.count_orders() == 2
        assert store.count_orders({"status": "shipped"}) == 1
        assert [o.id for o in store.list_orders({"status": "pending"})] == [first.id]
        assert len(store.list_orders(limit=1)) == 1
        assert len(store.list_orders(skip=1, limit=10)) == 1


class TestPayments:
    def test_lookup_by_order_and_transaction(self, store, order):
        payment = _payment(store, order, transaction_id="TXN-1")

        assert store.find_payment_by_order(order.id).id == payment.id
        assert store.find_payment_by_transaction("TXN-1").id == payment.id
        assert store.find_payment_by_transaction("TXN-2") is None

    def test_transition_is_conditional(self, store, order):
        payment = _payment(store, order)

        done = store.transition_payment(payment.id, "completed", from_statuses=("pending", "processing"))
        store.commit()
        assert done.payment_status == "completed"
        assert done.payment_date is not None

        again = store.transition_payment(payment.id, "failed", from_statuses=("pending", "processing"))
        assert again is None
        assert store.get_payment(payment.id).payment_status == "completed"

    def test_transition_merges_metadata_and_replaces_gateway_response(self, store, order):
        payment = _payment(store, order, payment_metadata={"source": "web"}, gateway_response={"old": True})

        updated = store.transition_payment(
            payment.id,
            "failed",
            gateway_response={"vnp_ResponseCode": "24"},
            metadata={"note": "cancelled by buyer"},
        )
        store.commit()

        assert updated.payment_metadata == {"source": "web", "note": "cancelled by buyer"}
        assert updated.gateway_response == {"vnp_ResponseCode": "24"}
        assert updated.payment_date is None

    def test_list_payments_sorted_newest_first(self, store, order):
        first = _payment(store, order, payment_status="failed")
        second = _payment(store, order, payment_status="pending")

        assert [p.id for p in store.list_payments()] == [second.id, first.id]
        assert [p.id for p in store.list_payments(newest_first=False)] == [first.id, second.id]
        assert store.count_payments({"payment_status": "failed"}) == 1

    def test_payment_stats_groups_by_status(self, store, order):
        _payment(store, order, payment_status="completed", amount=Decimal("100"))
        _payment(store, order, payment_status="completed", amount=Decimal("50"))
        _payment(store, order, payment_status="failed", amount=Decimal("20"))
        old = _payment(store, order, payment_status="completed", amount=Decimal("999"))
        store.db.query(Payment).filter(Payment.id == old.id).update({"created_at": datetime.utcnow() - timedelta(days=90)})
        store.commit()

        now = datetime.utcnow()
        stats = {row["status"]: row for row in store.payment_stats(now - timedelta(days=1), now + timedelta(minutes=1))}

        assert stats["completed"]["count"] == 2
        assert stats["completed"]["total_amount"] == Decimal("150")
        assert stats["failed"]["count"] == 1
