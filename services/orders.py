import logging
import secrets
import time
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal

from core.errors import BadRequest, InsufficientStock, NotFound
from models.order import Order, ORDER_STATUSES
from schemas.order import OrderCreate
from services.store import StateStore

logger = logging.getLogger(__name__)

DELIVERY_DAYS = {"express": 2, "standard": 5}


def _to_decimal(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def generate_order_number() -> str:
    """Human readable, timestamp based; collisions are unlikely, not impossible."""
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def estimated_delivery(order: Order) -> datetime:
    return order.created_at + timedelta(days=DELIVERY_DAYS.get(order.shipping_method, DELIVERY_DAYS["standard"]))


class OrderIntake:
    """Validates stock, persists a pending order and takes its items off stock.

    Totals are stored exactly as the caller sent them.
    """

    def __init__(self, store: StateStore, guard_stock: bool = True):
        self.store = store
        self.guard_stock = guard_stock

    def create_order(self, data: OrderCreate, user_id: int | None = None) -> Order:
        products = self.store.get_products(item.product_id for item in data.items)

        # Every item is checked before anything is written
        demand = Counter()
        for item in data.items:
            demand[item.product_id] += item.quantity
        for item in data.items:
            product = products.get(item.product_id)
            if product is None:
                raise NotFound(f"Product with ID {item.product_id} not found")
            if product.stock < demand[item.product_id]:
                logger.info(
                    "stock rejected",
                    extra={"product_id": product.id, "stock": product.stock, "requested": demand[item.product_id]},
                )
                raise InsufficientStock(product.name)

        lines = []
        for item in data.items:
            product = products[item.product_id]
            unit_price = _to_decimal(item.price) if item.price is not None else _to_decimal(product.price)
            lines.append(
                {
                    "product_id": product.id,
                    "name": product.name,
                    "quantity": item.quantity,
                    "unit_price": unit_price,
                    "total": unit_price * item.quantity,
                }
            )

        order = self.store.create_order(
            lines,
            order_number=generate_order_number(),
            user_id=user_id,
            customer_info=data.customer_info.model_dump(),
            shipping_method=data.shipping_method,
            payment_method=data.payment_method,
            subtotal=_to_decimal(data.subtotal),
            shipping_fee=_to_decimal(data.shipping_fee),
            total=_to_decimal(data.total),
            notes=data.notes,
            status="pending",
            payment_status="pending",
        )

        for item in data.items:
            if not self.store.decrement_stock(item.product_id, item.quantity, guarded=self.guard_stock):
                # Another order took the stock after our check
                name = products[item.product_id].name
                self.store.rollback()
                logger.warning("stock changed during checkout", extra={"product_id": item.product_id})
                raise InsufficientStock(name)

        self.store.commit()
        logger.info("order created", extra={"order_id": order.id, "order_number": order.order_number})
        return self.store.get_order(order.id)


def get_order(store: StateStore, order_id: int) -> Order:
    order = store.get_order(order_id)
    if not order:
        raise NotFound("Order not found")
    return order


def track_order(store: StateStore, order_number: str) -> dict:
    order = store.get_order_by_number(order_number)
    if not order:
        raise NotFound("Order not found")
    return {
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "shipping_method": order.shipping_method,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "estimated_delivery": estimated_delivery(order),
    }


def update_order_status(store: StateStore, order_id: int, status: str) -> Order:
    if status not in ORDER_STATUSES:
        raise BadRequest("Invalid status")
    order = store.update_order(order_id, status=status)
    if not order:
        raise NotFound("Order not found")
    store.commit()
    logger.info("order status updated", extra={"order_id": order_id, "status": status})
    return order
