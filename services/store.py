"""Persistence contract shared by order intake, payments and callbacks.

Every status change is a single ``UPDATE ... WHERE`` statement so that
concurrent requests touching the same row are serialised by the database.
Nothing here commits on its own; callers decide the transaction boundary
through ``commit`` / ``rollback``.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models.order import Order
from models.order_item import OrderItem
from models.payment import Payment
from models.product import Product


class StateStore:
    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # Products

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.db.scalars(select(Product).where(Product.id.in_(ids))).all()
        return {p.id: p for p in rows}

    def decrement_stock(self, product_id: int, quantity: int, guarded: bool = True) -> bool:
        """Take ``quantity`` units off a product's stock.

        With ``guarded`` the write only applies while enough stock remains, and
        ``False`` is returned when no row matched.
        """
        stmt = update(Product).where(Product.id == product_id)
        if guarded:
            stmt = stmt.where(Product.stock >= quantity)
        stmt = stmt.values(
            stock=Product.stock - quantity,
            sold_count=Product.sold_count + quantity,
            updated_at=datetime.utcnow(),
        )
        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount == 1

    # Orders

    def create_order(self, items: Sequence[Dict[str, Any]], **fields: Any) -> Order:
        order = Order(**fields)
        order.items = [OrderItem(position=i, **item) for i, item in enumerate(items)]
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.db.get(Order, order_id, populate_existing=True)

    def get_order_by_number(self, order_number: str) -> Optional[Order]:
        return self.db.scalars(select(Order).where(Order.order_number == order_number)).one_or_none()

    def update_order(self, order_id: int, **values: Any) -> Optional[Order]:
        values.setdefault("updated_at", datetime.utcnow())
        result = self.db.execute(
            update(Order).where(Order.id == order_id).values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return self.get_order(order_id)

    def list_orders(
        self,
        filters: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 0,
        newest_first: bool = True,
    ) -> List[Order]:
        stmt = self._filtered(select(Order), Order, filters)
        stmt = stmt.order_by(Order.created_at.desc() if newest_first else Order.created_at.asc(), Order.id.desc())
        return list(self.db.scalars(self._paged(stmt, skip, limit)).all())

    def count_orders(self, filters: Optional[Dict[str, Any]] = None) -> int:
        stmt = self._filtered(select(func.count(Order.id)), Order, filters)
        return self.db.scalar(stmt) or 0

    # Payments

    def create_payment(self, **fields: Any) -> Payment:
        payment = Payment(**fields)
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        return self.db.get(Payment, payment_id, populate_existing=True)

    def find_payment_by_order(self, order_id: int) -> Optional[Payment]:
        """Most recent payment for an order, if any."""
        stmt = select(Payment).where(Payment.order_id == order_id).order_by(Payment.id.desc()).limit(1)
        return self.db.scalars(stmt).first()

    def first_active_payment_id(self, order_id: int) -> Optional[int]:
        """Oldest payment for an order that has not failed."""
        stmt = select(func.min(Payment.id)).where(Payment.order_id == order_id, Payment.payment_status != "failed")
        return self.db.scalar(stmt)

    def find_payment_by_transaction(self, transaction_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.transaction_id == transaction_id).order_by(Payment.id.desc()).limit(1)
        return self.db.scalars(stmt).first()

    def update_payment(self, payment_id: int, **values: Any) -> Optional[Payment]:
        values.setdefault("updated_at", datetime.utcnow())
        result = self.db.execute(
            update(Payment).where(Payment.id == payment_id).values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return self.get_payment(payment_id)

    def transition_payment(
        self,
        payment_id: int,
        status: str,
        from_statuses: Optional[Sequence[str]] = None,
        gateway_response: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Payment]:
        """Move a payment to ``status`` in one conditional write.

        Returns ``None`` when the payment does not exist or is no longer in one
        of ``from_statuses``. ``metadata`` is merged into the stored blob;
        ``gateway_response`` replaces it. Completion stamps ``payment_date``.
        """
        now = datetime.utcnow()
        values: Dict[str, Any] = {"payment_status": status, "updated_at": now}
        if status == "completed":
            values["payment_date"] = now
        if gateway_response:
            values["gateway_response"] = gateway_response

        stmt = update(Payment).where(Payment.id == payment_id)
        if from_statuses is not None:
            stmt = stmt.where(Payment.payment_status.in_(tuple(from_statuses)))

        if metadata:
            current = self.db.scalars(
                select(Payment.payment_metadata).where(Payment.id == payment_id).with_for_update()
            ).first()
            values["payment_metadata"] = {**(current or {}), **metadata}

        result = self.db.execute(stmt.values(**values).execution_options(synchronize_session=False))
        if result.rowcount == 0:
            return None
        return self.get_payment(payment_id)

    def list_payments(
        self,
        filters: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 0,
        newest_first: bool = True,
    ) -> List[Payment]:
        stmt = self._filtered(select(Payment), Payment, filters)
        stmt = stmt.order_by(Payment.created_at.desc() if newest_first else Payment.created_at.asc(), Payment.id.desc())
        return list(self.db.scalars(self._paged(stmt, skip, limit)).all())

    def count_payments(self, filters: Optional[Dict[str, Any]] = None) -> int:
        stmt = self._filtered(select(func.count(Payment.id)), Payment, filters)
        return self.db.scalar(stmt) or 0

    def payment_stats(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        stmt = (
            select(Payment.payment_status, func.count(Payment.id), func.sum(Payment.amount))
            .where(Payment.created_at >= start, Payment.created_at <= end)
            .group_by(Payment.payment_status)
            .order_by(Payment.payment_status)
        )
        return [
            {"status": status, "count": count, "total_amount": Decimal(str(total or 0))}
            for status, count, total in self.db.execute(stmt).all()
        ]

    @staticmethod
    def _filtered(stmt, model, filters: Optional[Dict[str, Any]]):
        for name, value in (filters or {}).items():
            if value is None:
                continue
            stmt = stmt.where(getattr(model, name) == value)
        return stmt

    @staticmethod
    def _paged(stmt, skip: int, limit: int):
        if skip:
            stmt = stmt.offset(skip)
        if limit:
            stmt = stmt.limit(limit)
        return stmt
