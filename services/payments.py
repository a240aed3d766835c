import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from core.errors import BadRequest, Conflict, GatewayError, NotFound
from models.payment import Payment
from services.gateways.base import GatewayContext, PaymentGateway
from services.store import StateStore

logger = logging.getLogger(__name__)

STATS_DEFAULT_DAYS = 30


def propagate_order_payment_status(store: StateStore, order_id: int, payment_status: str) -> bool:
    """Best effort: mirror a payment outcome onto its order.

    Failures are logged and reported through the return value only. The
    payment row stays the source of truth for later reconciliation.
    """
    try:
        order = store.update_order(order_id, payment_status=payment_status)
        if order is None:
            logger.warning("order missing for payment status update", extra={"order_id": order_id})
            return False
        store.commit()
        return True
    except Exception:
        store.rollback()
        logger.exception(
            "error updating order payment status",
            extra={"order_id": order_id, "payment_status": payment_status},
        )
        return False


class PaymentInitiator:
    def __init__(self, store: StateStore, gateways: Mapping[str, PaymentGateway], currency: str = "VND"):
        self.store = store
        self.gateways = gateways
        self.currency = currency

    def create_payment(
        self,
        order_id: int,
        payment_method: str,
        context: Optional[GatewayContext] = None,
    ) -> Dict[str, Any]:
        context = context or GatewayContext()

        order = self.store.get_order(order_id)
        if not order:
            raise NotFound("Order not found")

        existing = self.store.find_payment_by_order(order_id)
        if existing and existing.payment_status != "failed":
            raise Conflict("Payment already exists for this order")

        gateway = self.gateways.get(payment_method)
        if gateway is None:
            raise BadRequest("Unsupported payment method")

        payment = self.store.create_payment(
            order_id=order.id,
            user_id=context.user_id,
            amount=order.total,
            currency=self.currency,
            payment_method=payment_method,
            payment_status="pending",
            description=f"Payment for order {order.order_number or order.id}",
            gateway_response={},
            payment_metadata={},
        )
        self.store.commit()
        payment_id = payment.id
        if self.store.first_active_payment_id(order.id) != payment_id:
            # A concurrent request inserted its payment first
            self.store.transition_payment(payment_id, "failed")
            self.store.commit()
            raise Conflict("Payment already exists for this order")
        logger.info("payment created", extra={"payment_id": payment_id, "order_id": order.id, "method": payment_method})

        try:
            result = gateway.initiate(payment, context)
        except Exception as exc:
            self.store.rollback()
            self.store.transition_payment(payment_id, "failed")
            self.store.commit()
            logger.error(
                "payment initiation failed",
                extra={"payment_id": payment_id, "method": payment_method, "error": str(exc)},
            )
            if isinstance(exc, GatewayError):
                raise
            raise GatewayError(payment_method, str(exc)) from exc

        values: Dict[str, Any] = {"payment_status": result.status}
        if result.transaction_id is not None:
            values["transaction_id"] = result.transaction_id
        if result.gateway_response is not None:
            values["gateway_response"] = result.gateway_response
        self.store.update_payment(payment_id, **values)
        self.store.commit()

        return {"payment_id": payment_id, **result.response}


def get_payment(store: StateStore, payment_id: int) -> Payment:
    payment = store.get_payment(payment_id)
    if not payment:
        raise NotFound("Payment not found")
    return payment


def refund_payment(store: StateStore, payment_id: int, reason: str, refunded_by: Optional[int]) -> Payment:
    payment = get_payment(store, payment_id)
    if payment.payment_status != "completed":
        raise BadRequest("Can only refund completed payments")

    refunded = store.transition_payment(
        payment.id,
        "refunded",
        from_statuses=("completed",),
        metadata={
            "refund_reason": reason,
            "refund_date": datetime.utcnow().isoformat(),
            "refund_by": refunded_by,
        },
    )
    if refunded is None:
        # Lost a race with another status change
        store.rollback()
        raise BadRequest("Can only refund completed payments")
    store.commit()
    logger.info("payment refunded", extra={"payment_id": payment.id, "refunded_by": refunded_by})

    propagate_order_payment_status(store, payment.order_id, "refunded")
    return refunded


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Timestamps are stored as naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def payment_stats(store: StateStore, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
    start, end = _naive_utc(start), _naive_utc(end)
    end = end or datetime.utcnow()
    start = start or end - timedelta(days=STATS_DEFAULT_DAYS)
    if start > end:
        raise BadRequest("start_date must be before end_date")
    return {
        "stats": store.payment_stats(start, end),
        "period": {"start_date": start, "end_date": end},
    }

