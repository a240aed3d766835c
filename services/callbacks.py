"""Gateway webhook handling.

Gateways retry anything that is not a clean reply, so ``handle`` never
raises: every outcome, including internal errors, is reported in the body.
"""
import logging
from typing import Any, Dict, Mapping

from models.payment import OPEN_PAYMENT_STATUSES
from services.gateways.base import PaymentGateway
from services.payments import propagate_order_payment_status
from services.store import StateStore

logger = logging.getLogger(__name__)


def _reply(success: bool, message: str) -> Dict[str, Any]:
    return {"success": success, "message": message}


class CallbackReconciler:
    def __init__(self, store: StateStore, gateways: Mapping[str, PaymentGateway]):
        self.store = store
        self.gateways = gateways

    def handle(self, gateway_name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return self._reconcile(gateway_name, payload)
        except Exception:
            self.store.rollback()
            logger.exception("callback processing failed", extra={"gateway": gateway_name})
            return _reply(False, "Callback processing failed")

    def _reconcile(self, gateway_name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        gateway = self.gateways.get(gateway_name)
        if gateway is None or not gateway.accepts_callbacks:
            logger.warning("callback for unsupported gateway", extra={"gateway": gateway_name})
            return _reply(False, "Unsupported payment gateway")

        outcome = gateway.parse_callback(payload)
        if not outcome.valid:
            logger.warning("callback signature rejected", extra={"gateway": gateway_name, "reference": outcome.reference})
            return _reply(False, "Invalid signature")

        payment = self.store.find_payment_by_transaction(outcome.reference) if outcome.reference else None
        if payment is None or payment.payment_method != gateway.method:
            logger.warning("callback for unknown payment", extra={"gateway": gateway_name, "reference": outcome.reference})
            return _reply(False, "Payment not found")

        status = "completed" if outcome.success else "failed"
        updated = self.store.transition_payment(
            payment.id,
            status,
            from_statuses=OPEN_PAYMENT_STATUSES,
            gateway_response=outcome.payload,
        )
        if updated is None:
            # Redelivery of a callback that was already applied
            self.store.rollback()
            logger.info(
                "callback ignored, payment already settled",
                extra={"payment_id": payment.id, "payment_status": payment.payment_status},
            )
            return _reply(True, "Callback already processed")
        self.store.commit()
        logger.info("callback processed", extra={"payment_id": payment.id, "payment_status": status})

        if outcome.success:
            propagate_order_payment_status(self.store, payment.order_id, "paid")
        return _reply(True, "Callback processed")
