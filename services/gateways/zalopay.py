import base64
import json
import logging
import random
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict

import requests

from core.errors import GatewayError
from models.payment import Payment
from services.gateways.base import CallbackOutcome, GatewayContext, Initiation, PaymentGateway
from services.gateways.signing import hmac_hex, sign_params, signatures_match

logger = logging.getLogger(__name__)

MAC_FIELD = "mac"
SUCCESS_STATUS = 1
VN_TZ = timezone(timedelta(hours=7))


class ZaloPayGateway(PaymentGateway):
    method = "zalopay"
    accepts_callbacks = True
    algorithm = "sha256"

    def __init__(
        self,
        app_id: str,
        key1: str,
        key2: str,
        endpoint: str,
        callback_url: str,
        default_return_url: str,
        live: bool = False,
    ):
        self.app_id = app_id
        self.key1 = key1
        self.key2 = key2
        self.endpoint = endpoint
        self.callback_url = callback_url
        self.default_return_url = default_return_url
        self.live = live

    def build_order(self, payment: Payment, context: GatewayContext) -> Dict[str, Any]:
        now = datetime.now(VN_TZ)
        amount = int(Decimal(str(payment.amount)))
        return {
            "app_id": self.app_id,
            "app_trans_id": f"{now:%y%m%d}_{random.randint(0, 999999):06d}",
            "app_user": str(context.user_id) if context.user_id else "guest",
            "app_time": int(time.time() * 1000),
            "item": json.dumps(
                [
                    {
                        "itemid": str(payment.order_id),
                        "itemname": payment.description,
                        "itemprice": amount,
                        "itemquantity": 1,
                    }
                ]
            ),
            "embed_data": json.dumps({"redirecturl": context.return_url or self.default_return_url}),
            "amount": amount,
            "description": payment.description,
            "bank_code": "",
            "callback_url": self.callback_url,
        }

    def initiate(self, payment: Payment, context: GatewayContext) -> Initiation:
        order = self.build_order(payment, context)
        order[MAC_FIELD] = sign_params(order, self.key1, self.algorithm)

        reply = self._create(order) if self.live else self._simulate(order)
        if reply.get("return_code") != 1:
            raise GatewayError(self.method, reply.get("return_message") or "order creation rejected")

        transaction_id = order["app_trans_id"]
        return Initiation(
            status="processing",
            transaction_id=transaction_id,
            gateway_response={"request": order, "response": reply},
            response={
                "payment_method": self.method,
                "status": "processing",
                "pay_url": reply.get("order_url"),
                "transaction_id": transaction_id,
                "qr_code": reply.get("qr_code"),
                "message": "Redirect to ZaloPay for payment",
            },
        )

    def _create(self, order: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = requests.post(self.endpoint, data=order, timeout=20)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("zalopay order creation failed", extra={"app_trans_id": order["app_trans_id"]})
            raise GatewayError(self.method, str(exc)) from exc

    def _simulate(self, order: Dict[str, Any]) -> Dict[str, Any]:
        # Sandbox stand-in for the create endpoint
        encoded = base64.b64encode(json.dumps(order).encode("utf-8")).decode("ascii")
        return {
            "return_code": 1,
            "return_message": "success",
            "sub_return_code": 1,
            "sub_return_message": "",
            "order_url": f"https://sb-openapi.zalopay.vn/v2/gateway?order={encoded}",
            "zp_trans_token": f"{order['app_trans_id']}_token",
            "order_token": order["app_trans_id"],
            "qr_code": f"zalopay://pay?order_token={order['app_trans_id']}",
        }

    def callback_mac(self, data: str) -> str:
        return hmac_hex(self.key2, data, self.algorithm)

    def parse_callback(self, payload: Dict[str, Any]) -> CallbackOutcome:
        data = payload.get("data")
        if not isinstance(data, str) or not signatures_match(self.callback_mac(data), payload.get(MAC_FIELD)):
            return CallbackOutcome(reference=None, success=False, payload=dict(payload), valid=False)
        try:
            body = json.loads(data)
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return CallbackOutcome(reference=None, success=False, payload=dict(payload), valid=False)
        return CallbackOutcome(
            reference=body.get("app_trans_id"),
            success=body.get("status") == SUCCESS_STATUS,
            payload={**payload, "data": body},
        )
