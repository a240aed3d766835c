from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from models.payment import Payment
from services.gateways.base import CallbackOutcome, GatewayContext, Initiation, PaymentGateway
from services.gateways.signing import sign_params, signatures_match, signed_query

VNPAY_VERSION = "2.1.0"
HASH_FIELD = "vnp_SecureHash"
SUCCESS_CODE = "00"
# VNPay expects merchant local time
VN_TZ = timezone(timedelta(hours=7))


class VNPayGateway(PaymentGateway):
    method = "vnpay"
    accepts_callbacks = True
    algorithm = "sha512"

    def __init__(self, tmn_code: str, hash_secret: str, pay_url: str, default_return_url: str):
        self.tmn_code = tmn_code
        self.hash_secret = hash_secret
        self.pay_url = pay_url
        self.default_return_url = default_return_url

    def build_params(self, payment: Payment, context: GatewayContext, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(VN_TZ)
        return {
            "vnp_Version": VNPAY_VERSION,
            "vnp_Command": "pay",
            "vnp_TmnCode": self.tmn_code,
            "vnp_Locale": "vn",
            "vnp_CurrCode": "VND",
            "vnp_TxnRef": str(payment.id),
            "vnp_OrderInfo": payment.description,
            "vnp_OrderType": "other",
            # Smallest currency unit
            "vnp_Amount": int(Decimal(str(payment.amount)) * 100),
            "vnp_ReturnUrl": context.return_url or self.default_return_url,
            "vnp_IpAddr": context.client_ip,
            "vnp_CreateDate": now.strftime("%Y%m%d%H%M%S"),
        }

    def sign(self, params: Dict[str, Any]) -> str:
        return sign_params(params, self.hash_secret, self.algorithm)

    def initiate(self, payment: Payment, context: GatewayContext) -> Initiation:
        params = self.build_params(payment, context)
        query, signature = signed_query(params, self.hash_secret, self.algorithm, HASH_FIELD)
        pay_url = f"{self.pay_url}?{query}"
        transaction_id = params["vnp_TxnRef"]
        return Initiation(
            status="processing",
            transaction_id=transaction_id,
            gateway_response={"vnp_Params": {**params, HASH_FIELD: signature}, "pay_url": pay_url},
            response={
                "payment_method": self.method,
                "status": "processing",
                "pay_url": pay_url,
                "transaction_id": transaction_id,
                "message": "Redirect to VNPay for payment",
            },
        )

    def parse_callback(self, payload: Dict[str, Any]) -> CallbackOutcome:
        params = {k: v for k, v in payload.items() if k.startswith("vnp_")}
        received = params.pop(HASH_FIELD, None)
        params.pop("vnp_SecureHashType", None)
        reference = params.get("vnp_TxnRef")
        if not signatures_match(self.sign(params), received):
            return CallbackOutcome(reference=reference, success=False, payload=dict(payload), valid=False)
        return CallbackOutcome(
            reference=reference,
            success=params.get("vnp_ResponseCode") == SUCCESS_CODE,
            payload=dict(payload),
        )
