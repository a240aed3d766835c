from typing import Dict

from core.config import Settings
from services.gateways.bank_transfer import BankTransferGateway
from services.gateways.base import PaymentGateway
from services.gateways.cod import CashOnDeliveryGateway
from services.gateways.vnpay import VNPayGateway
from services.gateways.zalopay import ZaloPayGateway


def build_gateways(settings: Settings) -> Dict[str, PaymentGateway]:
    """One strategy per supported payment method, keyed by method name."""
    return_url = f"{settings.CLIENT_URL}/payment/success"
    gateways = [
        CashOnDeliveryGateway(),
        BankTransferGateway(
            bank_name=settings.BANK_NAME,
            account_number=settings.BANK_ACCOUNT_NUMBER,
            account_name=settings.BANK_ACCOUNT_NAME,
            reference_prefix=settings.BANK_TRANSFER_PREFIX,
        ),
        VNPayGateway(
            tmn_code=settings.VNPAY_TMN_CODE,
            hash_secret=settings.VNPAY_HASH_SECRET,
            pay_url=settings.VNPAY_URL,
            default_return_url=return_url,
        ),
        ZaloPayGateway(
            app_id=settings.ZALOPAY_APP_ID,
            key1=settings.ZALOPAY_KEY1,
            key2=settings.ZALOPAY_KEY2,
            endpoint=settings.ZALOPAY_ENDPOINT,
            callback_url=f"{settings.API_URL}/payments/callback/zalopay",
            default_return_url=return_url,
            live=settings.ZALOPAY_LIVE,
        ),
    ]
    return {g.method: g for g in gateways}
