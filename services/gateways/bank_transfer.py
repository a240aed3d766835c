import time

from models.payment import Payment
from services.gateways.base import GatewayContext, Initiation, PaymentGateway


class BankTransferGateway(PaymentGateway):
    method = "bank_transfer"

    def __init__(self, bank_name: str, account_number: str, account_name: str, reference_prefix: str):
        self.bank_name = bank_name
        self.account_number = account_number
        self.account_name = account_name
        self.reference_prefix = reference_prefix

    def initiate(self, payment: Payment, context: GatewayContext) -> Initiation:
        transaction_id = f"BT{int(time.time() * 1000)}"
        return Initiation(
            status="pending",
            transaction_id=transaction_id,
            response={
                "payment_method": self.method,
                "status": "pending",
                "transaction_id": transaction_id,
                "bank_info": {
                    "bank_name": self.bank_name,
                    "account_number": self.account_number,
                    "account_name": self.account_name,
                    "transfer_content": f"{self.reference_prefix} {payment.id}",
                },
                "message": "Please transfer money to the provided bank account",
            },
        )
