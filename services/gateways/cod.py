from models.payment import Payment
from services.gateways.base import GatewayContext, Initiation, PaymentGateway


class CashOnDeliveryGateway(PaymentGateway):
    method = "cod"

    def initiate(self, payment: Payment, context: GatewayContext) -> Initiation:
        # Nothing to collect until the parcel arrives
        return Initiation(
            status="pending",
            response={
                "payment_method": self.method,
                "status": "pending",
                "message": "Order will be paid upon delivery",
            },
        )
