from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.errors import BadRequest
from models.payment import Payment


@dataclass(frozen=True)
class GatewayContext:
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    client_ip: str = "127.0.0.1"
    user_id: Optional[int] = None


@dataclass
class Initiation:
    """What a strategy wants written back to the payment, plus the client payload."""

    status: str
    response: Dict[str, Any]
    transaction_id: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None


@dataclass
class CallbackOutcome:
    reference: Optional[str]
    success: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    valid: bool = True


class PaymentGateway(ABC):
    method: str = ""
    accepts_callbacks: bool = False

    @abstractmethod
    def initiate(self, payment: Payment, context: GatewayContext) -> Initiation:
        ...

    def parse_callback(self, payload: Dict[str, Any]) -> CallbackOutcome:
        raise BadRequest("Unsupported payment gateway")
