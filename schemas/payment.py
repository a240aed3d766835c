from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PaymentCreate(BaseModel):
    order_id: int
    # Unsupported methods are rejected by the initiator with a 400
    payment_method: str
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    order_id: int
    user_id: Optional[int] = None
    amount: float
    currency: str
    payment_method: str
    payment_status: str
    transaction_id: Optional[str] = None
    gateway_response: Dict[str, Any] = {}
    payment_date: Optional[datetime] = None
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="payment_metadata")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RefundRequest(BaseModel):
    reason: str = Field(min_length=10, max_length=500)


class PaymentStat(BaseModel):
    status: str
    count: int
    total_amount: float


class StatsPeriod(BaseModel):
    start_date: datetime
    end_date: datetime


class PaymentStatsOut(BaseModel):
    stats: List[PaymentStat]
    period: StatsPeriod
