from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class CustomerInfo(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(pattern=r"^[0-9]{10,11}$")
    address: str = Field(min_length=1)
    city: Optional[str] = None
    postal_code: Optional[str] = None


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)
    # Falls back to the catalogue price when omitted
    price: Optional[float] = Field(default=None, ge=0)


class OrderCreate(BaseModel):
    customer_info: CustomerInfo
    items: List[OrderItemIn] = Field(min_length=1)
    shipping_method: Literal["standard", "express"] = "standard"
    payment_method: str
    subtotal: float = Field(ge=0)
    shipping_fee: float = Field(ge=0)
    total: float = Field(ge=0)
    notes: Optional[str] = None


class OrderItemOut(BaseModel):
    product_id: int
    name: str
    quantity: int
    unit_price: float
    total: float

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int] = None
    customer_info: CustomerInfo
    shipping_method: str
    payment_method: str
    subtotal: float
    shipping_fee: float
    total: float
    status: str
    payment_status: str
    notes: Optional[str] = None
    items: List[OrderItemOut]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    # Checked by the service so an unknown value is a 400, not a 422
    status: str


class OrderTrackOut(BaseModel):
    order_number: str
    status: str
    payment_status: str
    shipping_method: str
    created_at: datetime
    updated_at: datetime
    estimated_delivery: datetime
