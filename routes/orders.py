from typing import Optional

from fastapi import APIRouter, Depends

from core.deps import get_order_intake, get_store
from models.user import User
from schemas.common import ApiResponse, MessageOut
from schemas.order import OrderCreate, OrderOut, OrderStatusUpdate, OrderTrackOut
from security.deps import get_optional_user, require_admin
from services import orders as order_service
from services.orders import OrderIntake
from services.store import StateStore

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=ApiResponse[OrderOut], status_code=201)
def create_order(
    data: OrderCreate,
    user: Optional[User] = Depends(get_optional_user),
    intake: OrderIntake = Depends(get_order_intake),
):
    order = intake.create_order(data, user_id=user.id if user else None)
    return ApiResponse(message="Order created successfully", data=OrderOut.model_validate(order))


@router.get("/track/{order_number}", response_model=ApiResponse[OrderTrackOut])
def track_order(order_number: str, store: StateStore = Depends(get_store)):
    return ApiResponse(data=OrderTrackOut(**order_service.track_order(store, order_number)))


@router.get("/{order_id}", response_model=ApiResponse[OrderOut])
def get_order(order_id: int, store: StateStore = Depends(get_store), admin: User = Depends(require_admin)):
    return ApiResponse(data=OrderOut.model_validate(order_service.get_order(store, order_id)))


@router.put("/{order_id}/status", response_model=MessageOut)
def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    store: StateStore = Depends(get_store),
    admin: User = Depends(require_admin),
):
    order_service.update_order_status(store, order_id, data.status)
    return MessageOut(success=True, message="Order status updated successfully")
