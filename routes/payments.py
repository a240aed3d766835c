from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from core.deps import get_callback_reconciler, get_payment_initiator, get_store
from models.user import User
from schemas.common import ApiResponse, MessageOut
from schemas.payment import PaymentCreate, PaymentOut, PaymentStatsOut, RefundRequest
from security.deps import get_current_user, require_admin
from services import payments as payment_service
from services.callbacks import CallbackReconciler
from services.gateways.base import GatewayContext
from services.payments import PaymentInitiator
from services.store import StateStore

router = APIRouter(prefix="/payments", tags=["payments"])


async def callback_payload(request: Request) -> Dict[str, Any]:
    """Query string and JSON body merged; gateways use one or the other."""
    payload: Dict[str, Any] = dict(request.query_params)
    body = await request.body()
    if body:
        try:
            data = await request.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            payload.update(data)
    return payload


@router.post("", response_model=ApiResponse[Dict[str, Any]], status_code=201)
def create_payment(
    data: PaymentCreate,
    request: Request,
    user: User = Depends(get_current_user),
    initiator: PaymentInitiator = Depends(get_payment_initiator),
):
    context = GatewayContext(
        return_url=data.return_url,
        cancel_url=data.cancel_url,
        client_ip=request.client.host if request.client else "127.0.0.1",
        user_id=user.id,
    )
    result = initiator.create_payment(data.order_id, data.payment_method, context)
    return ApiResponse(message="Payment created successfully", data=result)


@router.post("/callback/{gateway}", response_model=MessageOut)
def payment_callback(
    gateway: str,
    payload: Dict[str, Any] = Depends(callback_payload),
    reconciler: CallbackReconciler = Depends(get_callback_reconciler),
):
    return reconciler.handle(gateway, payload)


@router.get("/admin/stats", response_model=ApiResponse[PaymentStatsOut])
def get_payment_stats(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    store: StateStore = Depends(get_store),
    admin: User = Depends(require_admin),
):
    return ApiResponse(data=PaymentStatsOut(**payment_service.payment_stats(store, start_date, end_date)))


@router.get("/{payment_id}", response_model=ApiResponse[PaymentOut])
def get_payment(payment_id: int, store: StateStore = Depends(get_store), user: User = Depends(get_current_user)):
    payment = payment_service.get_payment(store, payment_id)
    if payment.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this payment")
    return ApiResponse(data=PaymentOut.model_validate(payment))


@router.post("/{payment_id}/refund", response_model=MessageOut)
def refund_payment(
    payment_id: int,
    data: RefundRequest,
    store: StateStore = Depends(get_store),
    admin: User = Depends(require_admin),
):
    payment_service.refund_payment(store, payment_id, data.reason, refunded_by=admin.id)
    return MessageOut(success=True, message="Payment refunded successfully")
