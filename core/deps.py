from typing import Dict

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.config import Settings
from core.db import get_db
from services.callbacks import CallbackReconciler
from services.gateways.base import PaymentGateway
from services.orders import OrderIntake
from services.payments import PaymentInitiator
from services.store import StateStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateways(request: Request) -> Dict[str, PaymentGateway]:
    return request.app.state.gateways


def get_store(db: Session = Depends(get_db)) -> StateStore:
    return StateStore(db)


def get_order_intake(store: StateStore = Depends(get_store), settings: Settings = Depends(get_settings)) -> OrderIntake:
    return OrderIntake(store, guard_stock=settings.STOCK_GUARD)


def get_payment_initiator(
    store: StateStore = Depends(get_store),
    gateways: Dict[str, PaymentGateway] = Depends(get_gateways),
    settings: Settings = Depends(get_settings),
) -> PaymentInitiator:
    return PaymentInitiator(store, gateways, currency=settings.DEFAULT_CURRENCY)


def get_callback_reconciler(
    store: StateStore = Depends(get_store),
    gateways: Dict[str, PaymentGateway] = Depends(get_gateways),
) -> CallbackReconciler:
    return CallbackReconciler(store, gateways)
