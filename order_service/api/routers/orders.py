# order_service/api/routers/orders.py
from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from order_service.api.deps import CurrentUser, get_current_user, get_db, get_resources
from order_service.api.routers.carts import get_service as get_cart_service
from order_service.api.routers.stats import get_service as get_stats_service
from order_service.domain.schemas import (
    CancelIn,
    CheckoutIn,
    CheckoutOut,
    OrderOut,
    OrderPageOut,
    OrderStatisticsOut,
    OrderSummaryOut,
    QRPaymentOut,
)
from order_service.resources import Resources
from order_service.services.cart_service import CartService
from order_service.services.checkout_service import CheckoutService
from order_service.services.enrichment import book_enricher
from order_service.services.order_service import OrderService
from order_service.services.order_stats_service import OrderStatsService
from order_service.services.payment_session_service import PaymentSessionService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_payment_sessions(db: Session, resources: Resources) -> PaymentSessionService:
    return PaymentSessionService(
        db=db,
        gateway=resources.gateway,
        lock_service=resources.lock_service,
        settings=resources.settings,
    )


def get_service(db: Session = Depends(get_db), resources: Resources = Depends(get_resources)) -> OrderService:
    return OrderService(db=db, books=book_enricher(resources.catalog), publisher=resources.publisher)


@router.post("/checkout", response_model=CheckoutOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    resources: Resources = Depends(get_resources),
    cart_service: CartService = Depends(get_cart_service),
):
    svc = CheckoutService(
        db=db,
        cart_service=cart_service,
        payment_sessions=get_payment_sessions(db, resources),
        processor=resources.processor,
        publisher=resources.publisher,
        settings=resources.settings,
    )
    return svc.checkout(user.id, user.email, payload.payment_method, payload.shipping_address)


#my-orders and statistics are declared before /{order_id} so they are not captured as an id
@router.get("/my-orders", response_model=OrderPageOut)
def my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    svc: OrderService = Depends(get_service),
):
    return svc.list_my_orders(user.id, page=page, limit=limit)


@router.get("/statistics", response_model=OrderStatisticsOut)
def order_statistics(
    user: CurrentUser = Depends(get_current_user),
    svc: OrderStatsService = Depends(get_stats_service),
):
    #admins see every order, customers their own
    return svc.order_statistics(None if user.is_admin else user.id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    svc: OrderService = Depends(get_service),
):
    return svc.get_order(order_id, user.id)


@router.get("/{order_id}/qr", response_model=QRPaymentOut)
def get_order_qr(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    resources: Resources = Depends(get_resources),
):
    return get_payment_sessions(db, resources).get_or_create_qr(order_id, user.id)


@router.delete("/{order_id}/cancel", response_model=OrderSummaryOut)
def cancel_order(
    order_id: int,
    payload: CancelIn | None = Body(None),
    user: CurrentUser = Depends(get_current_user),
    svc: OrderService = Depends(get_service),
):
    return svc.cancel_order(order_id, user.id, reason=payload.reason if payload else None)
