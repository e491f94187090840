# order_service/api/routers/admin_orders.py
from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from order_service.api.deps import CurrentUser, get_db, get_resources, require_admin
from order_service.api.routers.carts import get_service as get_cart_service
from order_service.domain.schemas import (
    AdminOrderDetailOut,
    AdminOrderPageOut,
    InvoiceOut,
    OrderSummaryOut,
    PendingPaymentPageOut,
    RejectIn,
    StatusUpdateIn,
)
from order_service.resources import Resources
from order_service.services.admin_order_service import AdminOrderService
from order_service.services.cart_service import CartService
from order_service.services.enrichment import book_enricher, customer_enricher

router = APIRouter(prefix="/admin/orders", tags=["admin"])


def get_service(
    db: Session = Depends(get_db),
    resources: Resources = Depends(get_resources),
    cart_service: CartService = Depends(get_cart_service),
) -> AdminOrderService:
    return AdminOrderService(
        db=db,
        books=book_enricher(resources.catalog),
        customers=customer_enricher(resources.identity),
        cart_service=cart_service,
        publisher=resources.publisher,
        settings=resources.settings,
    )


@router.get("", response_model=AdminOrderPageOut)
def list_orders(
    status: str | None = Query(None),
    payment_status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    svc: AdminOrderService = Depends(get_service),
):
    return svc.list_orders(status=status, payment_status=payment_status, page=page, limit=limit)


@router.get("/pending-payment", response_model=PendingPaymentPageOut)
def pending_payment(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    svc: AdminOrderService = Depends(get_service),
):
    return svc.list_pending_payment(page=page, limit=limit)


@router.get("/{order_id}", response_model=AdminOrderDetailOut)
def get_order(
    order_id: int,
    admin: CurrentUser = Depends(require_admin),
    svc: AdminOrderService = Depends(get_service),
):
    return svc.get_order_detail(order_id)


@router.get("/{order_id}/invoice", response_model=InvoiceOut)
def get_invoice(
    order_id: int,
    admin: CurrentUser = Depends(require_admin),
    svc: AdminOrderService = Depends(get_service),
):
    return svc.generate_invoice(order_id)


@router.put("/{order_id}/status", response_model=OrderSummaryOut)
def update_status(
    order_id: int,
    payload: StatusUpdateIn,
    admin: CurrentUser = Depends(require_admin),
    svc: AdminOrderService = Depends(get_service),
):
    return svc.update_status(order_id, payload.status, admin.id, payload.reason)


@router.post("/{order_id}/confirm-payment", response_model=OrderSummaryOut)
def confirm_payment(
    order_id: int,
    admin: CurrentUser = Depends(require_admin),
    svc: AdminOrderService = Depends(get_service),
):
    return svc.confirm_payment(order_id, admin.id)


@router.post("/{order_id}/reject", response_model=OrderSummaryOut)
def reject_order(
    order_id: int,
    payload: RejectIn | None = Body(None),
    admin: CurrentUser = Depends(require_admin),
    svc: AdminOrderService = Depends(get_service),
):
    return svc.reject_order(order_id, admin.id, payload.reason if payload else None)
