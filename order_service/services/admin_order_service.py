# order_service/services/admin_order_service.py
from datetime import datetime
from typing import Any, Callable, Dict

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from order_service.data.database import atomic
from order_service.data.models.order import OrderModel
from order_service.domain.enums import OrderStatus, PaymentSessionStatus, PaymentStatus
from order_service.domain.errors import Conflict, NotFound, ValidationFailed
from order_service.domain.pricing import subtotal, to_money
from order_service.domain.references import invoice_number
from order_service.repos.order_repo import OrderRepo
from order_service.repos.payment_session_repo import PaymentSessionRepo
from order_service.services.cart_service import CartService
from order_service.services.enrichment import Enricher
from order_service.services.event_publisher import EventPublisher
from order_service.services.order_views import (
    history_view,
    order_items,
    order_summary,
    seconds_left,
    session_view,
)
from order_service.utils.clock import as_utc, utcnow
from order_service.utils.logging import get_logger
from order_service.utils.settings import Settings

logger = get_logger(__name__)

_SESSION_BLOCKS_CONFIRM = {
    PaymentSessionStatus.EXPIRED.value: (
        "PAYMENT_SESSION_EXPIRED",
        "Payment session has expired",
    ),
    PaymentSessionStatus.CANCELLED.value: (
        "PAYMENT_SESSION_CANCELLED",
        "Payment session was cancelled",
    ),
    PaymentSessionStatus.COMPLETED.value: (
        "PAYMENT_ALREADY_CONFIRMED",
        "Payment has already been confirmed",
    ),
}


class AdminOrderService:
    """
    Admin operations on orders.
    Every status change goes through OrderRepo.transition, so it is checked
    against the transition table and lands in order_status_history.
    """

    def __init__(
        self,
        db: Session,
        books: Enricher,
        customers: Enricher,
        cart_service: CartService,
        publisher: EventPublisher,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.sessions = PaymentSessionRepo(db)
        self.books = books
        self.customers = customers
        self.cart_service = cart_service
        self.publisher = publisher
        self.settings = settings
        self.clock = clock

    #queries
    def list_orders(
        self,
        status: str | None = None,
        payment_status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        orders, total = self.repo.list_orders(
            status=status, payment_status=payment_status, limit=limit, offset=(page - 1) * limit
        )
        customers = self.customers.enrich_many(o.user_id for o in orders)
        return {
            "orders": [
                {**order_summary(o), "customer": customers[o.user_id], "item_count": len(o.items)}
                for o in orders
            ],
            "page": page,
            "limit": limit,
            "total": total,
        }

    def list_pending_payment(self, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        orders, total = self.repo.list_orders(
            payment_status=PaymentStatus.AWAITING_CONFIRMATION.value,
            limit=limit,
            offset=(page - 1) * limit,
        )
        now = self.clock()
        customers = self.customers.enrich_many(o.user_id for o in orders)
        rows = []
        for o in orders:
            active = self.sessions.get_active(o.id)
            rows.append(
                {
                    **order_summary(o),
                    "customer": customers[o.user_id],
                    "transfer_content": active.transfer_content if active else None,
                    "expires_at": as_utc(active.expires_at) if active else None,
                    "time_remaining_seconds": seconds_left(active.expires_at, now) if active else 0,
                }
            )
        return {"orders": rows, "page": page, "limit": limit, "total": total}

    def get_order_detail(self, order_id: int) -> Dict[str, Any]:
        order = self._get(order_id)
        now = self.clock()
        return {
            **order_summary(order),
            "customer": self.customers.enrich(order.user_id),
            "items": order_items(order, self.books),
            "payment_sessions": [session_view(s, now) for s in self.sessions.list_for_order(order_id)],
            "status_history": [history_view(h) for h in self.repo.get_status_history(order_id)],
        }

    def generate_invoice(self, order_id: int) -> Dict[str, Any]:
        """
        Invoice view of an order. Line amounts come from the prices frozen at
        checkout; the total is the stored order total.
        """
        order = self._get(order_id)
        items = order_items(order, self.books)
        sub = to_money(subtotal((i["unit_price"], i["quantity"]) for i in items))
        tax_rate = self.settings.tax_rate
        return {
            "invoice_number": invoice_number(order.id),
            **order_summary(order),
            "customer": self.customers.enrich(order.user_id),
            "items": items,
            "summary": {
                "subtotal": sub,
                "tax_rate": tax_rate,
                "tax": to_money(sub * tax_rate),
                "processing_fee": to_money(self.settings.processing_fee),
                "total": order.total_amount,
            },
        }

    #commands
    def update_status(self, order_id: int, target: str, admin_id: int, reason: str | None = None) -> Dict[str, Any]:
        try:
            new_status = OrderStatus(target)
        except ValueError:
            raise ValidationFailed(
                f"Unknown order status '{target}'",
                details={"allowed_values": [s.value for s in OrderStatus]},
            ) from None

        self._get(order_id)
        with atomic(self.db):
            order = self.repo.get_order_for_update(order_id)
            payment_status = None
            if new_status is OrderStatus.CANCELLED and order.payment_status != PaymentStatus.COMPLETED.value:
                payment_status = PaymentStatus.FAILED
            previous = self.repo.transition(
                order, new_status, payment_status=payment_status, changed_by=admin_id, reason=reason
            )
            if new_status is OrderStatus.CANCELLED:
                self.sessions.close_active(order_id, PaymentSessionStatus.CANCELLED)

        logger.info(f"Order {order_id} status {previous} -> {new_status.value} by admin {admin_id}")
        self.publisher.order_updated(order, previous, reason)
        return order_summary(order)

    def confirm_payment(self, order_id: int, admin_id: int) -> Dict[str, Any]:
        """
        Use case: admin saw the bank transfer and confirms it.
        Order -> confirmed/completed, session -> completed, cart cleared,
        payment.processed published.
        """
        self._get(order_id)
        now = self.clock()

        with atomic(self.db):
            order = self.repo.get_order_for_update(order_id)
            if order.status == OrderStatus.CANCELLED.value:
                raise Conflict("Order has been cancelled", code="ORDER_CANCELLED")

            session = self.sessions.get_active(order_id) or self.sessions.get_latest(order_id)
            if session is not None and session.status in _SESSION_BLOCKS_CONFIRM:
                code, message = _SESSION_BLOCKS_CONFIRM[session.status]
                raise Conflict(message, code=code, details={"session_status": session.status})

            if order.payment_status != PaymentStatus.AWAITING_CONFIRMATION.value:
                raise Conflict(
                    f"Order payment status is '{order.payment_status}', expected 'awaiting_confirmation'",
                    code="INVALID_PAYMENT_STATUS",
                )

            self.repo.transition(
                order,
                OrderStatus.CONFIRMED,
                payment_status=PaymentStatus.COMPLETED,
                changed_by=admin_id,
                reason="Payment confirmed by admin",
            )
            if session is not None:
                session.status = PaymentSessionStatus.COMPLETED.value
                session.confirmed_by = admin_id
                session.confirmed_at = now

        logger.info(f"Payment of order {order_id} confirmed by admin {admin_id}")
        self._clear_cart(order)
        self.publisher.payment_processed(order)
        return order_summary(order)

    def reject_order(self, order_id: int, admin_id: int, reason: str | None) -> Dict[str, Any]:
        if not reason or not reason.strip():
            raise ValidationFailed("A rejection reason is required", code="REJECTION_REASON_REQUIRED")
        reason = reason.strip()

        self._get(order_id)
        with atomic(self.db):
            order = self.repo.get_order_for_update(order_id)
            if order.status == OrderStatus.CANCELLED.value:
                raise Conflict("Order is already cancelled", code="ORDER_ALREADY_CANCELLED")
            if order.payment_status == PaymentStatus.COMPLETED.value:
                raise Conflict("Payment is already completed", code="PAYMENT_ALREADY_COMPLETED")

            previous = self.repo.transition(
                order,
                OrderStatus.CANCELLED,
                payment_status=PaymentStatus.FAILED,
                changed_by=admin_id,
                reason=reason,
            )
            self.sessions.close_active(
                order_id,
                PaymentSessionStatus.CANCELLED,
                rejection_reason=reason,
                confirmed_by=admin_id,
                confirmed_at=self.clock(),
            )

        logger.info(f"Order {order_id} rejected by admin {admin_id}: {reason}")
        self.publisher.order_updated(order, previous, reason)
        return order_summary(order)

    def _get(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found", code="ORDER_NOT_FOUND")
        return order

    def _clear_cart(self, order: OrderModel) -> None:
        try:
            self.cart_service.clear(order.user_id)
        except RedisError as e:
            logger.warning(f"Could not clear cart of user {order.user_id} after order {order.id}: {e}")
