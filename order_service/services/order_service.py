# order_service/services/order_service.py
from datetime import datetime
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from order_service.data.database import atomic
from order_service.data.models.order import OrderModel
from order_service.domain.enums import OrderStatus, PaymentSessionStatus, PaymentStatus
from order_service.domain.errors import Conflict, Forbidden, NotFound
from order_service.domain.state_machine import USER_CANCELLABLE_STATUSES
from order_service.repos.order_repo import OrderRepo
from order_service.repos.payment_session_repo import PaymentSessionRepo
from order_service.services.enrichment import Enricher
from order_service.services.event_publisher import EventPublisher
from order_service.services.order_views import order_items, order_summary, session_view
from order_service.utils.clock import utcnow
from order_service.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """Customer side of orders: read own orders, cancel."""

    def __init__(
        self,
        db: Session,
        books: Enricher,
        publisher: EventPublisher,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.sessions = PaymentSessionRepo(db)
        self.books = books
        self.publisher = publisher
        self.clock = clock

    def _owned_order(self, order_id: int, user_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found", code="ORDER_NOT_FOUND")
        if order.user_id != user_id:
            raise Forbidden("You do not have access to this order", code="ACCESS_DENIED")
        return order

    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        order = self._owned_order(order_id, user_id)
        latest = self.sessions.get_latest(order_id)
        return {
            **order_summary(order),
            "items": order_items(order, self.books),
            "payment_session": session_view(latest, self.clock()) if latest else None,
        }

    def list_my_orders(self, user_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        orders, total = self.repo.list_orders(user_id=user_id, limit=limit, offset=(page - 1) * limit)
        return {
            "orders": [{**order_summary(o), "items": order_items(o, self.books)} for o in orders],
            "page": page,
            "limit": limit,
            "total": total,
        }

    def cancel_order(self, order_id: int, user_id: int, reason: str | None = None) -> Dict[str, Any]:
        """
        Use case: the customer cancels. Allowed while the order is pending or
        confirmed; open QR sessions are closed with it.
        """
        order = self._owned_order(order_id, user_id)

        with atomic(self.db):
            order = self.repo.get_order_for_update(order_id)
            if OrderStatus(order.status) not in USER_CANCELLABLE_STATUSES:
                raise Conflict(
                    f"Order in status '{order.status}' can no longer be cancelled",
                    code="CANCEL_NOT_ALLOWED",
                )
            payment_status = None
            if order.payment_status != PaymentStatus.COMPLETED.value:
                payment_status = PaymentStatus.FAILED
            previous = self.repo.transition(
                order,
                OrderStatus.CANCELLED,
                payment_status=payment_status,
                changed_by=user_id,
                reason=reason or "Cancelled by customer",
            )
            self.sessions.close_active(order_id, PaymentSessionStatus.CANCELLED)

        logger.info(f"Order {order_id} cancelled by user {user_id}")
        self.publisher.order_updated(order, previous, reason or "Cancelled by customer")
        return order_summary(order)
