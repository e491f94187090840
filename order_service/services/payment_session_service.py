# order_service/services/payment_session_service.py
from datetime import datetime, timedelta
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from order_service.data.database import atomic
from order_service.data.models.order import OrderModel
from order_service.data.models.payment_session import PaymentSessionModel
from order_service.domain.enums import OrderStatus, PaymentSessionStatus, PaymentStatus
from order_service.domain.errors import Conflict, Forbidden, NotFound, UpstreamUnavailable
from order_service.domain.references import order_number
from order_service.repos.order_repo import OrderRepo
from order_service.repos.payment_session_repo import PaymentSessionRepo
from order_service.services.lock_service import LockService
from order_service.services.order_views import seconds_left
from order_service.services.payment_gateway import PaymentGateway, QRResult
from order_service.utils.clock import as_utc, utcnow
from order_service.utils.logging import get_logger
from order_service.utils.settings import Settings

logger = get_logger(__name__)

_QR_ELIGIBLE_PAYMENT = {PaymentStatus.PENDING.value, PaymentStatus.AWAITING_CONFIRMATION.value}


class PaymentSessionService:
    """
    QR payment sessions of an order.

    At most one session per order is active. Creating a session and
    expiring its predecessor happen under the order lock and inside one
    transaction, and only after the provider has returned a QR code, so a
    failed provider call leaves the database untouched.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        lock_service: LockService,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.sessions = PaymentSessionRepo(db)
        self.gateway = gateway
        self.lock_service = lock_service
        self.settings = settings
        self.clock = clock

    def is_valid(self, session: PaymentSessionModel | None, now: datetime | None = None) -> bool:
        if session is None or session.status != PaymentSessionStatus.ACTIVE.value:
            return False
        return (now or self.clock()) < as_utc(session.expires_at)

    def open_for_new_order(self, order: OrderModel) -> PaymentSessionModel:
        """
        First session of a freshly created bank-transfer order. On provider
        failure the order is left pending and UpstreamUnavailable is raised.
        """
        with self.lock_service.order_lock(order.id) as acquired:
            if not acquired:
                raise Conflict(
                    "Payment session is being prepared, retry shortly",
                    code="PAYMENT_SESSION_BUSY",
                    details={"order_id": order.id},
                )

            result = self.gateway.generate_qr(order.id, order.total_amount)
            if not result.success:
                raise UpstreamUnavailable(
                    "Payment service is temporarily unavailable. Your order was created, please request the QR code again.",
                    code="PAYMENT_SERVICE_ERROR",
                    details={"order_id": order.id, "error": result.error},
                )

            with atomic(self.db):
                locked = self.orders.get_order_for_update(order.id)
                session = self._insert_session(locked, result)
                locked.payment_status = PaymentStatus.AWAITING_CONFIRMATION.value

        logger.info(f"Payment session {session.id} opened for order {order.id}")
        return session

    def get_or_create_qr(self, order_id: int, user_id: int) -> Dict[str, Any]:
        """
        Use case: customer asks for the QR code of their order.
        - valid active session: returned as is
        - active but past expires_at: expired and replaced
        - none: created if the order can still be paid
        """
        order = self.orders.get_order(order_id)
        if order is None:
            raise NotFound("Order not found", code="ORDER_NOT_FOUND")
        if order.user_id != user_id:
            raise Forbidden("You do not have access to this order", code="ACCESS_DENIED")
        self._check_payable(order)

        active = self.sessions.get_active(order_id)
        if self.is_valid(active):
            return self.present(active, regenerated=False)

        with self.lock_service.order_lock(order_id) as acquired:
            if not acquired:
                raise Conflict(
                    "Payment session is being prepared, retry shortly",
                    code="PAYMENT_SESSION_BUSY",
                    details={"order_id": order_id},
                )

            #somebody may have replaced it while we waited for the lock
            active = self.sessions.get_active(order_id)
            if self.is_valid(active):
                return self.present(active, regenerated=False)

            regenerating = active is not None
            if not regenerating and order.payment_status not in _QR_ELIGIBLE_PAYMENT:
                raise Conflict(
                    f"Order payment status '{order.payment_status}' does not allow a QR payment",
                    code="INVALID_ORDER_STATE",
                )

            result = self.gateway.generate_qr(order.id, order.total_amount)
            if not result.success:
                code = "QR_REGENERATION_FAILED" if regenerating else "QR_GENERATION_FAILED"
                raise UpstreamUnavailable(
                    "Could not generate the payment QR code, please try again",
                    code=code,
                    details={"order_id": order_id, "error": result.error},
                )

            with atomic(self.db):
                locked = self.orders.get_order_for_update(order_id)
                self._check_payable(locked)
                expired = self.sessions.close_active(order_id, PaymentSessionStatus.EXPIRED)
                session = self._insert_session(locked, result)
                if locked.payment_status == PaymentStatus.PENDING.value:
                    locked.payment_status = PaymentStatus.AWAITING_CONFIRMATION.value

        if regenerating:
            logger.info(f"Regenerated QR for order {order_id}, expired {expired} session(s)")
        else:
            logger.info(f"Created QR session {session.id} for order {order_id}")
        return self.present(session, regenerated=regenerating)

    def present(self, session: PaymentSessionModel, regenerated: bool = False) -> Dict[str, Any]:
        return {
            "order_id": session.order_id,
            "order_number": order_number(session.order_id),
            "session_id": session.id,
            "qr_code": session.qr_code,
            "qr_data_url": session.qr_data_url,
            "transfer_content": session.transfer_content,
            "amount": session.amount,
            "expires_at": as_utc(session.expires_at),
            "expires_in_seconds": seconds_left(session.expires_at, self.clock()),
            "bank_info": self.gateway.bank_info(),
            "is_regenerated": regenerated,
        }

    @staticmethod
    def _check_payable(order: OrderModel) -> None:
        if order.status == OrderStatus.CANCELLED.value:
            raise Conflict("Order has been cancelled", code="ORDER_CANCELLED")
        if order.payment_status == PaymentStatus.COMPLETED.value:
            raise Conflict("Order has already been paid", code="PAYMENT_COMPLETED")

    def _insert_session(self, order: OrderModel, result: QRResult) -> PaymentSessionModel:
        now = self.clock()
        return self.sessions.add(
            PaymentSessionModel(
                order_id=order.id,
                qr_code=result.qr_code,
                qr_data_url=result.qr_data_url,
                amount=order.total_amount,
                transfer_content=result.transfer_content,
                expires_at=now + timedelta(minutes=self.settings.payment_qr_expiry_minutes),
                status=PaymentSessionStatus.ACTIVE.value,
                created_at=now,
            )
        )
