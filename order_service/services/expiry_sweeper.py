# order_service/services/expiry_sweeper.py
import threading
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from order_service.data.database import atomic
from order_service.domain.enums import OrderStatus, PaymentSessionStatus, PaymentStatus
from order_service.repos.order_repo import OrderRepo
from order_service.repos.payment_session_repo import PaymentSessionRepo
from order_service.services.event_publisher import EventPublisher
from order_service.services.lock_service import LockService
from order_service.utils.clock import as_utc, utcnow
from order_service.utils.logging import get_logger

logger = get_logger(__name__)

EXPIRED_REASON = "Payment session expired"


class ExpirySweeper:
    """
    Cancels orders whose QR payment session ran out.

    run_once() is one sweep; a failure on one order is logged and the
    sweep moves on. Orders currently locked by a QR regeneration are left
    for the next sweep. start()/stop() run it on a background thread
    when no Celery beat is used.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        lock_service: LockService,
        publisher: EventPublisher,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.lock_service = lock_service
        self.publisher = publisher
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> int:
        now = self.clock()
        db = self.session_factory()
        try:
            candidates = PaymentSessionRepo(db).find_expired_active(now)
            order_ids = sorted({s.order_id for s in candidates})
            db.rollback()
            logger.info(f"Found {len(order_ids)} order(s) with expired payment sessions")

            cancelled = 0
            for order_id in order_ids:
                try:
                    if self._expire_order(db, order_id, now):
                        cancelled += 1
                except Exception as e:
                    logger.exception(f"Failed to expire payment session of order {order_id}: {e}")
            if cancelled:
                logger.info(f"Cancelled {cancelled} order(s) with expired payment sessions")
            return cancelled
        finally:
            db.close()

    def _expire_order(self, db: Session, order_id: int, now: datetime) -> bool:
        with self.lock_service.order_lock(order_id) as acquired:
            if not acquired:
                logger.info(f"Order {order_id} is locked, skipping until next sweep")
                return False

            orders = OrderRepo(db)
            sessions = PaymentSessionRepo(db)
            with atomic(db):
                order = orders.get_order_for_update(order_id)
                active = sessions.get_active(order_id)
                if order is None or active is None or as_utc(active.expires_at) >= now:
                    #regenerated or confirmed since the candidate query
                    return False

                sessions.close_active(order_id, PaymentSessionStatus.EXPIRED)
                if order.status != OrderStatus.PENDING.value:
                    logger.warning(
                        f"Order {order_id} in status '{order.status}' had an expired active session, session closed only"
                    )
                    return False

                previous = orders.transition(
                    order,
                    OrderStatus.CANCELLED,
                    payment_status=PaymentStatus.FAILED,
                    reason=EXPIRED_REASON,
                )

        logger.info(f"Order {order_id} cancelled, payment session expired")
        self.publisher.order_updated(order, previous, EXPIRED_REASON)
        return True

    #inline scheduling
    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="expiry-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Expiry sweeper started, interval {self.interval_seconds}s")

    def stop(self, timeout: float | None = 10.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Expiry sweeper stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.exception(f"Expiry sweep failed: {e}")
            self._stop.wait(self.interval_seconds)
