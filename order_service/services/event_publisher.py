# order_service/services/event_publisher.py
from datetime import datetime, timezone
from typing import Any

from celery import Celery
from kombu import Exchange

from order_service.data.models.order import OrderModel
from order_service.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"
PAYMENT_PROCESSED = "payment.processed"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class EventPublisher:
    """
    Publishes order lifecycle events to a topic exchange through the
    Celery app's producer pool. Best effort: a failed publish is logged
    and never propagates to the caller.
    """

    def __init__(self, celery_app: Celery | None, exchange_name: str, service_name: str):
        self.celery_app = celery_app
        self.exchange = Exchange(exchange_name, type="topic", durable=True)
        self.service_name = service_name

    def publish(self, routing_key: str, payload: dict[str, Any]) -> bool:
        message = {
            **payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": self.service_name,
        }
        try:
            self._send(routing_key, message)
        except Exception as e:
            logger.warning(f"Failed to publish {routing_key} for order {payload.get('order_id')}: {e}")
            return False
        logger.info(f"Published {routing_key} for order {payload.get('order_id')}")
        return True

    def _send(self, routing_key: str, message: dict[str, Any]) -> None:
        if self.celery_app is None:
            raise RuntimeError("message bus not configured")
        with self.celery_app.producer_or_acquire() as producer:
            producer.publish(
                message,
                exchange=self.exchange,
                routing_key=routing_key,
                declare=[self.exchange],
                serializer="json",
                retry=True,
                retry_policy={"max_retries": 2, "interval_start": 0, "interval_step": 0.5},
            )

    #typed helpers
    def order_created(self, order: OrderModel) -> bool:
        return self.publish(
            ORDER_CREATED,
            {
                "order_id": order.id,
                "user_id": order.user_id,
                "user_email": order.user_email,
                "total_amount": str(order.total_amount),
                "payment_method": order.payment_method,
                "items": [
                    {"book_id": i.book_id, "quantity": i.quantity, "unit_price": str(i.unit_price)}
                    for i in order.items
                ],
                "created_at": _iso(order.created_at),
            },
        )

    def order_updated(self, order: OrderModel, old_status: str, reason: str | None = None) -> bool:
        return self.publish(
            ORDER_UPDATED,
            {
                "order_id": order.id,
                "user_id": order.user_id,
                "old_status": old_status,
                "new_status": order.status,
                "reason": reason,
                "updated_at": _iso(order.updated_at),
            },
        )

    def payment_processed(self, order: OrderModel) -> bool:
        return self.publish(
            PAYMENT_PROCESSED,
            {
                "order_id": order.id,
                "user_id": order.user_id,
                "user_email": order.user_email,
                "payment_status": order.payment_status,
                "amount": str(order.total_amount),
                "processed_at": datetime.now(timezone.utc).isoformat(),
            },
        )
