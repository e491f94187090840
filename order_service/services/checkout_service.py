# order_service/services/checkout_service.py
from typing import Any, Dict

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from order_service.data.database import atomic
from order_service.data.models.order import OrderModel
from order_service.data.models.order_item import OrderItemModel
from order_service.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from order_service.domain.errors import PaymentDeclined, ValidationFailed
from order_service.domain.pricing import order_total, subtotal
from order_service.repos.order_repo import OrderRepo
from order_service.services.cart_service import CartService
from order_service.services.event_publisher import EventPublisher
from order_service.services.mock_payment_processor import MockPaymentProcessor
from order_service.services.order_views import order_summary
from order_service.services.payment_session_service import PaymentSessionService
from order_service.utils.logging import get_logger
from order_service.utils.settings import Settings

logger = get_logger(__name__)


class CheckoutService:
    """
    Turns the user's cart into an order.

    bank_transfer: order + QR session, payment awaits admin confirmation;
    the cart is kept until then.
    other methods: paid synchronously by the mock processor.
    """

    def __init__(
        self,
        db: Session,
        cart_service: CartService,
        payment_sessions: PaymentSessionService,
        processor: MockPaymentProcessor,
        publisher: EventPublisher,
        settings: Settings,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.cart_service = cart_service
        self.payment_sessions = payment_sessions
        self.processor = processor
        self.publisher = publisher
        self.settings = settings

    def checkout(
        self,
        user_id: int,
        user_email: str | None,
        payment_method: PaymentMethod,
        shipping_address: str,
    ) -> Dict[str, Any]:
        cart = self.cart_service.get_cart(user_id)
        if not cart["items"]:
            raise ValidationFailed("Cart is empty", code="EMPTY_CART")

        order = self._create_order(user_id, user_email, cart, payment_method, shipping_address)
        logger.info(f"Order {order.id} created for user {user_id}, total {order.total_amount}, method {payment_method.value}")

        if payment_method is PaymentMethod.BANK_TRANSFER:
            return self._bank_transfer(order)
        return self._pay_now(order)

    def _create_order(
        self,
        user_id: int,
        user_email: str | None,
        cart: dict,
        payment_method: PaymentMethod,
        shipping_address: str,
    ) -> OrderModel:
        lines = [(i["unit_price"], i["quantity"]) for i in cart["items"]]
        total = order_total(subtotal(lines), self.settings.tax_rate, self.settings.processing_fee)

        order = OrderModel(
            user_id=user_id,
            user_email=user_email,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method.value,
            total_amount=total,
            shipping_address=shipping_address,
        )
        items = [
            OrderItemModel(book_id=i["book_id"], quantity=i["quantity"], unit_price=i["unit_price"])
            for i in cart["items"]
        ]
        return self.repo.create_order(order, items)

    def _bank_transfer(self, order: OrderModel) -> Dict[str, Any]:
        #raises UpstreamUnavailable with the order id when the provider gives up; the order stays pending
        session = self.payment_sessions.open_for_new_order(order)

        self.publisher.order_created(order)
        return {
            **order_summary(order),
            "payment": self.payment_sessions.present(session),
        }

    def _pay_now(self, order: OrderModel) -> Dict[str, Any]:
        result = self.processor.process(order.id, order.total_amount, order.payment_method)

        if not result.success:
            with atomic(self.db):
                self.repo.transition(
                    order,
                    OrderStatus.CANCELLED,
                    payment_status=PaymentStatus.FAILED,
                    reason=f"Payment failed: {result.error}",
                )
            logger.warning(f"Payment for order {order.id} declined: {result.error}")
            raise PaymentDeclined(
                "Payment processing failed",
                code="PAYMENT_FAILED",
                details={"order_id": order.id, "reason": result.error},
            )

        with atomic(self.db):
            self.repo.transition(
                order,
                OrderStatus.CONFIRMED,
                payment_status=PaymentStatus.COMPLETED,
                reason=f"Payment processed ({result.transaction_id})",
            )

        try:
            self.cart_service.clear(order.user_id)
        except RedisError as e:
            logger.warning(f"Could not clear cart of user {order.user_id} after order {order.id}: {e}")

        self.publisher.order_created(order)
        self.publisher.payment_processed(order)
        return {**order_summary(order), "transaction_id": result.transaction_id, "payment": None}
