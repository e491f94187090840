#import all models so SQLAlchemy registers them in Base.metadata

from order_service.data.models.order import OrderModel
from order_service.data.models.order_item import OrderItemModel
from order_service.data.models.payment_session import PaymentSessionModel
from order_service.data.models.order_status_history import OrderStatusHistoryModel

__all__ = ["OrderModel", "OrderItemModel", "PaymentSessionModel", "OrderStatusHistoryModel"]
