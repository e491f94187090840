# order_service/services/order_views.py
from datetime import datetime
from typing import Any, Dict

from order_service.data.models.order import OrderModel
from order_service.data.models.order_status_history import OrderStatusHistoryModel
from order_service.data.models.payment_session import PaymentSessionModel
from order_service.domain.references import order_number
from order_service.services.enrichment import Enricher
from order_service.utils.clock import as_utc


def seconds_left(expires_at: datetime, now: datetime) -> int:
    return max(0, int((as_utc(expires_at) - now).total_seconds()))


def order_summary(order: OrderModel) -> Dict[str, Any]:
    return {
        "order_id": order.id,
        "order_number": order_number(order.id),
        "user_id": order.user_id,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "total_amount": order.total_amount,
        "shipping_address": order.shipping_address,
        "created_at": as_utc(order.created_at),
        "updated_at": as_utc(order.updated_at),
    }


def order_items(order: OrderModel, books: Enricher) -> list[Dict[str, Any]]:
    details = books.enrich_many(i.book_id for i in order.items)
    return [
        {
            "item_id": i.id,
            "book_id": i.book_id,
            "title": details[i.book_id]["title"],
            "author": details[i.book_id]["author"],
            "cover_image_url": details[i.book_id]["cover_image_url"],
            "quantity": i.quantity,
            "unit_price": i.unit_price,
            "line_total": i.unit_price * i.quantity,
        }
        for i in order.items
    ]


def session_view(session: PaymentSessionModel, now: datetime) -> Dict[str, Any]:
    return {
        "session_id": session.id,
        "status": session.status,
        "transfer_content": session.transfer_content,
        "amount": session.amount,
        "qr_data_url": session.qr_data_url,
        "expires_at": as_utc(session.expires_at),
        "expires_in_seconds": seconds_left(session.expires_at, now),
        "confirmed_by": session.confirmed_by,
        "confirmed_at": as_utc(session.confirmed_at),
        "rejection_reason": session.rejection_reason,
        "created_at": as_utc(session.created_at),
    }


def history_view(row: OrderStatusHistoryModel) -> Dict[str, Any]:
    return {
        "from_status": row.from_status,
        "to_status": row.to_status,
        "changed_by": row.changed_by,
        "reason": row.reason,
        "created_at": as_utc(row.created_at),
    }
