# order_service/repos/order_repo.py
from datetime import datetime
from decimal import Decimal

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from order_service.data.models.order import OrderModel
from order_service.data.models.order_item import OrderItemModel
from order_service.data.models.order_status_history import OrderStatusHistoryModel
from order_service.domain.enums import OrderStatus, PaymentStatus
from order_service.domain.pricing import to_money
from order_service.domain.state_machine import assert_transition


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_order_for_update(self, order_id: int) -> OrderModel | None:
        #row lock on postgres, refreshes the identity map copy
        stmt = (
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_order(self, order: OrderModel, items: list[OrderItemModel]) -> OrderModel:
        """Order row, item rows and the first history row go in one commit."""
        try:
            self.db.add(order)
            self.db.flush()
            for item in items:
                item.order_id = order.id
                self.db.add(item)
            self.db.add(
                OrderStatusHistoryModel(
                    order_id=order.id,
                    from_status=None,
                    to_status=order.status,
                    changed_by=order.user_id,
                    reason="Order created",
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        return order

    def transition(
        self,
        order: OrderModel,
        target: OrderStatus,
        payment_status: PaymentStatus | None = None,
        changed_by: int | None = None,
        reason: str | None = None,
    ) -> str:
        """
        Moves the order to `target` if the transition table allows it and
        stages the audit row. Caller commits. Returns the previous status.
        """
        previous = order.status
        assert_transition(previous, target)
        order.status = target.value
        if payment_status is not None:
            order.payment_status = payment_status.value
        self.db.add(
            OrderStatusHistoryModel(
                order_id=order.id,
                from_status=previous,
                to_status=target.value,
                changed_by=changed_by,
                reason=reason,
            )
        )
        self.db.flush()
        return previous

    def list_orders(
        self,
        user_id: int | None = None,
        status: str | None = None,
        payment_status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[OrderModel], int]:
        stmt = select(OrderModel)
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        if status:
            stmt = stmt.where(OrderModel.status == status)
        if payment_status:
            stmt = stmt.where(OrderModel.payment_status == payment_status)

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = (
            self.db.execute(
                stmt.order_by(OrderModel.created_at.desc(), OrderModel.id.desc()).limit(limit).offset(offset)
            )
            .scalars()
            .all()
        )
        return list(rows), total

    def get_status_history(self, order_id: int) -> list[OrderStatusHistoryModel]:
        stmt = (
            select(OrderStatusHistoryModel)
            .where(OrderStatusHistoryModel.order_id == order_id)
            .order_by(OrderStatusHistoryModel.created_at, OrderStatusHistoryModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    #aggregates
    def get_statistics(self, user_id: int | None = None) -> dict:
        """Counts and revenue over all orders, or one customer's orders. Paid means completed and not cancelled."""
        paid = and_(
            OrderModel.payment_status == PaymentStatus.COMPLETED.value,
            OrderModel.status != OrderStatus.CANCELLED.value,
        )
        stmt = select(
            func.count(OrderModel.id),
            func.count(case((paid, 1))),
            func.count(case((OrderModel.status == OrderStatus.PENDING.value, 1))),
            func.count(case((OrderModel.status == OrderStatus.CANCELLED.value, 1))),
            func.sum(case((paid, OrderModel.total_amount))),
        )
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        total, paid_count, pending, cancelled, revenue = self.db.execute(stmt).one()
        return {
            "total_orders": total,
            "completed_orders": paid_count,
            "pending_orders": pending,
            "cancelled_orders": cancelled,
            "total_revenue": to_money(revenue or 0),
        }

    def get_user_totals(self, user_id: int) -> tuple[int, Decimal, datetime | None]:
        """(order count, amount of the orders that were not cancelled, last order time)"""
        stmt = select(
            func.count(OrderModel.id),
            func.sum(case((OrderModel.status != OrderStatus.CANCELLED.value, OrderModel.total_amount))),
            func.max(OrderModel.created_at),
        ).where(OrderModel.user_id == user_id)
        count, spent, last_order_at = self.db.execute(stmt).one()
        return count, to_money(spent or 0), last_order_at

    def count_orders(self, since: datetime | None = None, status: OrderStatus | None = None) -> int:
        stmt = select(func.count(OrderModel.id))
        if since is not None:
            stmt = stmt.where(OrderModel.created_at >= since)
        if status is not None:
            stmt = stmt.where(OrderModel.status == status.value)
        return self.db.execute(stmt).scalar_one()

    def revenue_rows(self, since: datetime) -> list[tuple[datetime, Decimal]]:
        """
        (created_at, total_amount) of orders that count as revenue: not
        cancelled, paid or waiting for the admin to confirm the transfer.
        """
        stmt = (
            select(OrderModel.created_at, OrderModel.total_amount)
            .where(
                OrderModel.created_at >= since,
                OrderModel.status != OrderStatus.CANCELLED.value,
                OrderModel.payment_status.in_(
                    [PaymentStatus.COMPLETED.value, PaymentStatus.AWAITING_CONFIRMATION.value]
                ),
            )
            .order_by(OrderModel.created_at)
        )
        return [(created_at, to_money(amount)) for created_at, amount in self.db.execute(stmt).all()]

    def top_books(self, limit: int = 10) -> list[tuple[int, int]]:
        """(book_id, quantity sold) over orders that were not cancelled, best sellers first."""
        sold = func.sum(OrderItemModel.quantity)
        stmt = (
            select(OrderItemModel.book_id, sold)
            .join(OrderModel, OrderModel.id == OrderItemModel.order_id)
            .where(OrderModel.status != OrderStatus.CANCELLED.value)
            .group_by(OrderItemModel.book_id)
            .order_by(sold.desc(), OrderItemModel.book_id)
            .limit(limit)
        )
        return [(book_id, int(quantity)) for book_id, quantity in self.db.execute(stmt).all()]
