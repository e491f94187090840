# order_service/services/order_stats_service.py
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from order_service.domain.enums import OrderStatus
from order_service.domain.errors import ValidationFailed
from order_service.domain.pricing import to_money
from order_service.repos.order_repo import OrderRepo
from order_service.services.enrichment import Enricher
from order_service.utils.clock import as_utc, utcnow
from order_service.utils.logging import get_logger

logger = get_logger(__name__)

#period -> (days covered, bucket size)
CHART_PERIODS = {
    "week": (7, "day"),
    "month": (30, "day"),
    "year": (365, "month"),
}

_LABEL_FORMAT = {"day": "%Y-%m-%d", "month": "%Y-%m"}


def _bucket_start(moment: datetime, group_by: str) -> datetime:
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if group_by == "month":
        start = start.replace(day=1)
    return start


def _next_bucket(start: datetime, group_by: str) -> datetime:
    if group_by == "day":
        return start + timedelta(days=1)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


class OrderStatsService:
    """Read-only aggregates over orders: customer statistics, per-user totals, admin dashboard."""

    def __init__(self, db: Session, books: Enricher, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.repo = OrderRepo(db)
        self.books = books
        self.clock = clock

    def order_statistics(self, user_id: int | None = None) -> Dict[str, Any]:
        """Scoped to one customer, or to every order when user_id is None."""
        stats = self.repo.get_statistics(user_id)
        paid = stats["completed_orders"]
        stats["avg_order_value"] = to_money(stats["total_revenue"] / paid) if paid else Decimal("0.00")
        return stats

    def user_order_stats(self, user_id: int) -> Dict[str, Any]:
        count, spent, last_order_at = self.repo.get_user_totals(user_id)
        return {
            "user_id": user_id,
            "order_count": count,
            "total_spent": spent,
            "last_order_at": as_utc(last_order_at),
        }

    def dashboard(self, top_limit: int = 10) -> Dict[str, Any]:
        now = self.clock()
        today = _bucket_start(now, "day")

        daily = weekly = monthly = Decimal("0")
        for created_at, amount in self.repo.revenue_rows(since=now - timedelta(days=30)):
            created_at = as_utc(created_at)
            monthly += amount
            if created_at >= now - timedelta(days=7):
                weekly += amount
            if created_at >= now - timedelta(days=1):
                daily += amount

        top = self.repo.top_books(limit=top_limit)
        titles = self.books.enrich_many(book_id for book_id, _ in top)
        return {
            "revenue": {"daily": to_money(daily), "weekly": to_money(weekly), "monthly": to_money(monthly)},
            "orders": {
                "new_count": self.repo.count_orders(since=now - timedelta(hours=24)),
                "pending_count": self.repo.count_orders(status=OrderStatus.PENDING),
                "total_today": self.repo.count_orders(since=today),
            },
            "top_books": [
                {"book_id": book_id, "title": titles[book_id]["title"], "quantity_sold": sold}
                for book_id, sold in top
            ],
        }

    def revenue_chart(self, period: str = "week") -> Dict[str, Any]:
        """Revenue and order count per day (week, month) or per month (year), empty buckets included."""
        if period not in CHART_PERIODS:
            raise ValidationFailed(
                f"Unknown chart period '{period}'",
                details={"allowed_values": list(CHART_PERIODS)},
            )
        interval_days, group_by = CHART_PERIODS[period]
        now = self.clock()
        label_format = _LABEL_FORMAT[group_by]

        buckets: Dict[str, list] = {}
        cursor = _bucket_start(now - timedelta(days=interval_days), group_by)
        first = cursor
        while cursor <= now:
            buckets[cursor.strftime(label_format)] = [Decimal("0"), 0]
            cursor = _next_bucket(cursor, group_by)

        for created_at, amount in self.repo.revenue_rows(since=first):
            bucket = buckets.get(as_utc(created_at).strftime(label_format))
            if bucket is None:
                continue
            bucket[0] += amount
            bucket[1] += 1

        logger.info(f"Revenue chart for {period}: {len(buckets)} buckets from {first.date()}")
        return {
            "period": period,
            "interval_days": interval_days,
            "group_by": group_by,
            "points": [
                {"date": label, "revenue": to_money(revenue), "order_count": count}
                for label, (revenue, count) in buckets.items()
            ],
        }
