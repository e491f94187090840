# order_service/repos/payment_session_repo.py
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from order_service.data.models.payment_session import PaymentSessionModel
from order_service.domain.enums import PaymentSessionStatus

ACTIVE = PaymentSessionStatus.ACTIVE.value


class PaymentSessionRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_active(self, order_id: int) -> PaymentSessionModel | None:
        stmt = (
            select(PaymentSessionModel)
            .where(PaymentSessionModel.order_id == order_id, PaymentSessionModel.status == ACTIVE)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().first()

    def get_latest(self, order_id: int) -> PaymentSessionModel | None:
        stmt = (
            select(PaymentSessionModel)
            .where(PaymentSessionModel.order_id == order_id)
            .order_by(PaymentSessionModel.created_at.desc(), PaymentSessionModel.id.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def list_for_order(self, order_id: int) -> list[PaymentSessionModel]:
        stmt = (
            select(PaymentSessionModel)
            .where(PaymentSessionModel.order_id == order_id)
            .order_by(PaymentSessionModel.created_at.desc(), PaymentSessionModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_expired_active(self, now: datetime) -> list[PaymentSessionModel]:
        stmt = (
            select(PaymentSessionModel)
            .where(PaymentSessionModel.status == ACTIVE, PaymentSessionModel.expires_at < now)
            .order_by(PaymentSessionModel.expires_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def close_active(self, order_id: int, status: PaymentSessionStatus, **values) -> int:
        """Moves every active session of the order to `status`. Caller commits."""
        result = self.db.execute(
            update(PaymentSessionModel)
            .where(PaymentSessionModel.order_id == order_id, PaymentSessionModel.status == ACTIVE)
            .values(status=status.value, **values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def add(self, session: PaymentSessionModel) -> PaymentSessionModel:
        self.db.add(session)
        self.db.flush()
        return session
