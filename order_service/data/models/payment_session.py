from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text

from order_service.data.database import Base


class PaymentSessionModel(Base):
    __tablename__ = "payment_sessions"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    qr_code = Column(Text, nullable=True)
    qr_data_url = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    transfer_content = Column(String(50), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    status = Column(String(20), nullable=False, default="active")  # active, expired, completed, cancelled
    confirmed_by = Column(Integer, nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        #at most one active session per order, enforced by the database too
        Index(
            "uq_payment_sessions_one_active",
            "order_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
