"""
Payout: an organizer's withdrawal request against their available balance.
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint, Numeric, JSON

from ticketing.db.base import Base, TimestampMixin, UTCDateTime


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Payouts that have left, or are leaving, the organizer's balance
COMMITTED_PAYOUT_STATUSES = (
    PayoutStatus.PENDING.value,
    PayoutStatus.PROCESSING.value,
    PayoutStatus.COMPLETED.value,
)


class Payout(Base, TimestampMixin):
    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    status = Column(String(20), nullable=False, default=PayoutStatus.PENDING.value)
    reference = Column(String(100), unique=True, nullable=True, index=True)
    failure_reason = Column(String(500), nullable=True)
    bank_account = Column(JSON, nullable=True)
    processed_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_payout_amount_positive"),
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')",
            name="check_payout_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Payout(id={self.id}, organizer={self.organizer_id}, amount={self.amount}, status={self.status})>"
