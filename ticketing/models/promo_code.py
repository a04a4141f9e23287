"""
PromoCode: a discount code, either global to its creator or bound to one event.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, CheckConstraint, Numeric
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin, UTCDateTime


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PromoCode(Base, TimestampMixin):
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False)
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0)
    valid_from = Column(UTCDateTime(), nullable=False)
    valid_until = Column(UTCDateTime(), nullable=False)
    min_order_amount = Column(Numeric(12, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    event = relationship("Event", lazy="selectin")

    __table_args__ = (
        CheckConstraint("discount_type IN ('PERCENTAGE', 'FIXED')", name="check_promo_discount_type"),
        CheckConstraint("discount_value > 0", name="check_promo_discount_positive"),
        CheckConstraint("current_uses >= 0", name="check_promo_uses_non_negative"),
        CheckConstraint("valid_until > valid_from", name="check_promo_validity_window"),
    )

    def __repr__(self) -> str:
        return f"<PromoCode(code={self.code}, uses={self.current_uses}/{self.max_uses})>"
