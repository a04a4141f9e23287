"""
Order: a purchase record for one ticket type of one event.

Status machine: PENDING -> PAID | FAILED | CANCELLED. A confirmed payment may
still settle a CANCELLED order. Transitions are conditional UPDATEs so webhook
and verify calls racing each other settle an order exactly once.
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint, Numeric, JSON, Index
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin, UTCDateTime


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(40), unique=True, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    ticket_type_id = Column(Integer, ForeignKey("ticket_types.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    quantity = Column(Integer, nullable=False)

    customer_email = Column(String(255), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(32), nullable=True)

    # Pricing (all amounts in major currency units)
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    platform_fee = Column(Numeric(12, 2), nullable=False, default=0)
    processing_fee = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id", ondelete="SET NULL"), nullable=True)
    promo_code = Column(String(50), nullable=True)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_reference = Column(String(100), unique=True, nullable=True, index=True)
    payment_status = Column(String(50), nullable=True)
    paid_at = Column(UTCDateTime(), nullable=True)

    attendee_info = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    # Relationships
    event = relationship("Event", lazy="selectin")
    ticket_type = relationship("TicketType", lazy="selectin")
    tickets = relationship("Ticket", back_populates="order", lazy="selectin", order_by="Ticket.id")
    reservations = relationship("InventoryReservation", back_populates="order", lazy="selectin")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_order_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'PAID', 'FAILED', 'CANCELLED')",
            name="check_order_status",
        ),
        Index("ix_orders_event_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"
