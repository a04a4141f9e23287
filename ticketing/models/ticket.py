"""
Ticket: one admission, issued per unit when an order is paid.
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint, Text
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin, UTCDateTime


class TicketStatus(str, enum.Enum):
    VALID = "VALID"
    USED = "USED"
    CANCELLED = "CANCELLED"
    TRANSFERRED = "TRANSFERRED"


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    ticket_number = Column(String(40), unique=True, nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    ticket_type_id = Column(Integer, ForeignKey("ticket_types.id"), nullable=False)
    attendee_name = Column(String(255), nullable=True)
    attendee_email = Column(String(255), nullable=False, index=True)
    attendee_phone = Column(String(32), nullable=True)
    qr_payload = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=TicketStatus.VALID.value)

    checked_in_at = Column(UTCDateTime(), nullable=True)
    checked_in_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    transferred_from = Column(String(255), nullable=True)
    transferred_to = Column(String(255), nullable=True)
    transferred_at = Column(UTCDateTime(), nullable=True)

    order = relationship("Order", back_populates="tickets")
    ticket_type = relationship("TicketType", lazy="selectin")

    __table_args__ = (
        CheckConstraint(
            "status IN ('VALID', 'USED', 'CANCELLED', 'TRANSFERRED')",
            name="check_ticket_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Ticket(number={self.ticket_number}, status={self.status})>"
