"""
InventoryReservation: a time-boxed hold against a TicketType.

Key design decisions:
- Status field records the outcome (released/expired/converted) instead of
  deleting rows, so an order can always explain where its inventory went
- `reservation_id` is the public handle (UUID); the integer id stays internal
- Composite index on (status, expires_at) serves the expiry sweeper
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin, UTCDateTime


class ReservationStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    RELEASED = "RELEASED"
    EXPIRED = "EXPIRED"
    CONVERTED = "CONVERTED"


class InventoryReservation(Base, TimestampMixin):
    __tablename__ = "inventory_reservations"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(String(36), unique=True, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    ticket_type_id = Column(Integer, ForeignKey("ticket_types.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ReservationStatus.ACTIVE.value)
    expires_at = Column(UTCDateTime(), nullable=False)

    # Relationships
    ticket_type = relationship("TicketType", lazy="selectin")
    order = relationship("Order", back_populates="reservations")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_reservation_quantity_positive"),
        CheckConstraint(
            "status IN ('ACTIVE', 'RELEASED', 'EXPIRED', 'CONVERTED')",
            name="check_reservation_status",
        ),
        Index("ix_reservations_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryReservation(id={self.reservation_id}, ticket_type={self.ticket_type_id}, "
            f"qty={self.quantity}, status={self.status})>"
        )
