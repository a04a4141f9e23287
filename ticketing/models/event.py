"""
Event and TicketType models.

Key design decisions:
- Inventory lives on TicketType as three counters (total, sold, reserved);
  available = total - sold - reserved is derived, never stored
- `version` on TicketType enables optimistic locking for concurrent reservations
- Index on `start_at` for the public "upcoming events" listing
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, Index, CheckConstraint, Numeric
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin, UTCDateTime


class EventStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    LIVE = "LIVE"
    SOLD_OUT = "SOLD_OUT"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Statuses that are browsable and can sell tickets
ON_SALE_STATUSES = (EventStatus.PUBLISHED.value, EventStatus.LIVE.value)
# Statuses whose detail page is public
PUBLIC_STATUSES = ON_SALE_STATUSES + (EventStatus.SOLD_OUT.value, EventStatus.COMPLETED.value)


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(300), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)
    venue_name = Column(String(255), nullable=True)
    venue_address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    start_at = Column(UTCDateTime(), nullable=False)
    end_at = Column(UTCDateTime(), nullable=False)
    sale_start = Column(UTCDateTime(), nullable=True)
    sale_end = Column(UTCDateTime(), nullable=True)
    status = Column(String(20), nullable=False, default=EventStatus.DRAFT.value)

    # Relationships
    organizer = relationship("User", lazy="selectin")
    ticket_types = relationship(
        "TicketType",
        back_populates="event",
        lazy="selectin",
        order_by="TicketType.price",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="check_event_end_after_start"),
        CheckConstraint(
            "status IN ('DRAFT', 'PUBLISHED', 'LIVE', 'SOLD_OUT', 'CANCELLED', 'COMPLETED')",
            name="check_event_status",
        ),
        # Public listing: on-sale events ordered by start date
        Index("ix_events_status_start", "status", "start_at"),
        Index("ix_events_city", "city"),
        Index("ix_events_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, slug={self.slug}, status={self.status})>"


class TicketType(Base, TimestampMixin):
    __tablename__ = "ticket_types"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="NGN")
    total_quantity = Column(Integer, nullable=False)
    sold_quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    min_per_order = Column(Integer, nullable=False, default=1)
    max_per_order = Column(Integer, nullable=False, default=4)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    event = relationship("Event", back_populates="ticket_types")

    __table_args__ = (
        CheckConstraint("total_quantity > 0", name="check_ticket_total_positive"),
        CheckConstraint("sold_quantity >= 0", name="check_ticket_sold_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="check_ticket_reserved_non_negative"),
        CheckConstraint(
            "sold_quantity + reserved_quantity <= total_quantity",
            name="check_ticket_inventory_within_total",
        ),
        CheckConstraint("price >= 0", name="check_ticket_price_non_negative"),
        CheckConstraint("min_per_order >= 1 AND max_per_order >= min_per_order", name="check_ticket_order_limits"),
    )

    @property
    def available_quantity(self) -> int:
        return self.total_quantity - self.sold_quantity - self.reserved_quantity

    def __repr__(self) -> str:
        return (
            f"<TicketType(id={self.id}, name={self.name}, "
            f"sold={self.sold_quantity}, reserved={self.reserved_quantity}/{self.total_quantity})>"
        )
