from ticketing.models.user import User, UserRole, OrganizerProfile, Role, VerificationStatus
from ticketing.models.event import Event, TicketType, EventStatus
from ticketing.models.reservation import InventoryReservation, ReservationStatus
from ticketing.models.order import Order, OrderStatus
from ticketing.models.ticket import Ticket, TicketStatus
from ticketing.models.promo_code import PromoCode, DiscountType
from ticketing.models.payout import Payout, PayoutStatus

__all__ = [
    "User", "UserRole", "OrganizerProfile", "Role", "VerificationStatus",
    "Event", "TicketType", "EventStatus",
    "InventoryReservation", "ReservationStatus",
    "Order", "OrderStatus",
    "Ticket", "TicketStatus",
    "PromoCode", "DiscountType",
    "Payout", "PayoutStatus",
]
