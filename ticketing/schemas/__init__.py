from ticketing.schemas.common import Money, Page, MessageResponse
from ticketing.schemas.user import (
    UserCreate, UserLogin, UserResponse, Token, LoginResponse, SessionResponse,
    SwitchRoleRequest, OrganizerRequest, ProfileUpdate, OrganizerProfileResponse,
)
from ticketing.schemas.event import (
    EventCreate, EventUpdate, EventStatusUpdate, EventResponse, EventListResponse,
    TicketTypeInput, TicketTypeResponse,
)
from ticketing.schemas.reservation import (
    AvailabilityResponse, ReserveRequest, ReleaseRequest, ReservationResponse,
)
from ticketing.schemas.order import OrderCreate, OrderResponse, AttendeeInput
from ticketing.schemas.ticket import (
    TicketResponse, TicketTransferRequest, TicketTransferResponse, CheckInRequest,
)
from ticketing.schemas.payment import (
    PaymentInitializeRequest, PaymentInitializeResponse, PaymentVerifyResponse,
)
from ticketing.schemas.promo_code import (
    PromoValidateRequest, PromoValidateResponse, PromoCodeCreate, PromoCodeUpdate, PromoCodeResponse,
)
from ticketing.schemas.payout import (
    BalanceResponse, BankAccountSetup, BankAccountResponse, PayoutCreate, PayoutResponse,
    RevenueSummary, EventRevenue, TicketTypeRevenue,
)

__all__ = [
    "Money", "Page", "MessageResponse",
    "UserCreate", "UserLogin", "UserResponse", "Token", "LoginResponse", "SessionResponse",
    "SwitchRoleRequest", "OrganizerRequest", "ProfileUpdate", "OrganizerProfileResponse",
    "EventCreate", "EventUpdate", "EventStatusUpdate", "EventResponse", "EventListResponse",
    "TicketTypeInput", "TicketTypeResponse",
    "AvailabilityResponse", "ReserveRequest", "ReleaseRequest", "ReservationResponse",
    "OrderCreate", "OrderResponse", "AttendeeInput",
    "TicketResponse", "TicketTransferRequest", "TicketTransferResponse", "CheckInRequest",
    "PaymentInitializeRequest", "PaymentInitializeResponse", "PaymentVerifyResponse",
    "PromoValidateRequest", "PromoValidateResponse", "PromoCodeCreate", "PromoCodeUpdate",
    "PromoCodeResponse",
    "BalanceResponse", "BankAccountSetup", "BankAccountResponse", "PayoutCreate", "PayoutResponse",
    "RevenueSummary", "EventRevenue", "TicketTypeRevenue",
]
