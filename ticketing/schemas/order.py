"""
Pydantic schemas for order creation and order views.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from ticketing.schemas.common import Money
from ticketing.schemas.ticket import TicketResponse


class AttendeeInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)


class OrderCreate(BaseModel):
    event_id: int
    ticket_type_id: int
    quantity: int = Field(..., gt=0, le=100)
    reservation_id: str = Field(..., min_length=1, max_length=36)
    customer_email: EmailStr
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=32)
    promo_code: Optional[str] = Field(None, max_length=50)
    # One entry per ticket, in ticket order; missing entries fall back to the customer
    attendees: Optional[list[AttendeeInput]] = None


class OrderResponse(BaseModel):
    id: int
    order_number: str
    event_id: int
    ticket_type_id: int
    user_id: Optional[int]
    quantity: int
    customer_email: str
    customer_name: Optional[str]
    customer_phone: Optional[str]
    subtotal: Money
    discount_amount: Money
    platform_fee: Money
    processing_fee: Money
    total_amount: Money
    currency: str
    promo_code: Optional[str]
    status: str
    payment_reference: Optional[str]
    payment_status: Optional[str]
    paid_at: Optional[datetime]
    created_at: datetime
    tickets: list[TicketResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}
