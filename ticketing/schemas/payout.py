"""
Pydantic schemas for organizer balances, payouts and revenue.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ticketing.schemas.common import Money


class BalanceResponse(BaseModel):
    total_revenue: Money
    platform_fees: Money
    paystack_fees: Money
    total_fees: Money
    net_revenue: Money
    pending_balance: Money
    total_payouts: Money
    available_balance: Money
    tickets_sold: int
    free_tickets_remaining: int
    currency: str


class BankAccountSetup(BaseModel):
    account_number: str = Field(..., max_length=20)
    bank_code: str = Field(..., min_length=1, max_length=20)
    account_name: str = Field(..., min_length=2, max_length=255)
    bank_name: Optional[str] = Field(None, max_length=255)


class BankAccountResponse(BaseModel):
    recipient_code: str
    account_number: str
    bank_code: str
    bank_name: Optional[str]
    account_name: str


class PayoutCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class PayoutResponse(BaseModel):
    id: int
    amount: Money
    currency: str
    status: str
    reference: Optional[str]
    failure_reason: Optional[str]
    bank_account: Optional[dict]
    processed_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketTypeRevenue(BaseModel):
    ticket_type_id: int
    name: str
    tickets_sold: int
    revenue: Money


class EventRevenue(BaseModel):
    event_id: int
    title: str
    status: str
    orders: int
    tickets_sold: int
    revenue: Money
    ticket_types: list[TicketTypeRevenue]


class RevenueSummary(BaseModel):
    total_revenue: Money
    total_tickets_sold: int
    total_orders: int
    events: list[EventRevenue]
