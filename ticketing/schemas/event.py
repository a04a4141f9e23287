"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ticketing.models.event import EventStatus
from ticketing.schemas.common import Money, UTCDatetime


class TicketTypeInput(BaseModel):
    # Present when updating an existing ticket type
    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    total_quantity: int = Field(..., gt=0, le=1000000)
    min_per_order: int = Field(1, ge=1)
    max_per_order: int = Field(4, ge=1, le=100)

    @model_validator(mode="after")
    def check_order_limits(self):
        if self.max_per_order < self.min_per_order:
            raise ValueError("max_per_order must be greater than or equal to min_per_order")
        return self


class EventCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    category: Optional[str] = Field(None, max_length=50)
    venue_name: Optional[str] = Field(None, max_length=255)
    venue_address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    start_at: UTCDatetime
    end_at: UTCDatetime
    sale_start: Optional[UTCDatetime] = None
    sale_end: Optional[UTCDatetime] = None
    ticket_types: list[TicketTypeInput] = Field(default_factory=list)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    category: Optional[str] = Field(None, max_length=50)
    venue_name: Optional[str] = Field(None, max_length=255)
    venue_address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    start_at: Optional[UTCDatetime] = None
    end_at: Optional[UTCDatetime] = None
    sale_start: Optional[UTCDatetime] = None
    sale_end: Optional[UTCDatetime] = None
    # When given, the full desired set of ticket types
    ticket_types: Optional[list[TicketTypeInput]] = None


class EventStatusUpdate(BaseModel):
    status: EventStatus


class TicketTypeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price: Money
    currency: str
    total_quantity: int
    sold_quantity: int
    reserved_quantity: int
    available_quantity: int
    min_per_order: int
    max_per_order: int

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    id: int
    organizer_id: int
    title: str
    slug: str
    description: Optional[str]
    category: Optional[str]
    venue_name: Optional[str]
    venue_address: Optional[str]
    city: Optional[str]
    start_at: datetime
    end_at: datetime
    sale_start: Optional[datetime]
    sale_end: Optional[datetime]
    status: str
    ticket_types: list[TicketTypeResponse] = Field(default_factory=list)
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    items: list[EventResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    cached: bool = False
