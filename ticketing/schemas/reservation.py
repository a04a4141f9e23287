"""
Pydantic schemas for inventory availability and reservations.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AvailabilityResponse(BaseModel):
    event_id: int
    ticket_type_id: int
    requested: int
    available: int
    can_reserve: bool


class ReserveRequest(BaseModel):
    event_id: int
    ticket_type_id: int
    quantity: int = Field(..., gt=0, le=100)


class ReleaseRequest(BaseModel):
    reservation_id: str = Field(..., min_length=1, max_length=36)


class ReservationResponse(BaseModel):
    reservation_id: str
    event_id: int
    ticket_type_id: int
    quantity: int
    status: str
    expires_at: datetime
    order_id: Optional[int] = None

    model_config = {"from_attributes": True}
