"""
Pydantic schemas for issued tickets, transfers and check-in.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class TicketResponse(BaseModel):
    id: int
    ticket_number: str
    order_id: int
    event_id: int
    ticket_type_id: int
    attendee_name: Optional[str]
    attendee_email: str
    attendee_phone: Optional[str]
    qr_payload: str
    status: str
    checked_in_at: Optional[datetime] = None
    transferred_to: Optional[str] = None
    transferred_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketTransferRequest(BaseModel):
    recipient_email: EmailStr
    recipient_name: Optional[str] = Field(None, max_length=255)
    recipient_phone: Optional[str] = Field(None, max_length=32)


class TicketTransferResponse(BaseModel):
    message: str
    old_ticket: TicketResponse
    new_ticket: TicketResponse


class CheckInRequest(BaseModel):
    ticket_number: Optional[str] = None
    qr_payload: Optional[str] = None

    @model_validator(mode="after")
    def require_identifier(self):
        if not self.ticket_number and not self.qr_payload:
            raise ValueError("ticket_number or qr_payload is required")
        return self
