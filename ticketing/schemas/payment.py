"""
Pydantic schemas for checkout payment calls.
"""

from typing import Optional

from pydantic import BaseModel


class PaymentInitializeRequest(BaseModel):
    order_id: int


class PaymentInitializeResponse(BaseModel):
    order_id: int
    reference: str
    authorization_url: str
    access_code: Optional[str] = None


class PaymentVerifyResponse(BaseModel):
    order_id: int
    order_number: str
    reference: str
    status: str
    payment_status: Optional[str]
    paid: bool
