"""
Pydantic schemas for promo codes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ticketing.models.promo_code import DiscountType
from ticketing.schemas.common import Money, UTCDatetime


class PromoValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    event_id: Optional[int] = None
    amount: Decimal = Field(..., ge=0)


class PromoValidateResponse(BaseModel):
    promo_code_id: int
    code: str
    discount_type: str
    discount_value: Money
    discount_amount: Money
    final_amount: Money


class PromoCodeCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
    description: Optional[str] = Field(None, max_length=500)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    max_uses: Optional[int] = Field(None, ge=1)
    valid_from: UTCDatetime
    valid_until: UTCDatetime
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    event_id: Optional[int] = None
    is_active: bool = True

    @model_validator(mode="after")
    def check_percentage(self):
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self


class PromoCodeUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=500)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    max_uses: Optional[int] = Field(None, ge=1)
    valid_from: Optional[UTCDatetime] = None
    valid_until: Optional[UTCDatetime] = None
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PromoCodeResponse(BaseModel):
    id: int
    code: str
    description: Optional[str]
    discount_type: str
    discount_value: Money
    max_uses: Optional[int]
    current_uses: int
    valid_from: datetime
    valid_until: datetime
    min_order_amount: Optional[Money]
    is_active: bool
    event_id: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}
