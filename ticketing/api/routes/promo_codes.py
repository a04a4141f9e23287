"""
Public promo code validation.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.promo_code import PromoValidateRequest, PromoValidateResponse
from ticketing.services import promo_service

router = APIRouter(prefix="/promo-codes", tags=["Promo Codes"])


@router.post("/validate", response_model=PromoValidateResponse)
async def validate(body: PromoValidateRequest, db: AsyncSession = Depends(get_db)):
    promo, discount = await promo_service.validate_promo_code(db, body.code, body.event_id, body.amount)
    return PromoValidateResponse(
        promo_code_id=promo.id,
        code=promo.code,
        discount_type=promo.discount_type,
        discount_value=promo.discount_value,
        discount_amount=discount,
        final_amount=body.amount - discount,
    )
