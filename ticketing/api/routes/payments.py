"""
Payment endpoints: start a Paystack checkout and verify its outcome.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import get_payment_gateway
from ticketing.db.session import get_db
from ticketing.schemas.payment import PaymentInitializeRequest, PaymentInitializeResponse, PaymentVerifyResponse
from ticketing.services import payment_service
from ticketing.services.cache_service import invalidate_event_cache
from ticketing.services.interfaces.payment_gateway import PaymentGateway

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/initialize", response_model=PaymentInitializeResponse)
async def initialize(
    body: PaymentInitializeRequest,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return await payment_service.initialize_payment(db, body.order_id, gateway)


@router.get("/verify/{reference}", response_model=PaymentVerifyResponse)
async def verify(
    reference: str,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Called from the payment callback page."""
    result = await payment_service.verify_payment(db, reference, gateway)
    if result["paid"]:
        await invalidate_event_cache()
    return result
