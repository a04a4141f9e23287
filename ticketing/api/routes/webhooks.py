"""
Payment provider webhooks.
"""

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import get_payment_gateway
from ticketing.db.session import get_db
from ticketing.services import payment_service
from ticketing.services.cache_service import invalidate_event_cache
from ticketing.services.interfaces.payment_gateway import PaymentGateway

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: str = Header(default=""),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Paystack event delivery. The signature covers the raw body, so the
    body is read as bytes before any JSON parsing.
    """
    raw_body = await request.body()
    result = await payment_service.handle_webhook(db, raw_body, x_paystack_signature, gateway)
    await invalidate_event_cache()
    return result
