"""
Organizer balance and payout endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_organizer, get_payment_gateway
from ticketing.db.session import get_db
from ticketing.models.payout import PayoutStatus
from ticketing.models.user import User
from ticketing.schemas.common import Page
from ticketing.schemas.payout import (
    BalanceResponse, BankAccountSetup, BankAccountResponse, PayoutCreate, PayoutResponse,
)
from ticketing.services import payout_service
from ticketing.services.interfaces.payment_gateway import PaymentGateway

router = APIRouter(prefix="/payouts", tags=["Organizer Payouts"])


@router.get("/balance", response_model=BalanceResponse)
async def balance(user: User = Depends(require_organizer), db: AsyncSession = Depends(get_db)):
    return await payout_service.get_balance(db, user.id)


@router.post("/setup", response_model=BankAccountResponse)
async def setup_bank_account(
    body: BankAccountSetup,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return await payout_service.setup_bank_account(db, user, body, gateway)


@router.post("/request", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def request_payout(
    body: PayoutCreate,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return await payout_service.request_payout(db, user, body.amount, gateway)


@router.get("/", response_model=Page[PayoutResponse])
async def list_payouts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[PayoutStatus] = Query(None, alias="status"),
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    payouts, total = await payout_service.list_payouts(
        db, user, page, limit, status_filter.value if status_filter else None
    )
    return Page[PayoutResponse].build([PayoutResponse.model_validate(p) for p in payouts], total, page, limit)


@router.get("/{payout_id}", response_model=PayoutResponse)
async def get_payout(payout_id: int, user: User = Depends(require_organizer), db: AsyncSession = Depends(get_db)):
    return await payout_service.get_payout(db, user, payout_id)
