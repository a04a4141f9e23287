"""
Organizer promo code management.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_organizer
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.common import MessageResponse
from ticketing.schemas.promo_code import PromoCodeCreate, PromoCodeUpdate, PromoCodeResponse
from ticketing.services import promo_service

router = APIRouter(prefix="/promo-codes", tags=["Organizer Promo Codes"])


@router.get("/", response_model=list[PromoCodeResponse])
async def list_codes(
    event_id: Optional[int] = Query(None),
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    return await promo_service.list_promo_codes(db, user, event_id)


@router.post("/", response_model=PromoCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_code(
    body: PromoCodeCreate,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    return await promo_service.create_promo_code(db, body, user)


@router.get("/{promo_id}", response_model=PromoCodeResponse)
async def get_code(promo_id: int, user: User = Depends(require_organizer), db: AsyncSession = Depends(get_db)):
    return await promo_service.get_promo_code(db, promo_id, user)


@router.put("/{promo_id}", response_model=PromoCodeResponse)
async def update_code(
    promo_id: int,
    body: PromoCodeUpdate,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    return await promo_service.update_promo_code(db, promo_id, body, user)


@router.delete("/{promo_id}", response_model=MessageResponse)
async def delete_code(promo_id: int, user: User = Depends(require_organizer), db: AsyncSession = Depends(get_db)):
    await promo_service.delete_promo_code(db, promo_id, user)
    return MessageResponse(message="Promo code deleted")
