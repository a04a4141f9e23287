"""
Promo code validation and organizer promo code management.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.db.base import utcnow
from ticketing.models.event import Event
from ticketing.models.promo_code import PromoCode, DiscountType
from ticketing.models.user import User
from ticketing.schemas.promo_code import PromoCodeCreate, PromoCodeUpdate
from ticketing.core.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


def normalize_code(code: str) -> str:
    return code.strip().upper()


def compute_discount(promo: PromoCode, amount: Decimal) -> Decimal:
    """Discount for `amount`, never more than the amount itself."""
    if promo.discount_type == DiscountType.PERCENTAGE.value:
        discount = amount * Decimal(promo.discount_value) / Decimal(100)
    else:
        discount = Decimal(promo.discount_value)
    return min(discount, amount).quantize(CENT, rounding=ROUND_HALF_UP)


async def validate_promo_code(
    db: AsyncSession,
    code: str,
    event_id: Optional[int],
    amount: Decimal,
    now: Optional[datetime] = None,
) -> tuple[PromoCode, Decimal]:
    """
    Check a code against an event and order amount.
    Returns the promo code and the discount it gives.
    """
    normalized = normalize_code(code)
    result = await db.execute(select(PromoCode).where(PromoCode.code == normalized))
    promo = result.scalar_one_or_none()
    if not promo:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Promo code not found",
        )

    now = now or utcnow()
    reason = None
    if not promo.is_active:
        reason = "Promo code is not active"
    elif now < promo.valid_from:
        reason = "Promo code is not yet valid"
    elif now > promo.valid_until:
        reason = "Promo code has expired"
    elif promo.event_id is not None and promo.event_id != event_id:
        reason = "Promo code is not valid for this event"
    elif promo.min_order_amount is not None and amount < promo.min_order_amount:
        reason = f"Minimum order amount for this code is {promo.min_order_amount}"
    elif promo.max_uses is not None and promo.current_uses >= promo.max_uses:
        reason = "Promo code usage limit reached"

    if reason:
        logger.info("promo_code_rejected", code=normalized, event_id=event_id, reason=reason)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=reason,
        )

    return promo, compute_discount(promo, amount)


async def increment_usage(db: AsyncSession, promo_code_id: int) -> bool:
    """Count one use. Returns False when the code already hit its limit."""
    result = await db.execute(
        update(PromoCode)
        .where(
            PromoCode.id == promo_code_id,
            or_(PromoCode.max_uses.is_(None), PromoCode.current_uses < PromoCode.max_uses),
        )
        .values(current_uses=PromoCode.current_uses + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


# ---------------------------------------------------------------------------
# Organizer CRUD
# ---------------------------------------------------------------------------

def _owns(promo: PromoCode, user: User) -> bool:
    if promo.created_by_id == user.id:
        return True
    return promo.event is not None and promo.event.organizer_id == user.id


async def _owned_event(db: AsyncSession, event_id: int, user: User) -> Event:
    event = (await db.execute(select(Event).where(Event.id == event_id))).scalar_one_or_none()
    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Event {event_id} not found",
        )
    if event.organizer_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not own this event",
        )
    return event


def _check_window(valid_from: datetime, valid_until: datetime) -> None:
    if valid_until <= valid_from:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="valid_until must be after valid_from",
        )


async def list_promo_codes(db: AsyncSession, user: User, event_id: Optional[int] = None) -> list[PromoCode]:
    owned_events = select(Event.id).where(Event.organizer_id == user.id)
    query = select(PromoCode).where(
        or_(PromoCode.created_by_id == user.id, PromoCode.event_id.in_(owned_events))
    )
    if event_id is not None:
        query = query.where(PromoCode.event_id == event_id)
    result = await db.execute(query.order_by(PromoCode.created_at.desc(), PromoCode.id.desc()))
    return list(result.scalars().all())


async def get_promo_code(db: AsyncSession, promo_id: int, user: User) -> PromoCode:
    result = await db.execute(
        select(PromoCode).where(PromoCode.id == promo_id).execution_options(populate_existing=True)
    )
    promo = result.scalar_one_or_none()
    if not promo:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Promo code not found",
        )
    if not _owns(promo, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not own this promo code",
        )
    return promo


async def create_promo_code(db: AsyncSession, data: PromoCodeCreate, user: User) -> PromoCode:
    code = normalize_code(data.code)
    _check_window(data.valid_from, data.valid_until)
    if data.event_id is not None:
        await _owned_event(db, data.event_id, user)

    existing = await db.execute(select(PromoCode.id).where(PromoCode.code == code))
    if existing.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Promo code already exists",
        )

    promo = PromoCode(
        code=code,
        description=data.description,
        discount_type=data.discount_type.value,
        discount_value=data.discount_value,
        max_uses=data.max_uses,
        current_uses=0,
        valid_from=data.valid_from,
        valid_until=data.valid_until,
        min_order_amount=data.min_order_amount,
        is_active=data.is_active,
        event_id=data.event_id,
        created_by_id=user.id,
    )
    db.add(promo)
    await db.flush()

    logger.info("promo_code_created", promo_code_id=promo.id, code=code, event_id=data.event_id)
    return await get_promo_code(db, promo.id, user)


async def update_promo_code(db: AsyncSession, promo_id: int, data: PromoCodeUpdate, user: User) -> PromoCode:
    promo = await get_promo_code(db, promo_id, user)
    changes = data.model_dump(exclude_unset=True)

    _check_window(changes.get("valid_from", promo.valid_from), changes.get("valid_until", promo.valid_until))

    discount_type = changes.get("discount_type", promo.discount_type)
    discount_value = changes.get("discount_value", promo.discount_value)
    if DiscountType(discount_type) == DiscountType.PERCENTAGE and discount_value > 100:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Percentage discount cannot exceed 100",
        )

    for field, value in changes.items():
        if isinstance(value, DiscountType):
            value = value.value
        setattr(promo, field, value)
    await db.flush()

    logger.info("promo_code_updated", promo_code_id=promo.id, fields=sorted(changes))
    return await get_promo_code(db, promo.id, user)


async def delete_promo_code(db: AsyncSession, promo_id: int, user: User) -> None:
    promo = await get_promo_code(db, promo_id, user)
    await db.delete(promo)
    await db.flush()
    logger.info("promo_code_deleted", promo_code_id=promo_id, code=promo.code)
