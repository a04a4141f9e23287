"""
Buyer-facing account operations: profile, order history, tickets.
"""

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.models.user import User
from ticketing.models.order import Order
from ticketing.models.ticket import Ticket
from ticketing.schemas.user import ProfileUpdate
from ticketing.services.auth_service import get_user
from ticketing.core.logging import get_logger

logger = get_logger(__name__)

ORGANIZER_PROFILE_FIELDS = ("business_name", "business_type", "description", "website")


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
    changes = data.model_dump(exclude_unset=True)

    if changes.get("phone") and changes["phone"] != user.phone:
        result = await db.execute(
            select(User.id).where(User.phone == changes["phone"], User.id != user.id)
        )
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Phone number already registered",
            )

    for field in ("name", "phone"):
        if field in changes:
            setattr(user, field, changes[field])

    profile = user.organizer_profile
    if profile is not None:
        for field in ORGANIZER_PROFILE_FIELDS:
            if changes.get(field) is not None:
                setattr(profile, field, changes[field])

    await db.flush()
    logger.info("profile_updated", user_id=user.id, fields=sorted(changes))
    return await get_user(db, user.id)


def _owned_orders_clause(user: User):
    return or_(Order.user_id == user.id, func.lower(Order.customer_email) == user.email.lower())


async def list_user_orders(
    db: AsyncSession, user: User, page: int = 1, limit: int = 20
) -> tuple[list[Order], int]:
    query = select(Order).where(_owned_orders_clause(user))
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def list_user_tickets(db: AsyncSession, user: User) -> list[Ticket]:
    """Tickets on orders the user placed, or placed with the user's email."""
    result = await db.execute(
        select(Ticket)
        .join(Order, Ticket.order_id == Order.id)
        .where(_owned_orders_clause(user))
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
    )
    return list(result.scalars().all())
