"""
Admin console operations: platform counts, user and organizer moderation,
event and order oversight.
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.db.base import utcnow
from ticketing.models.event import Event, EventStatus, ON_SALE_STATUSES
from ticketing.models.order import Order, OrderStatus
from ticketing.models.ticket import Ticket
from ticketing.models.user import User, UserRole, OrganizerProfile, Role, VerificationStatus
from ticketing.core.logging import get_logger
from ticketing.services.auth_service import get_user

logger = get_logger(__name__)

SUSPENSION_PERIOD = timedelta(days=365)


async def _count(db: AsyncSession, query) -> int:
    return (await db.execute(query)).scalar() or 0


def _role_count(role: Role):
    return select(func.count(UserRole.id)).where(UserRole.role == role.value)


async def dashboard_stats(db: AsyncSession) -> dict:
    paid = Order.status == OrderStatus.PAID.value

    return {
        "total_users": await _count(db, select(func.count(User.id))),
        "total_buyers": await _count(db, _role_count(Role.BUYER)),
        "total_organizers": await _count(db, _role_count(Role.ORGANIZER)),
        "total_admins": await _count(db, _role_count(Role.ADMIN)),
        "total_events": await _count(db, select(func.count(Event.id))),
        "published_events": await _count(
            db, select(func.count(Event.id)).where(Event.status.in_(ON_SALE_STATUSES))
        ),
        "total_orders": await _count(db, select(func.count(Order.id))),
        "paid_orders": await _count(db, select(func.count(Order.id)).where(paid)),
        "tickets_sold": await _count(
            db, select(func.count(Ticket.id)).join(Order, Ticket.order_id == Order.id).where(paid)
        ),
        "total_revenue": (
            await db.execute(select(func.coalesce(func.sum(Order.total_amount), 0)).where(paid))
        ).scalar(),
    }


async def _page(db: AsyncSession, query, order_by, page: int, limit: int) -> tuple[list, int]:
    total = await _count(db, select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.order_by(*order_by).offset((page - 1) * limit).limit(limit))
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def list_users(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    role: Optional[Role] = None,
    search: Optional[str] = None,
) -> tuple[list[User], int]:
    query = select(User)
    if role is not None:
        query = query.where(User.id.in_(select(UserRole.user_id).where(UserRole.role == role.value)))
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(
            or_(
                func.lower(User.email).like(pattern),
                func.lower(User.name).like(pattern),
                User.phone.like(pattern),
            )
        )
    return await _page(db, query, (User.created_at.desc(), User.id.desc()), page, limit)


async def set_user_suspended(db: AsyncSession, user_id: int, suspended: bool, admin: User) -> User:
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own account status",
        )
    user = await get_user(db, user_id)
    user.locked_until = utcnow() + SUSPENSION_PERIOD if suspended else None
    if not suspended:
        user.failed_login_attempts = 0
    await db.flush()

    logger.info("user_suspension_changed", user_id=user_id, suspended=suspended, admin_id=admin.id)
    return await get_user(db, user_id)


async def grant_role(db: AsyncSession, user_id: int, role: Role, admin: User) -> User:
    """Grant a role. Granting a role the user already holds changes nothing."""
    user = await get_user(db, user_id)
    if not user.has_role(role):
        db.add(UserRole(user_id=user.id, role=role.value, granted_by_id=admin.id))
        if role == Role.ORGANIZER and user.organizer_profile is None:
            db.add(
                OrganizerProfile(
                    user_id=user.id,
                    business_name=user.name or user.email,
                    verification_status=VerificationStatus.VERIFIED.value,
                )
            )
        await db.flush()
        logger.info("role_granted", user_id=user_id, role=role.value, admin_id=admin.id)
    return await get_user(db, user_id)


async def revoke_role(db: AsyncSession, user_id: int, role: Role, admin: User) -> User:
    if user_id == admin.id and role == Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot revoke your own admin role",
        )
    user = await get_user(db, user_id)
    if not user.has_role(role):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User does not have the {role.value} role",
        )
    await db.execute(delete(UserRole).where(UserRole.user_id == user_id, UserRole.role == role.value))
    await db.flush()

    logger.info("role_revoked", user_id=user_id, role=role.value, admin_id=admin.id)
    return await get_user(db, user_id)


# ---------------------------------------------------------------------------
# Organizers
# ---------------------------------------------------------------------------

async def _organizer_view(db: AsyncSession, profile: OrganizerProfile) -> dict:
    owner = await get_user(db, profile.user_id)
    events_count = await _count(db, select(func.count(Event.id)).where(Event.organizer_id == profile.user_id))
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "business_name": profile.business_name,
        "business_type": profile.business_type,
        "website": profile.website,
        "verification_status": profile.verification_status,
        "payout_setup_at": profile.payout_setup_at,
        "created_at": profile.created_at,
        "email": owner.email,
        "name": owner.name,
        "events_count": events_count,
    }


async def list_organizers(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    verification_status: Optional[str] = None,
) -> tuple[list[dict], int]:
    query = select(OrganizerProfile)
    if verification_status:
        query = query.where(OrganizerProfile.verification_status == verification_status)
    profiles, total = await _page(
        db, query, (OrganizerProfile.created_at.desc(), OrganizerProfile.id.desc()), page, limit
    )
    return [await _organizer_view(db, p) for p in profiles], total


async def _get_profile(db: AsyncSession, profile_id: int) -> OrganizerProfile:
    result = await db.execute(
        select(OrganizerProfile)
        .where(OrganizerProfile.id == profile_id)
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organizer not found",
        )
    return profile


async def get_organizer(db: AsyncSession, profile_id: int) -> dict:
    return await _organizer_view(db, await _get_profile(db, profile_id))


async def set_organizer_verification(db: AsyncSession, profile_id: int, new_status: str, admin: User) -> dict:
    profile = await _get_profile(db, profile_id)
    previous = profile.verification_status
    profile.verification_status = new_status
    await db.flush()

    logger.info(
        "organizer_verification_changed",
        profile_id=profile_id,
        from_status=previous,
        to_status=new_status,
        admin_id=admin.id,
    )
    return await _organizer_view(db, profile)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

async def list_events(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> tuple[list[Event], int]:
    query = select(Event)
    if status_filter:
        query = query.where(Event.status == status_filter)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(or_(func.lower(Event.title).like(pattern), func.lower(Event.city).like(pattern)))
    return await _page(db, query, (Event.created_at.desc(), Event.id.desc()), page, limit)


async def get_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Event {event_id} not found",
        )
    return event


async def moderate_event_status(db: AsyncSession, event_id: int, new_status: EventStatus, admin: User) -> Event:
    """Admins may move an event to any status."""
    event = await get_event(db, event_id)
    previous = event.status
    event.status = new_status.value
    await db.flush()

    logger.info(
        "event_moderated",
        event_id=event_id,
        from_status=previous,
        to_status=new_status.value,
        admin_id=admin.id,
    )
    return await get_event(db, event_id)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

async def list_orders(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> tuple[list[Order], int]:
    query = select(Order)
    if status_filter:
        query = query.where(Order.status == status_filter)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(
            or_(func.lower(Order.order_number).like(pattern), func.lower(Order.customer_email).like(pattern))
        )
    return await _page(db, query, (Order.created_at.desc(), Order.id.desc()), page, limit)
