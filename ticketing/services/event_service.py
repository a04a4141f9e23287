"""
Event service: public browsing and organizer event management.
"""

from datetime import datetime, date as date_type, time, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.db.base import utcnow
from ticketing.models.event import Event, TicketType, EventStatus, ON_SALE_STATUSES, PUBLIC_STATUSES
from ticketing.models.order import Order
from ticketing.models.reservation import InventoryReservation
from ticketing.models.user import User
from ticketing.schemas.event import EventCreate, EventUpdate, TicketTypeInput
from ticketing.core.config import get_settings
from ticketing.core.identifiers import slugify
from ticketing.core.logging import get_logger
from ticketing.services.strategy_factory import get_inventory_gate

logger = get_logger(__name__)
settings = get_settings()

SEARCH_LIMIT = 20

ALLOWED_TRANSITIONS = {
    EventStatus.DRAFT.value: {EventStatus.PUBLISHED.value, EventStatus.CANCELLED.value},
    EventStatus.PUBLISHED.value: {EventStatus.LIVE.value, EventStatus.CANCELLED.value, EventStatus.DRAFT.value},
    EventStatus.LIVE.value: {EventStatus.SOLD_OUT.value, EventStatus.COMPLETED.value, EventStatus.CANCELLED.value},
    EventStatus.SOLD_OUT.value: {EventStatus.COMPLETED.value, EventStatus.CANCELLED.value},
    EventStatus.CANCELLED.value: set(),
    EventStatus.COMPLETED.value: set(),
}


async def load_event(db: AsyncSession, event_id: int) -> Optional[Event]:
    """Fresh read of an event and its ticket types."""
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public browsing
# ---------------------------------------------------------------------------

async def list_public_events(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    city: Optional[str] = None,
    on_date: Optional[date_type] = None,
) -> tuple[list[Event], int]:
    """
    List on-sale events, soonest first.
    Uses the ix_events_status_start index for the status + date filter.
    """
    query = select(Event).where(Event.status.in_(ON_SALE_STATUSES))

    if on_date is not None:
        day_start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
        query = query.where(Event.start_at >= day_start, Event.start_at < day_start + timedelta(days=1))
    else:
        query = query.where(Event.start_at >= utcnow())

    if category:
        query = query.where(Event.category == category)
    if city:
        query = query.where(func.lower(Event.city) == city.lower())

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    result = await db.execute(
        query.order_by(Event.start_at.asc(), Event.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def search_events(db: AsyncSession, q: str) -> list[Event]:
    pattern = f"%{q.strip().lower()}%"
    result = await db.execute(
        select(Event)
        .where(
            Event.status.in_(ON_SALE_STATUSES),
            or_(
                func.lower(Event.title).like(pattern),
                func.lower(Event.description).like(pattern),
                func.lower(Event.venue_name).like(pattern),
                func.lower(Event.city).like(pattern),
            ),
        )
        .order_by(Event.start_at.asc())
        .limit(SEARCH_LIMIT)
    )
    return list(result.scalars().all())


async def get_public_event(db: AsyncSession, slug_or_id: str) -> Event:
    """Get a browsable event by slug, or by numeric id."""
    event = None
    if slug_or_id.isdigit():
        event = await load_event(db, int(slug_or_id))
    if event is None:
        result = await db.execute(select(Event).where(Event.slug == slug_or_id))
        event = result.scalar_one_or_none()

    if not event or event.status not in PUBLIC_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )
    return event


# ---------------------------------------------------------------------------
# Organizer management
# ---------------------------------------------------------------------------

def ensure_active_organizer(user: User) -> None:
    profile = user.organizer_profile
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organizer profile required",
        )
    if profile.is_suspended:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organizer account is suspended",
        )


async def get_organizer_event(db: AsyncSession, event_id: int, user: User) -> Event:
    event = await load_event(db, event_id)
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


def _validate_schedule(
    start_at: datetime,
    end_at: datetime,
    sale_start: Optional[datetime],
    sale_end: Optional[datetime],
) -> None:
    if end_at <= start_at:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event end must be after its start",
        )
    if sale_start and sale_end and sale_end < sale_start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ticket sales must end after they start",
        )
    if sale_end and sale_end > start_at:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ticket sales must end before the event starts",
        )


async def _unique_slug(db: AsyncSession, title: str, exclude_event_id: Optional[int] = None) -> str:
    base = slugify(title)
    candidate = base
    suffix = 0
    while True:
        query = select(Event.id).where(Event.slug == candidate)
        if exclude_event_id is not None:
            query = query.where(Event.id != exclude_event_id)
        if (await db.execute(query)).first() is None:
            return candidate
        suffix += 1
        candidate = f"{base}-{suffix}"


def _new_ticket_type(data: TicketTypeInput) -> TicketType:
    return TicketType(
        name=data.name,
        description=data.description,
        price=data.price,
        currency=settings.DEFAULT_CURRENCY,
        total_quantity=data.total_quantity,
        sold_quantity=0,
        reserved_quantity=0,
        min_per_order=data.min_per_order,
        max_per_order=data.max_per_order,
        version=1,
    )


async def create_event(db: AsyncSession, event_data: EventCreate, user: User) -> Event:
    """Create a DRAFT event with its ticket types."""
    ensure_active_organizer(user)
    _validate_schedule(event_data.start_at, event_data.end_at, event_data.sale_start, event_data.sale_end)

    event = Event(
        organizer_id=user.id,
        title=event_data.title,
        slug=await _unique_slug(db, event_data.title),
        description=event_data.description,
        category=event_data.category,
        venue_name=event_data.venue_name,
        venue_address=event_data.venue_address,
        city=event_data.city,
        start_at=event_data.start_at,
        end_at=event_data.end_at,
        sale_start=event_data.sale_start,
        sale_end=event_data.sale_end,
        status=EventStatus.DRAFT.value,
    )
    event.ticket_types = [_new_ticket_type(tt) for tt in event_data.ticket_types]
    db.add(event)
    await db.flush()

    logger.info(
        "event_created",
        event_id=event.id,
        slug=event.slug,
        ticket_types=len(event_data.ticket_types),
    )
    return await load_event(db, event.id)


async def _sync_ticket_types(db: AsyncSession, event: Event, desired: list[TicketTypeInput]) -> None:
    """
    Make the event's ticket types match `desired`.

    Ticket types with sold or reserved units can be edited but not removed,
    and their total can never drop below sold + reserved.
    """
    existing = {tt.id: tt for tt in event.ticket_types}
    keep_ids = {tt.id for tt in desired if tt.id is not None}

    unknown = keep_ids - set(existing)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Ticket type {sorted(unknown)[0]} does not belong to this event",
        )

    for tt_id, tt in existing.items():
        if tt_id in keep_ids:
            continue
        history = await db.execute(
            select(InventoryReservation.id).where(InventoryReservation.ticket_type_id == tt_id).limit(1)
        )
        if tt.sold_quantity > 0 or tt.reserved_quantity > 0 or history.first() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ticket type '{tt.name}' has sales and cannot be removed",
            )
        event.ticket_types.remove(tt)

    gate = get_inventory_gate()
    for data in desired:
        if data.id is None:
            event.ticket_types.append(_new_ticket_type(data))
            continue

        # Conditional update: never shrink below what is already sold or held
        result = await db.execute(
            update(TicketType)
            .where(
                TicketType.id == data.id,
                TicketType.sold_quantity + TicketType.reserved_quantity <= data.total_quantity,
            )
            .values(
                name=data.name,
                description=data.description,
                price=data.price,
                total_quantity=data.total_quantity,
                min_per_order=data.min_per_order,
                max_per_order=data.max_per_order,
                version=TicketType.version + 1,
            )
        )
        if result.rowcount == 0:
            tt = existing[data.id]
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    f"Ticket type '{tt.name}' already has "
                    f"{tt.sold_quantity + tt.reserved_quantity} sold or reserved tickets"
                ),
            )
        tt = existing[data.id]
        await gate.sync(tt.id, data.total_quantity - tt.sold_quantity - tt.reserved_quantity)


async def update_event(db: AsyncSession, event_id: int, event_data: EventUpdate, user: User) -> Event:
    ensure_active_organizer(user)
    event = await get_organizer_event(db, event_id, user)

    if event.status in (EventStatus.CANCELLED.value, EventStatus.COMPLETED.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot edit a {event.status.lower()} event",
        )

    changes = event_data.model_dump(exclude_unset=True, exclude={"ticket_types"})
    _validate_schedule(
        changes.get("start_at", event.start_at),
        changes.get("end_at", event.end_at),
        changes.get("sale_start", event.sale_start),
        changes.get("sale_end", event.sale_end),
    )

    if "title" in changes and changes["title"] != event.title:
        event.slug = await _unique_slug(db, changes["title"], exclude_event_id=event.id)
    for field, value in changes.items():
        setattr(event, field, value)

    if event_data.ticket_types is not None:
        await _sync_ticket_types(db, event, event_data.ticket_types)

    await db.flush()
    logger.info("event_updated", event_id=event.id, fields=sorted(changes))
    return await load_event(db, event.id)


async def update_event_status(db: AsyncSession, event_id: int, new_status: EventStatus, user: User) -> Event:
    ensure_active_organizer(user)
    event = await get_organizer_event(db, event_id, user)
    target = new_status.value

    if event.status == target:
        return event

    if target not in ALLOWED_TRANSITIONS[event.status]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot change event status from {event.status} to {target}",
        )

    if target == EventStatus.PUBLISHED.value and not event.ticket_types:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Add at least one ticket type before publishing",
        )

    previous = event.status
    event.status = target
    await db.flush()

    logger.info("event_status_changed", event_id=event.id, from_status=previous, to_status=target)
    return await load_event(db, event.id)


async def list_organizer_events(
    db: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 20,
    status_filter: Optional[str] = None,
) -> tuple[list[Event], int]:
    query = select(Event).where(Event.organizer_id == user.id)
    if status_filter:
        query = query.where(Event.status == status_filter)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Event.start_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def list_event_orders(
    db: AsyncSession,
    event_id: int,
    user: User,
    page: int = 1,
    limit: int = 20,
    status_filter: Optional[str] = None,
) -> tuple[list[Order], int]:
    await get_organizer_event(db, event_id, user)

    query = select(Order).where(Order.event_id == event_id)
    if status_filter:
        query = query.where(Order.status == status_filter)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total
