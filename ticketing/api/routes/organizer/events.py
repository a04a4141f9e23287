"""
Organizer event management: create, edit, publish, orders and door check-in.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_organizer
from ticketing.db.session import get_db
from ticketing.models.order import OrderStatus
from ticketing.models.event import EventStatus
from ticketing.models.user import User
from ticketing.schemas.common import Page
from ticketing.schemas.event import EventCreate, EventUpdate, EventStatusUpdate, EventResponse
from ticketing.schemas.order import OrderResponse
from ticketing.schemas.ticket import CheckInRequest, TicketResponse
from ticketing.services import event_service, ticket_service
from ticketing.services.cache_service import invalidate_event_cache

router = APIRouter(prefix="/events", tags=["Organizer Events"])


@router.get("/", response_model=Page[EventResponse])
async def list_my_events(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    events, total = await event_service.list_organizer_events(
        db, user, page, limit, status_filter.value if status_filter else None
    )
    return Page[EventResponse].build([EventResponse.model_validate(e) for e in events], total, page, limit)


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventCreate,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Create a DRAFT event. Publish it with the status endpoint."""
    event = await event_service.create_event(db, body, user)
    await invalidate_event_cache()
    return event


@router.get("/{event_id}", response_model=EventResponse)
async def get_my_event(
    event_id: int,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.get_organizer_event(db, event_id, user)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    body: EventUpdate,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.update_event(db, event_id, body, user)
    await invalidate_event_cache()
    return event


@router.patch("/{event_id}/status", response_model=EventResponse)
async def change_status(
    event_id: int,
    body: EventStatusUpdate,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.update_event_status(db, event_id, body.status, user)
    await invalidate_event_cache()
    return event


@router.get("/{event_id}/orders", response_model=Page[OrderResponse])
async def event_orders(
    event_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await event_service.list_event_orders(
        db, event_id, user, page, limit, status_filter.value if status_filter else None
    )
    return Page[OrderResponse].build([OrderResponse.model_validate(o) for o in orders], total, page, limit)


@router.post("/{event_id}/check-in", response_model=TicketResponse)
async def check_in(
    event_id: int,
    body: CheckInRequest,
    user: User = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Scan a ticket at the door by ticket number or QR payload."""
    await event_service.get_organizer_event(db, event_id, user)
    return await ticket_service.check_in_ticket(
        db, event_id, user, ticket_number=body.ticket_number, qr_payload=body.qr_payload
    )
