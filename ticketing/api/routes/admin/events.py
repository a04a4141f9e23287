from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_admin
from ticketing.db.session import get_db
from ticketing.models.event import EventStatus
from ticketing.models.user import User
from ticketing.schemas.admin import EventModerationRequest
from ticketing.schemas.common import Page
from ticketing.schemas.event import EventResponse
from ticketing.services import admin_service
from ticketing.services.cache_service import invalidate_event_cache

router = APIRouter(prefix="/events", tags=["Admin Events"])


@router.get("/", response_model=Page[EventResponse])
async def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    events, total = await admin_service.list_events(
        db, page, limit, status_filter.value if status_filter else None, search
    )
    return Page[EventResponse].build([EventResponse.model_validate(e) for e in events], total, page, limit)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: int, _: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await admin_service.get_event(db, event_id)


@router.patch("/{event_id}/status", response_model=EventResponse)
async def moderate_event(
    event_id: int,
    body: EventModerationRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await admin_service.moderate_event_status(db, event_id, body.status, admin)
    await invalidate_event_cache()
    return event
