"""
Public event endpoints with Redis caching on list operations.
"""

from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.event import EventResponse, EventListResponse
from ticketing.services.event_service import list_public_events, search_events, get_public_event
from ticketing.services.cache_service import get_cached_events, set_cached_events
from ticketing.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None, max_length=50),
    city: Optional[str] = Query(None, max_length=100),
    date: Optional[date_type] = Query(None, description="Only events starting on this day (UTC)"),
    db: AsyncSession = Depends(get_db),
):
    """
    List upcoming on-sale events with filters and pagination.
    Results are cached in Redis for 5 minutes.
    Cache is invalidated when events change or tickets are reserved.
    """
    date_key = date.isoformat() if date else None

    # Try cache first
    cached = await get_cached_events(page, limit, category, city, date_key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    # Cache miss - query database
    events, total = await list_public_events(db, page, limit, category=category, city=city, on_date=date)

    response = EventListResponse(
        items=[EventResponse.model_validate(e) for e in events],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
        cached=False,
    )

    # Store in cache for next request
    await set_cached_events(page, limit, category, city, date_key, response.model_dump(mode="json"))

    return response


@router.get("/search", response_model=list[EventResponse])
async def search_events_endpoint(
    q: str = Query(..., min_length=1, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    """Search on-sale events by title, description, venue or city."""
    return await search_events(db, q)


@router.get("/{slug_or_id}", response_model=EventResponse)
async def get_event_endpoint(
    slug_or_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by slug or ID. Not cached (needs real-time ticket counts)."""
    return await get_public_event(db, slug_or_id)
