"""
Ticket endpoints: availability, reservation holds and transfers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import get_current_user, get_optional_user
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.reservation import (
    AvailabilityResponse, ReserveRequest, ReleaseRequest, ReservationResponse,
)
from ticketing.schemas.ticket import TicketTransferRequest, TicketTransferResponse, TicketResponse
from ticketing.services import reservation_service, ticket_service
from ticketing.services.cache_service import invalidate_event_cache

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("/availability", response_model=AvailabilityResponse)
async def availability(
    event_id: int = Query(...),
    ticket_type_id: int = Query(...),
    quantity: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_service.check_availability(db, event_id, ticket_type_id, quantity)


@router.post("/reserve", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def reserve(
    body: ReserveRequest,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Hold tickets for checkout.

    Uses optimistic locking to prevent overselling under concurrent load.
    The hold lapses after RESERVATION_TTL_MINUTES unless an order is paid.
    """
    reservation = await reservation_service.reserve_inventory(
        db, body.event_id, body.ticket_type_id, body.quantity, user_id=user.id if user else None
    )
    # Invalidate event list cache since available counts changed
    await invalidate_event_cache()
    return reservation


@router.post("/release", response_model=ReservationResponse)
async def release(body: ReleaseRequest, db: AsyncSession = Depends(get_db)):
    """Give held tickets back (checkout abandoned)."""
    reservation = await reservation_service.release_reservation(db, body.reservation_id)
    await invalidate_event_cache()
    return reservation


@router.post("/{ticket_id}/transfer", response_model=TicketTransferResponse)
async def transfer(
    ticket_id: int,
    body: TicketTransferRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    old_ticket, new_ticket = await ticket_service.transfer_ticket(db, ticket_id, user, body)
    return TicketTransferResponse(
        message=f"Ticket transferred to {new_ticket.attendee_email}",
        old_ticket=TicketResponse.model_validate(old_ticket),
        new_ticket=TicketResponse.model_validate(new_ticket),
    )
