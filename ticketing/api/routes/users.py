"""
Current-user endpoints: profile, order history and tickets.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import get_current_user
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.common import Page
from ticketing.schemas.order import OrderResponse
from ticketing.schemas.ticket import TicketResponse
from ticketing.schemas.user import UserResponse, ProfileUpdate
from ticketing.services import user_service
from ticketing.services.auth_service import get_user

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await get_user(db, user.id)


@router.put("/me/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_profile(db, user, body)


@router.get("/me/orders", response_model=Page[OrderResponse])
async def my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await user_service.list_user_orders(db, user, page, limit)
    return Page[OrderResponse].build([OrderResponse.model_validate(o) for o in orders], total, page, limit)


@router.get("/me/tickets", response_model=list[TicketResponse])
async def my_tickets(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Tickets bought by this account or with its email address."""
    return await user_service.list_user_tickets(db, user)
