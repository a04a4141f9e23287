"""
Order endpoints: checkout and order lookup.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.middleware import client_ip
from ticketing.api.deps import get_current_user, get_optional_user
from ticketing.db.session import get_db
from ticketing.models.user import User, Role
from ticketing.schemas.order import OrderCreate, OrderResponse
from ticketing.services import order_service
from ticketing.services.cache_service import invalidate_event_cache

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreate,
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an order on top of a reservation.
    Free orders come back already PAID with their tickets.
    """
    order = await order_service.create_order(
        db,
        body,
        user_id=user.id if user else None,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    if order.tickets:
        await invalidate_event_cache()
    return order


@router.get("/reference/{reference}", response_model=OrderResponse)
async def get_order_by_reference(reference: str, db: AsyncSession = Depends(get_db)):
    """Guest checkout lookup; the payment reference acts as the access key."""
    return await order_service.get_order_by_reference(db, reference)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order(db, order_id)
    is_owner = order.user_id == user.id or order.customer_email.lower() == user.email.lower()
    if not is_owner and not user.has_role(Role.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order {order_id} not found",
        )
    return order
