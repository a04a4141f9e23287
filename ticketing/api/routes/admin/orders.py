from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_admin
from ticketing.db.session import get_db
from ticketing.models.order import OrderStatus
from ticketing.models.user import User
from ticketing.schemas.common import Page
from ticketing.schemas.order import OrderResponse
from ticketing.services import admin_service, order_service

router = APIRouter(prefix="/orders", tags=["Admin Orders"])


@router.get("/", response_model=Page[OrderResponse])
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await admin_service.list_orders(
        db, page, limit, status_filter.value if status_filter else None, search
    )
    return Page[OrderResponse].build([OrderResponse.model_validate(o) for o in orders], total, page, limit)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, _: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await order_service.get_order(db, order_id)
