from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_admin
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.admin import DashboardStats
from ticketing.services import admin_service

router = APIRouter(prefix="/dashboard", tags=["Admin"])


@router.get("", response_model=DashboardStats)
async def dashboard(_: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    """Platform-wide counts and paid revenue."""
    return await admin_service.dashboard_stats(db)
