"""
Organizer revenue summary.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_organizer
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.payout import RevenueSummary
from ticketing.services import payout_service

router = APIRouter(prefix="/revenue", tags=["Organizer Revenue"])


@router.get("", response_model=RevenueSummary)
async def revenue(user: User = Depends(require_organizer), db: AsyncSession = Depends(get_db)):
    """Paid revenue broken down by event and ticket type."""
    return await payout_service.revenue_summary(db, user)
