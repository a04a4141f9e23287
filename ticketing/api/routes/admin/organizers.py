"""
Admin organizer oversight and verification.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_admin
from ticketing.db.session import get_db
from ticketing.models.user import User, VerificationStatus
from ticketing.schemas.admin import OrganizerAdminResponse, VerificationUpdate
from ticketing.schemas.common import Page
from ticketing.services import admin_service

router = APIRouter(prefix="/organizers", tags=["Admin Organizers"])


@router.get("/", response_model=Page[OrganizerAdminResponse])
async def list_organizers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    verification_status: Optional[VerificationStatus] = Query(None, alias="status"),
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profiles, total = await admin_service.list_organizers(
        db, page, limit, verification_status.value if verification_status else None
    )
    return Page[OrganizerAdminResponse].build(
        [OrganizerAdminResponse.model_validate(p) for p in profiles], total, page, limit
    )


@router.get("/{profile_id}", response_model=OrganizerAdminResponse)
async def get_organizer(profile_id: int, _: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await admin_service.get_organizer(db, profile_id)


@router.patch("/{profile_id}/verification", response_model=OrganizerAdminResponse)
async def set_verification(
    profile_id: int,
    body: VerificationUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Verify or suspend an organizer. Suspended organizers cannot manage events."""
    return await admin_service.set_organizer_verification(db, profile_id, body.status, admin)
