"""
Admin user management: search, suspend and role changes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import require_admin
from ticketing.db.session import get_db
from ticketing.models.user import User, Role
from ticketing.schemas.admin import AdminUserResponse, RoleChangeRequest, UserStatusUpdate
from ticketing.schemas.common import Page
from ticketing.services import admin_service, auth_service

router = APIRouter(prefix="/users", tags=["Admin Users"])


@router.get("/", response_model=Page[AdminUserResponse])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[Role] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users, total = await admin_service.list_users(db, page, limit, role, search)
    return Page[AdminUserResponse].build([AdminUserResponse.model_validate(u) for u in users], total, page, limit)


@router.get("/{user_id}", response_model=AdminUserResponse)
async def get_user(user_id: int, _: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await auth_service.get_user(db, user_id)


@router.patch("/{user_id}/status", response_model=AdminUserResponse)
async def set_status(
    user_id: int,
    body: UserStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.set_user_suspended(db, user_id, body.suspended, admin)


@router.post("/{user_id}/roles", response_model=AdminUserResponse)
async def grant_role(
    user_id: int,
    body: RoleChangeRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.grant_role(db, user_id, body.role, admin)


@router.delete("/{user_id}/roles/{role}", response_model=AdminUserResponse)
async def revoke_role(
    user_id: int,
    role: Role,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.revoke_role(db, user_id, role, admin)
