"""
Pydantic schemas for the admin console.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from ticketing.models.event import EventStatus
from ticketing.models.user import Role
from ticketing.schemas.common import Money
from ticketing.schemas.user import UserResponse


class DashboardStats(BaseModel):
    total_users: int
    total_buyers: int
    total_organizers: int
    total_admins: int
    total_events: int
    published_events: int
    total_orders: int
    paid_orders: int
    tickets_sold: int
    total_revenue: Money


class AdminUserResponse(UserResponse):
    failed_login_attempts: int
    locked_until: Optional[datetime]


class RoleChangeRequest(BaseModel):
    role: Role


class OrganizerAdminResponse(BaseModel):
    id: int
    user_id: int
    business_name: str
    business_type: Optional[str]
    website: Optional[str]
    verification_status: str
    payout_setup_at: Optional[datetime]
    created_at: datetime
    email: str
    name: Optional[str]
    events_count: int = 0


class VerificationUpdate(BaseModel):
    status: Literal["VERIFIED", "SUSPENDED"]


class EventModerationRequest(BaseModel):
    status: EventStatus


class UserStatusUpdate(BaseModel):
    suspended: bool
