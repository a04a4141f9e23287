"""
Pydantic schemas for users, sessions and organizer profiles.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, min_length=7, max_length=32)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class OrganizerProfileResponse(BaseModel):
    id: int
    business_name: str
    business_type: Optional[str]
    description: Optional[str]
    website: Optional[str]
    verification_status: str
    bank_name: Optional[str] = None
    bank_account_name: Optional[str] = None
    payout_setup_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: int
    email: str
    name: Optional[str]
    phone: Optional[str]
    is_active: bool
    roles: list[str] = Field(default_factory=list, validation_alias=AliasChoices("role_names", "roles"))
    organizer_profile: Optional[OrganizerProfileResponse] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginResponse(Token):
    user: UserResponse
    active_role: str


class SessionResponse(BaseModel):
    user_id: int
    email: str
    name: Optional[str]
    roles: list[str]
    active_role: str
    created_at: datetime
    last_activity: datetime


class SwitchRoleRequest(BaseModel):
    role: Literal["buyer", "organizer"]


class OrganizerRequest(BaseModel):
    business_name: str = Field(..., min_length=2, max_length=255)
    business_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    website: Optional[str] = Field(None, max_length=255)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, min_length=7, max_length=32)
    business_name: Optional[str] = Field(None, min_length=2, max_length=255)
    business_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    website: Optional[str] = Field(None, max_length=255)
