"""
Authentication service: registration, login, role switching and organizer
onboarding.
"""

from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.db.base import utcnow
from ticketing.models.user import User, UserRole, OrganizerProfile, Role, VerificationStatus
from ticketing.schemas.user import UserCreate, UserLogin, OrganizerRequest
from ticketing.core.security import hash_password, verify_password, create_access_token
from ticketing.core.logging import get_logger
from ticketing.services import session_service

logger = get_logger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> User:
    """Load a user with roles and organizer profile, bypassing the identity map."""
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new buyer account with hashed password.
    Raises 409 if email or phone already exists.
    """
    email = user_data.email.lower()
    conditions = [User.email == email]
    if user_data.phone:
        conditions.append(User.phone == user_data.phone)
    result = await db.execute(select(User).where(or_(*conditions)))
    existing = result.scalars().first()
    if existing:
        reason = "email_exists" if existing.email == email else "phone_exists"
        logger.warning("registration_failed", reason=reason, email=email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered" if reason == "email_exists" else "Phone number already registered",
        )

    user = User(
        email=email,
        name=user_data.name,
        phone=user_data.phone,
        hashed_password=hash_password(user_data.password),
    )
    user.roles.append(UserRole(role=Role.BUYER.value))
    db.add(user)
    await db.flush()

    logger.info("user_registered", user_id=user.id, email=user.email)
    return await get_user(db, user.id)


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> User:
    """
    Check credentials and return the user.
    Raises 401 on bad credentials, 403 on a suspended or inactive account.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    if not user:
        logger.warning("login_failed", email=login_data.email, reason="unknown_email")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.is_locked():
        logger.warning("login_blocked", user_id=user.id, reason="suspended")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is suspended",
        )

    if not verify_password(login_data.password, user.hashed_password):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        # Persist the counter even though the request fails
        await db.commit()
        logger.warning("login_failed", user_id=user.id, attempts=user.failed_login_attempts)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    user.failed_login_attempts = 0
    user.last_login_at = utcnow()
    await db.flush()

    logger.info("user_logged_in", user_id=user.id)
    return user


async def login(
    db: AsyncSession,
    login_data: UserLogin,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> tuple[User, str, str, dict]:
    """Authenticate, open a session and mint a bearer token."""
    user = await authenticate_user(db, login_data)
    roles = user.role_names
    session_id = await session_service.create_session(
        user.id, user.email, user.name, roles, ip_address=ip_address, user_agent=user_agent
    )
    session = await session_service.get_session(session_id)
    token = create_access_token(data={"sub": str(user.id)})
    return user, session_id, token, session


async def switch_role(session_id: str, user: User, role: str) -> dict:
    if role == "organizer" and not user.has_role(Role.ORGANIZER):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have organizer access",
        )
    session = await session_service.update_session(session_id, active_role=role)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )
    logger.info("active_role_switched", user_id=user.id, role=role)
    return session


async def request_organizer_access(
    db: AsyncSession,
    user: User,
    data: OrganizerRequest,
    session_id: Optional[str] = None,
) -> User:
    """
    Grant ORGANIZER and create the organizer profile.
    Calling it again returns the existing grant unchanged.
    """
    if not user.has_role(Role.ORGANIZER):
        db.add(UserRole(user_id=user.id, role=Role.ORGANIZER.value))

    if user.organizer_profile is None:
        db.add(
            OrganizerProfile(
                user_id=user.id,
                business_name=data.business_name,
                business_type=data.business_type,
                description=data.description,
                website=data.website,
                verification_status=VerificationStatus.VERIFIED.value,
            )
        )
    await db.flush()

    user = await get_user(db, user.id)
    if session_id:
        await session_service.update_session(session_id, roles=user.role_names, active_role="organizer")

    logger.info("organizer_access_granted", user_id=user.id)
    return user
