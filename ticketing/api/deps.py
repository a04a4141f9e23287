"""
Request dependencies: database session, current user, role gates and the
payment gateway.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import get_settings
from ticketing.core.security import decode_access_token
from ticketing.db.session import get_db
from ticketing.infrastructure.paystack_client import PaystackGateway
from ticketing.models.user import User, Role
from ticketing.services import session_service
from ticketing.services.interfaces.payment_gateway import PaymentGateway

settings = get_settings()
bearer_scheme = HTTPBearer(auto_error=False)


async def _load_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Resolve the caller: session cookie first, then a Bearer token.
    Returns None for anonymous requests.
    """
    user_id = None

    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if session_id:
        session = await session_service.get_session(session_id)
        if session is not None:
            session = await session_service.touch_session(session_id, session)
            request.state.session_id = session_id
            request.state.session = session
            user_id = session["user_id"]

    if user_id is None and credentials is not None:
        payload = decode_access_token(credentials.credentials)
        if payload is None or "sub" not in payload:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        user_id = int(payload["sub"])

    if user_id is None:
        return None

    user = await _load_user(db, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    if user.is_locked():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is suspended",
        )
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_role(role: Role):
    """Dependency factory: 403 unless the current user holds `role`."""

    async def checker(user: User = Depends(get_current_user)) -> User:
        if not user.has_role(role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{role.value.title()} access required",
            )
        return user

    return checker


require_organizer = require_role(Role.ORGANIZER)
require_admin = require_role(Role.ADMIN)


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = PaystackGateway()
    return _gateway
