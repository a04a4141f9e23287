"""
Authentication endpoints: register, login/logout, session and role context.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.middleware import client_ip
from ticketing.api.deps import get_current_user
from ticketing.core.config import get_settings
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.common import MessageResponse
from ticketing.schemas.user import (
    UserCreate, UserResponse, UserLogin, LoginResponse, SessionResponse, SwitchRoleRequest, OrganizerRequest,
)
from ticketing.services import auth_service, session_service

settings = get_settings()
router = APIRouter(prefix="/auth", tags=["Authentication"])


def _session_response(session: dict) -> SessionResponse:
    return SessionResponse(
        user_id=session["user_id"],
        email=session["email"],
        name=session.get("name"),
        roles=session["roles"],
        active_role=session["active_role"],
        created_at=datetime.fromtimestamp(session["created_at"], tz=timezone.utc),
        last_activity=datetime.fromtimestamp(session["last_activity"], tz=timezone.utc),
    )


def _require_session(request: Request) -> tuple[str, dict]:
    session_id = getattr(request.state, "session_id", None)
    session = getattr(request.state, "session", None)
    if not session_id or session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No active session",
        )
    return session_id, session


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new buyer account."""
    return await auth_service.register_user(db, user_data)


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: UserLogin,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate, open a cookie session and receive a bearer token.
    Browsers use the HTTP-only cookie; API clients use the token.
    """
    user, session_id, token, session = await auth_service.login(
        db,
        login_data,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=session_service.session_ttl(session["roles"]),
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        path="/",
    )
    return LoginResponse(
        access_token=token,
        user=UserResponse.model_validate(user),
        active_role=session["active_role"],
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response):
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if session_id:
        await session_service.delete_session(session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return MessageResponse(message="Logged out")


@router.get("/session", response_model=SessionResponse)
async def get_session(request: Request, user: User = Depends(get_current_user)):
    """Current cookie session."""
    _, session = _require_session(request)
    return _session_response(session)


@router.post("/switch-role", response_model=SessionResponse)
async def switch_role(
    body: SwitchRoleRequest,
    request: Request,
    user: User = Depends(get_current_user),
):
    """Switch the dashboard context between buyer and organizer."""
    session_id, _ = _require_session(request)
    session = await auth_service.switch_role(session_id, user, body.role)
    return _session_response(session)


@router.post("/request-organizer", response_model=UserResponse)
async def request_organizer(
    body: OrganizerRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Become an organizer. Safe to call more than once."""
    session_id = getattr(request.state, "session_id", None)
    return await auth_service.request_organizer_access(db, user, body, session_id=session_id)
