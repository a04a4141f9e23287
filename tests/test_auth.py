"""
Tests for authentication endpoints: registration, login, sessions and roles.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from ticketing.db.base import utcnow
from ticketing.models.user import User


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient):
    """Successful registration returns a buyer account."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "New@Example.com",
        "password": "securepassword123",
        "name": "New Person",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["roles"] == ["BUYER"]
    assert "hashed_password" not in data  # Never expose password hash


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, buyer):
    """Duplicate email returns 409, whatever its case."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "BUYER@example.com",
        "password": "securepassword123",
    })
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_duplicate_phone(client: AsyncClient):
    first = await client.post("/api/v1/auth/register", json={
        "email": "one@example.com", "password": "securepassword123", "phone": "+2348000000001",
    })
    assert first.status_code == 201

    second = await client.post("/api/v1/auth/register", json={
        "email": "two@example.com", "password": "securepassword123", "phone": "+2348000000001",
    })
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_register_short_password(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={
        "email": "short@example.com",
        "password": "abc",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, buyer):
    """Login returns a bearer token and sets the session cookie."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "buyer@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["active_role"] == "buyer"
    assert data["user"]["email"] == "buyer@example.com"
    assert "session" in response.cookies


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, buyer):
    response = await client.post("/api/v1/auth/login", json={
        "email": "buyer@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_nonexistent_user(client: AsyncClient):
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "whatever123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_failed_attempts_counted_then_reset(client: AsyncClient, buyer, session_factory):
    """Bad passwords are counted; a good login clears the counter."""
    for _ in range(2):
        await client.post("/api/v1/auth/login", json={
            "email": "buyer@example.com",
            "password": "wrongpassword",
        })
    async with session_factory() as session:
        assert (await session.get(User, buyer.id)).failed_login_attempts == 2

    response = await client.post("/api/v1/auth/login", json={
        "email": "buyer@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    async with session_factory() as session:
        user = await session.get(User, buyer.id)
        assert user.failed_login_attempts == 0
        assert user.last_login_at is not None


@pytest.mark.asyncio
async def test_suspended_account_cannot_login(client: AsyncClient, buyer, session_factory):
    async with session_factory() as session:
        user = await session.get(User, buyer.id)
        user.locked_until = utcnow() + timedelta(days=1)
        await session.commit()

    response = await client.post("/api/v1/auth/login", json={
        "email": "buyer@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_session_cookie_authenticates(client: AsyncClient, buyer):
    """After login the cookie alone identifies the user."""
    await client.post("/api/v1/auth/login", json={
        "email": "buyer@example.com",
        "password": "testpassword123",
    })

    session = await client.get("/api/v1/auth/session")
    assert session.status_code == 200
    assert session.json()["user_id"] == buyer.id
    assert session.json()["roles"] == ["BUYER"]

    me = await client.get("/api/v1/users/me")
    assert me.status_code == 200
    assert me.json()["email"] == "buyer@example.com"


@pytest.mark.asyncio
async def test_logout_ends_session(client: AsyncClient, buyer):
    await client.post("/api/v1/auth/login", json={
        "email": "buyer@example.com",
        "password": "testpassword123",
    })
    response = await client.post("/api/v1/auth/logout")
    assert response.status_code == 200

    client.cookies.clear()
    me = await client.get("/api/v1/users/me")
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_protected_endpoint_without_auth(client: AsyncClient):
    response = await client.get("/api/v1/users/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_protected_endpoint_with_invalid_token(client: AsyncClient):
    response = await client.get(
        "/api/v1/users/me",
        headers={"Authorization": "Bearer invalid.token.here"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_organizer_session_starts_in_organizer_context(client: AsyncClient, organizer):
    response = await client.post("/api/v1/auth/login", json={
        "email": "organizer@example.com",
        "password": "testpassword123",
    })
    assert response.json()["active_role"] == "organizer"

    switched = await client.post("/api/v1/auth/switch-role", json={"role": "buyer"})
    assert switched.status_code == 200
    assert switched.json()["active_role"] == "buyer"


@pytest.mark.asyncio
async def test_buyer_cannot_switch_to_organizer(client: AsyncClient, buyer):
    await client.post("/api/v1/auth/login", json={
        "email": "buyer@example.com",
        "password": "testpassword123",
    })
    response = await client.post("/api/v1/auth/switch-role", json={"role": "organizer"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_request_organizer_access(client: AsyncClient, buyer):
    """A buyer becomes an organizer; asking twice changes nothing."""
    await client.post("/api/v1/auth/login", json={
        "email": "buyer@example.com",
        "password": "testpassword123",
    })

    for _ in range(2):
        response = await client.post("/api/v1/auth/request-organizer", json={"business_name": "Ada Events"})
        assert response.status_code == 200
        data = response.json()
        assert data["roles"] == ["BUYER", "ORGANIZER"]
        assert data["organizer_profile"]["business_name"] == "Ada Events"
        assert data["organizer_profile"]["verification_status"] == "VERIFIED"

    session = await client.get("/api/v1/auth/session")
    assert session.json()["active_role"] == "organizer"
    assert "ORGANIZER" in session.json()["roles"]
