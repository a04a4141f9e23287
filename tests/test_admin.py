"""
Tests for the admin console: dashboard, user and organizer moderation,
event moderation and order oversight.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from ticketing.models import Role
from ticketing.core.security import create_access_token

ADMIN_URL = "/api/v1/admin"


@pytest.mark.asyncio
async def test_admin_routes_need_admin(client: AsyncClient, buyer_headers, organizer_headers):
    assert (await client.get(f"{ADMIN_URL}/dashboard")).status_code == 401
    assert (await client.get(f"{ADMIN_URL}/dashboard", headers=buyer_headers)).status_code == 403
    assert (await client.get(f"{ADMIN_URL}/users/", headers=organizer_headers)).status_code == 403


@pytest.mark.asyncio
async def test_dashboard(client: AsyncClient, event, buyer, admin_headers, paid_order, checkout):
    await paid_order(event.id, event.regular, 2)
    await checkout(event.id, event.regular, 1)

    response = await client.get(f"{ADMIN_URL}/dashboard", headers=admin_headers)
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_users"] == 3
    assert stats["total_buyers"] == 3
    assert stats["total_organizers"] == 1
    assert stats["total_admins"] == 1
    assert stats["total_events"] == 1
    assert stats["published_events"] == 1
    assert stats["total_orders"] == 2
    assert stats["paid_orders"] == 1
    assert stats["tickets_sold"] == 2
    assert stats["total_revenue"] == 10750.0


@pytest.mark.asyncio
async def test_list_users(client: AsyncClient, buyer, organizer, admin_headers):
    everyone = (await client.get(f"{ADMIN_URL}/users/", headers=admin_headers)).json()
    assert everyone["total"] == 3

    organizers = (await client.get(f"{ADMIN_URL}/users/", params={"role": "ORGANIZER"}, headers=admin_headers)).json()
    assert [u["email"] for u in organizers["items"]] == ["organizer@example.com"]

    found = (await client.get(f"{ADMIN_URL}/users/", params={"search": "ada"}, headers=admin_headers)).json()
    assert [u["email"] for u in found["items"]] == ["buyer@example.com"]


@pytest.mark.asyncio
async def test_get_unknown_user(client: AsyncClient, admin_headers):
    response = await client.get(f"{ADMIN_URL}/users/9999", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_suspend_and_restore_user(client: AsyncClient, buyer, buyer_headers, admin_headers):
    suspended = await client.patch(
        f"{ADMIN_URL}/users/{buyer.id}/status", json={"suspended": True}, headers=admin_headers
    )
    assert suspended.status_code == 200
    assert suspended.json()["locked_until"] is not None

    blocked = await client.get("/api/v1/users/me", headers=buyer_headers)
    assert blocked.status_code == 403
    login = await client.post(
        "/api/v1/auth/login", json={"email": "buyer@example.com", "password": "testpassword123"}
    )
    assert login.status_code == 403

    restored = await client.patch(
        f"{ADMIN_URL}/users/{buyer.id}/status", json={"suspended": False}, headers=admin_headers
    )
    assert restored.json()["locked_until"] is None
    assert (await client.get("/api/v1/users/me", headers=buyer_headers)).status_code == 200


@pytest.mark.asyncio
async def test_admin_cannot_suspend_self(client: AsyncClient, admin, admin_headers):
    response = await client.patch(
        f"{ADMIN_URL}/users/{admin.id}/status", json={"suspended": True}, headers=admin_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_grant_and_revoke_roles(client: AsyncClient, buyer, admin_headers):
    granted = await client.post(
        f"{ADMIN_URL}/users/{buyer.id}/roles", json={"role": "ORGANIZER"}, headers=admin_headers
    )
    assert granted.status_code == 200
    assert sorted(granted.json()["roles"]) == ["BUYER", "ORGANIZER"]
    assert granted.json()["organizer_profile"]["verification_status"] == "VERIFIED"

    # Granting twice changes nothing
    again = await client.post(
        f"{ADMIN_URL}/users/{buyer.id}/roles", json={"role": "ORGANIZER"}, headers=admin_headers
    )
    assert sorted(again.json()["roles"]) == ["BUYER", "ORGANIZER"]

    organizer_token = {"Authorization": f"Bearer {create_access_token({'sub': str(buyer.id)})}"}
    assert (await client.get("/api/v1/organizer/events/", headers=organizer_token)).status_code == 200

    revoked = await client.delete(f"{ADMIN_URL}/users/{buyer.id}/roles/ORGANIZER", headers=admin_headers)
    assert revoked.status_code == 200
    assert revoked.json()["roles"] == ["BUYER"]
    assert (await client.get("/api/v1/organizer/events/", headers=organizer_token)).status_code == 403

    missing = await client.delete(f"{ADMIN_URL}/users/{buyer.id}/roles/ADMIN", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_admin_cannot_revoke_own_admin_role(client: AsyncClient, admin, admin_headers):
    response = await client.delete(f"{ADMIN_URL}/users/{admin.id}/roles/{Role.ADMIN.value}", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_organizer_verification(client: AsyncClient, event, organizer, organizer_headers, admin_headers):
    listed = (await client.get(f"{ADMIN_URL}/organizers/", headers=admin_headers)).json()
    assert listed["total"] == 1
    profile = listed["items"][0]
    assert profile["email"] == "organizer@example.com"
    assert profile["events_count"] == 1

    suspended = await client.patch(
        f"{ADMIN_URL}/organizers/{profile['id']}/verification", json={"status": "SUSPENDED"}, headers=admin_headers
    )
    assert suspended.status_code == 200
    assert suspended.json()["verification_status"] == "SUSPENDED"

    by_status = (
        await client.get(f"{ADMIN_URL}/organizers/", params={"status": "SUSPENDED"}, headers=admin_headers)
    ).json()
    assert by_status["total"] == 1

    start = datetime.now(timezone.utc) + timedelta(days=20)
    blocked = await client.post(
        "/api/v1/organizer/events/",
        json={
            "title": "Blocked Show",
            "venue_name": "Somewhere",
            "city": "Lagos",
            "start_at": start.isoformat(),
            "end_at": (start + timedelta(hours=2)).isoformat(),
            "ticket_types": [{"name": "GA", "price": "1000.00", "total_quantity": 10}],
        },
        headers=organizer_headers,
    )
    assert blocked.status_code == 403

    invalid = await client.patch(
        f"{ADMIN_URL}/organizers/{profile['id']}/verification", json={"status": "MAYBE"}, headers=admin_headers
    )
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_event_moderation(client: AsyncClient, event, admin_headers):
    response = await client.patch(
        f"{ADMIN_URL}/events/{event.id}/status", json={"status": "CANCELLED"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"

    public = (await client.get("/api/v1/events/")).json()
    assert public["total"] == 0

    cancelled = (
        await client.get(f"{ADMIN_URL}/events/", params={"status": "CANCELLED"}, headers=admin_headers)
    ).json()
    assert cancelled["total"] == 1

    found = (await client.get(f"{ADMIN_URL}/events/", params={"search": "jazz"}, headers=admin_headers)).json()
    assert found["items"][0]["id"] == event.id


@pytest.mark.asyncio
async def test_order_oversight(client: AsyncClient, event, paid_order, checkout, admin_headers):
    paid = await paid_order(event.id, event.regular, 1)
    await checkout(event.id, event.regular, 1, email="someone@example.com")

    everything = (await client.get(f"{ADMIN_URL}/orders/", headers=admin_headers)).json()
    assert everything["total"] == 2

    paid_only = (await client.get(f"{ADMIN_URL}/orders/", params={"status": "PAID"}, headers=admin_headers)).json()
    assert [o["id"] for o in paid_only["items"]] == [paid["id"]]

    by_email = (
        await client.get(f"{ADMIN_URL}/orders/", params={"search": "someone@"}, headers=admin_headers)
    ).json()
    assert by_email["total"] == 1

    detail = await client.get(f"{ADMIN_URL}/orders/{paid['id']}", headers=admin_headers)
    assert detail.status_code == 200
    assert len(detail.json()["tickets"]) == 1
