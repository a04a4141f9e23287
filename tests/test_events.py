"""
Tests for public event browsing and organizer event management.
"""

import pytest
from datetime import datetime, timezone, timedelta
from httpx import AsyncClient


def _event_payload(**overrides) -> dict:
    start = datetime.now(timezone.utc) + timedelta(days=30)
    payload = {
        "title": "Python Conference 2026",
        "description": "Annual Python gathering",
        "category": "tech",
        "venue_name": "Landmark Centre",
        "city": "Lagos",
        "start_at": start.isoformat(),
        "end_at": (start + timedelta(hours=8)).isoformat(),
        "ticket_types": [
            {"name": "Early Bird", "price": "2500.00", "total_quantity": 100, "max_per_order": 5},
            {"name": "Regular", "price": "5000.00", "total_quantity": 400},
        ],
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# Public browsing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_events(client: AsyncClient, event):
    """Published events appear in the public listing."""
    response = await client.get("/api/v1/events/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["slug"] == "lagos-jazz-night"
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_list_events_pagination(client: AsyncClient, event):
    response = await client.get("/api/v1/events/?page=1&limit=5")
    assert response.status_code == 200
    data = response.json()
    assert data["page"] == 1
    assert data["limit"] == 5
    assert data["total_pages"] == 1


@pytest.mark.asyncio
async def test_list_events_filters(client: AsyncClient, event):
    """City matches case-insensitively; category must match exactly."""
    by_city = await client.get("/api/v1/events/?city=lagos")
    assert by_city.json()["total"] == 1

    other_city = await client.get("/api/v1/events/?city=Abuja")
    assert other_city.json()["total"] == 0

    other_category = await client.get("/api/v1/events/?category=sports")
    assert other_category.json()["total"] == 0


@pytest.mark.asyncio
async def test_draft_events_are_hidden(client: AsyncClient, organizer_headers):
    created = await client.post("/api/v1/organizer/events/", json=_event_payload(), headers=organizer_headers)
    assert created.status_code == 201

    listing = await client.get("/api/v1/events/")
    assert listing.json()["total"] == 0

    detail = await client.get(f"/api/v1/events/{created.json()['slug']}")
    assert detail.status_code == 404


@pytest.mark.asyncio
async def test_get_event_by_id_and_slug(client: AsyncClient, event):
    by_id = await client.get(f"/api/v1/events/{event.id}")
    assert by_id.status_code == 200
    assert by_id.json()["title"] == "Lagos Jazz Night"
    assert len(by_id.json()["ticket_types"]) == 3

    by_slug = await client.get("/api/v1/events/lagos-jazz-night")
    assert by_slug.status_code == 200
    assert by_slug.json()["id"] == event.id


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient):
    response = await client.get("/api/v1/events/99999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_search_events(client: AsyncClient, event):
    found = await client.get("/api/v1/events/search?q=JAZZ")
    assert found.status_code == 200
    assert [e["id"] for e in found.json()] == [event.id]

    by_venue = await client.get("/api/v1/events/search?q=kulture")
    assert len(by_venue.json()) == 1

    missing = await client.get("/api/v1/events/search?q=opera")
    assert missing.json() == []


# ---------------------------------------------------------------------------
# Organizer management
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, organizer_headers):
    """Organizers create DRAFT events with their ticket types."""
    response = await client.post("/api/v1/organizer/events/", json=_event_payload(), headers=organizer_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Python Conference 2026"
    assert data["slug"] == "python-conference-2026"
    assert data["status"] == "DRAFT"
    assert [tt["name"] for tt in data["ticket_types"]] == ["Early Bird", "Regular"]
    assert data["ticket_types"][0]["available_quantity"] == 100


@pytest.mark.asyncio
async def test_create_event_slug_is_unique(client: AsyncClient, organizer_headers):
    first = await client.post("/api/v1/organizer/events/", json=_event_payload(), headers=organizer_headers)
    second = await client.post("/api/v1/organizer/events/", json=_event_payload(), headers=organizer_headers)
    assert first.json()["slug"] == "python-conference-2026"
    assert second.json()["slug"] == "python-conference-2026-1"


@pytest.mark.asyncio
async def test_create_event_unauthenticated(client: AsyncClient):
    response = await client.post("/api/v1/organizer/events/", json=_event_payload())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_requires_organizer_role(client: AsyncClient, buyer_headers):
    response = await client.post("/api/v1/organizer/events/", json=_event_payload(), headers=buyer_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_event_end_before_start(client: AsyncClient, organizer_headers):
    start = datetime.now(timezone.utc) + timedelta(days=30)
    response = await client.post(
        "/api/v1/organizer/events/",
        json=_event_payload(start_at=start.isoformat(), end_at=(start - timedelta(hours=1)).isoformat()),
        headers=organizer_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_event_sale_ends_after_start(client: AsyncClient, organizer_headers):
    start = datetime.now(timezone.utc) + timedelta(days=30)
    response = await client.post(
        "/api/v1/organizer/events/",
        json=_event_payload(sale_end=(start + timedelta(hours=1)).isoformat()),
        headers=organizer_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_event_invalid_ticket_quantity(client: AsyncClient, organizer_headers):
    response = await client.post(
        "/api/v1/organizer/events/",
        json=_event_payload(ticket_types=[{"name": "Bad", "price": "10.00", "total_quantity": 0}]),
        headers=organizer_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_publish_requires_ticket_types(client: AsyncClient, organizer_headers):
    created = await client.post(
        "/api/v1/organizer/events/", json=_event_payload(ticket_types=[]), headers=organizer_headers
    )
    response = await client.patch(
        f"/api/v1/organizer/events/{created.json()['id']}/status",
        json={"status": "PUBLISHED"},
        headers=organizer_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_publish_then_browse(client: AsyncClient, organizer_headers):
    created = await client.post("/api/v1/organizer/events/", json=_event_payload(), headers=organizer_headers)
    event_id = created.json()["id"]

    published = await client.patch(
        f"/api/v1/organizer/events/{event_id}/status",
        json={"status": "PUBLISHED"},
        headers=organizer_headers,
    )
    assert published.status_code == 200
    assert published.json()["status"] == "PUBLISHED"

    listing = await client.get("/api/v1/events/")
    assert [e["id"] for e in listing.json()["items"]] == [event_id]


@pytest.mark.asyncio
async def test_invalid_status_transition(client: AsyncClient, organizer_headers):
    """DRAFT cannot jump straight to COMPLETED; CANCELLED is terminal."""
    created = await client.post("/api/v1/organizer/events/", json=_event_payload(), headers=organizer_headers)
    event_id = created.json()["id"]

    jump = await client.patch(
        f"/api/v1/organizer/events/{event_id}/status", json={"status": "COMPLETED"}, headers=organizer_headers
    )
    assert jump.status_code == 400

    await client.patch(
        f"/api/v1/organizer/events/{event_id}/status", json={"status": "CANCELLED"}, headers=organizer_headers
    )
    reopen = await client.patch(
        f"/api/v1/organizer/events/{event_id}/status", json={"status": "PUBLISHED"}, headers=organizer_headers
    )
    assert reopen.status_code == 400

    edit = await client.put(
        f"/api/v1/organizer/events/{event_id}", json={"title": "New Title"}, headers=organizer_headers
    )
    assert edit.status_code == 400


@pytest.mark.asyncio
async def test_update_event_fields(client: AsyncClient, organizer_headers, event):
    response = await client.put(
        f"/api/v1/organizer/events/{event.id}",
        json={"title": "Lagos Jazz Night Live", "city": "Ikeja"},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Lagos Jazz Night Live"
    assert data["slug"] == "lagos-jazz-night-live"
    assert data["city"] == "Ikeja"


@pytest.mark.asyncio
async def test_other_organizer_cannot_manage_event(client: AsyncClient, other_organizer_headers, event):
    detail = await client.get(f"/api/v1/organizer/events/{event.id}", headers=other_organizer_headers)
    assert detail.status_code == 403

    edit = await client.put(
        f"/api/v1/organizer/events/{event.id}", json={"title": "Hijacked"}, headers=other_organizer_headers
    )
    assert edit.status_code == 403


@pytest.mark.asyncio
async def test_update_ticket_types(client: AsyncClient, organizer_headers, event):
    """Existing types are edited by id, new ones added, unsold ones removed."""
    response = await client.put(
        f"/api/v1/organizer/events/{event.id}",
        json={
            "ticket_types": [
                {"id": event.regular, "name": "Regular", "price": "6000.00", "total_quantity": 20},
                {"name": "Table for 4", "price": "70000.00", "total_quantity": 5, "max_per_order": 1},
            ]
        },
        headers=organizer_headers,
    )
    assert response.status_code == 200
    types = {tt["name"]: tt for tt in response.json()["ticket_types"]}
    assert set(types) == {"Regular", "Table for 4"}
    assert types["Regular"]["price"] == 6000.0
    assert types["Regular"]["total_quantity"] == 20


@pytest.mark.asyncio
async def test_cannot_remove_ticket_type_with_sales(client: AsyncClient, organizer_headers, event, reserve):
    await reserve(event.id, event.vip, 1)

    response = await client.put(
        f"/api/v1/organizer/events/{event.id}",
        json={"ticket_types": [{"id": event.regular, "name": "Regular", "price": "5000.00", "total_quantity": 10}]},
        headers=organizer_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_cannot_shrink_below_held_units(client: AsyncClient, organizer_headers, event, reserve):
    await reserve(event.id, event.regular, 4)

    response = await client.put(
        f"/api/v1/organizer/events/{event.id}",
        json={
            "ticket_types": [
                {"id": event.regular, "name": "Regular", "price": "5000.00", "total_quantity": 3},
                {"id": event.vip, "name": "VIP", "price": "20000.00", "total_quantity": 2, "max_per_order": 2},
                {"id": event.free, "name": "Free", "price": "0.00", "total_quantity": 5, "max_per_order": 2},
            ]
        },
        headers=organizer_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_list_my_events(client: AsyncClient, organizer_headers, other_organizer_headers, event):
    mine = await client.get("/api/v1/organizer/events/", headers=organizer_headers)
    assert mine.status_code == 200
    assert mine.json()["total"] == 1

    theirs = await client.get("/api/v1/organizer/events/", headers=other_organizer_headers)
    assert theirs.json()["total"] == 0

    drafts = await client.get("/api/v1/organizer/events/?status=DRAFT", headers=organizer_headers)
    assert drafts.json()["total"] == 0
