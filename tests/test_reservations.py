"""
Tests for inventory reservations including concurrency scenarios.
"""

import asyncio
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from ticketing.db.base import utcnow
from ticketing.models import Event, EventStatus, InventoryReservation, Order, TicketType
from ticketing.services import reservation_service


async def _ticket_type(session_factory, ticket_type_id: int) -> TicketType:
    async with session_factory() as session:
        return await session.get(TicketType, ticket_type_id)


@pytest.mark.asyncio
async def test_check_availability(client: AsyncClient, event):
    response = await client.get(
        f"/api/v1/tickets/availability?event_id={event.id}&ticket_type_id={event.vip}&quantity=3"
    )
    assert response.status_code == 200
    data = response.json()
    assert data["available"] == 2
    assert data["can_reserve"] is False


@pytest.mark.asyncio
async def test_reserve_tickets(client: AsyncClient, event, session_factory):
    """A reservation moves units from available to reserved."""
    response = await client.post(
        "/api/v1/tickets/reserve",
        json={"event_id": event.id, "ticket_type_id": event.regular, "quantity": 3},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "ACTIVE"
    assert data["quantity"] == 3
    assert len(data["reservation_id"]) == 36

    ticket_type = await _ticket_type(session_factory, event.regular)
    assert ticket_type.reserved_quantity == 3
    assert ticket_type.sold_quantity == 0
    assert ticket_type.available_quantity == 7


@pytest.mark.asyncio
async def test_reservation_records_user(client: AsyncClient, event, buyer, buyer_headers, session_factory):
    response = await client.post(
        "/api/v1/tickets/reserve",
        json={"event_id": event.id, "ticket_type_id": event.regular, "quantity": 1},
        headers=buyer_headers,
    )
    async with session_factory() as session:
        reservation = (
            await session.execute(
                select(InventoryReservation).where(
                    InventoryReservation.reservation_id == response.json()["reservation_id"]
                )
            )
        ).scalar_one()
        assert reservation.user_id == buyer.id


@pytest.mark.asyncio
async def test_reserve_more_than_available(client: AsyncClient, event, reserve):
    """Asking for more than is left returns 409."""
    await reserve(event.id, event.vip, 2)

    response = await client.post(
        "/api/v1/tickets/reserve",
        json={"event_id": event.id, "ticket_type_id": event.vip, "quantity": 1},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_reserve_outside_per_order_limits(client: AsyncClient, event):
    response = await client.post(
        "/api/v1/tickets/reserve",
        json={"event_id": event.id, "ticket_type_id": event.regular, "quantity": 5},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_reserve_zero_quantity(client: AsyncClient, event):
    response = await client.post(
        "/api/v1/tickets/reserve",
        json={"event_id": event.id, "ticket_type_id": event.regular, "quantity": 0},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reserve_ticket_type_from_other_event(client: AsyncClient, event):
    response = await client.post(
        "/api/v1/tickets/reserve",
        json={"event_id": event.id + 1, "ticket_type_id": event.regular, "quantity": 1},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reserve_when_not_on_sale(client: AsyncClient, event, session_factory):
    async with session_factory() as session:
        record = await session.get(Event, event.id)
        record.status = EventStatus.DRAFT.value
        await session.commit()

    response = await client.post(
        "/api/v1/tickets/reserve",
        json={"event_id": event.id, "ticket_type_id": event.regular, "quantity": 1},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_reserve_before_sales_open(client: AsyncClient, event, session_factory):
    async with session_factory() as session:
        record = await session.get(Event, event.id)
        record.sale_start = utcnow() + timedelta(days=1)
        await session.commit()

    response = await client.post(
        "/api/v1/tickets/reserve",
        json={"event_id": event.id, "ticket_type_id": event.regular, "quantity": 1},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_release_reservation(client: AsyncClient, event, reserve, session_factory):
    """Releasing gives the units back; releasing twice is rejected."""
    reservation = await reserve(event.id, event.regular, 2)

    response = await client.post("/api/v1/tickets/release", json={"reservation_id": reservation["reservation_id"]})
    assert response.status_code == 200
    assert response.json()["status"] == "RELEASED"

    ticket_type = await _ticket_type(session_factory, event.regular)
    assert ticket_type.reserved_quantity == 0

    again = await client.post("/api/v1/tickets/release", json={"reservation_id": reservation["reservation_id"]})
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_release_unknown_reservation(client: AsyncClient):
    response = await client.post(
        "/api/v1/tickets/release", json={"reservation_id": "00000000-0000-0000-0000-000000000000"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_release_cancels_pending_order(client: AsyncClient, event, checkout, session_factory):
    order = await checkout(event.id, event.regular, 1)
    async with session_factory() as session:
        reservation = (
            await session.execute(select(InventoryReservation).where(InventoryReservation.order_id == order["id"]))
        ).scalar_one()

    response = await client.post("/api/v1/tickets/release", json={"reservation_id": reservation.reservation_id})
    assert response.status_code == 200

    async with session_factory() as session:
        stored = await session.get(Order, order["id"])
        assert stored.status == "CANCELLED"
        assert stored.payment_status == "reservation_released"


@pytest.mark.asyncio
async def test_expire_stale_reservations(event, reserve, session_factory):
    """Lapsed holds go EXPIRED and their units return to stock."""
    reservation = await reserve(event.id, event.regular, 4)

    async with session_factory() as session:
        expired = await reservation_service.expire_stale_reservations(
            session, now=utcnow() + timedelta(minutes=11)
        )
        await session.commit()
    assert expired == 1

    async with session_factory() as session:
        stored = (
            await session.execute(
                select(InventoryReservation).where(
                    InventoryReservation.reservation_id == reservation["reservation_id"]
                )
            )
        ).scalar_one()
        assert stored.status == "EXPIRED"
        ticket_type = await session.get(TicketType, event.regular)
        assert ticket_type.reserved_quantity == 0

    # A second sweep finds nothing
    async with session_factory() as session:
        assert await reservation_service.expire_stale_reservations(
            session, now=utcnow() + timedelta(minutes=11)
        ) == 0


@pytest.mark.asyncio
async def test_unexpired_reservations_are_kept(event, reserve, session_factory):
    await reserve(event.id, event.regular, 1)
    async with session_factory() as session:
        assert await reservation_service.expire_stale_reservations(session) == 0


@pytest.mark.asyncio
async def test_expired_reservation_cannot_be_released(client: AsyncClient, event, reserve, session_factory):
    reservation = await reserve(event.id, event.regular, 1)
    async with session_factory() as session:
        await reservation_service.expire_stale_reservations(session, now=utcnow() + timedelta(minutes=11))
        await session.commit()

    response = await client.post("/api/v1/tickets/release", json={"reservation_id": reservation["reservation_id"]})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_concurrent_reservations_never_oversell(event, session_factory):
    """
    Several buyers race for the last VIP units, each in its own session.
    The counters must never exceed the total, whatever the interleaving.
    """

    async def attempt():
        async with session_factory() as session:
            try:
                await reservation_service.reserve_inventory(session, event.id, event.vip, 1)
                await session.commit()
                return True
            except Exception:
                await session.rollback()
                return False

    results = await asyncio.gather(*(attempt() for _ in range(6)))

    ticket_type = await _ticket_type(session_factory, event.vip)
    assert sum(results) == ticket_type.reserved_quantity
    assert ticket_type.reserved_quantity <= ticket_type.total_quantity
    assert ticket_type.reserved_quantity >= 1


async def _wait_for(condition, timeout: float = 2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not await condition():
        assert asyncio.get_running_loop().time() < deadline, "condition not met in time"
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_expiry_sweeper_expires_lapsed_holds(event, reserve, session_factory, monkeypatch):
    held = await reserve(event.id, event.regular, 3)
    async with session_factory() as session:
        await session.execute(
            update(InventoryReservation)
            .where(InventoryReservation.reservation_id == held["reservation_id"])
            .values(expires_at=utcnow() - timedelta(seconds=1))
        )
        await session.commit()

    invalidations = []

    async def fake_invalidate():
        invalidations.append(True)

    monkeypatch.setattr(reservation_service, "invalidate_event_cache", fake_invalidate)

    async def stock_returned():
        ticket_type = await _ticket_type(session_factory, event.regular)
        return ticket_type.reserved_quantity == 0

    sweeper = asyncio.create_task(reservation_service.run_expiry_sweeper(session_factory, 0.01))
    try:
        await _wait_for(stock_returned)
    finally:
        sweeper.cancel()

    with pytest.raises(asyncio.CancelledError):
        await sweeper

    async with session_factory() as session:
        reservation = (
            await session.execute(
                select(InventoryReservation).where(InventoryReservation.reservation_id == held["reservation_id"])
            )
        ).scalar_one()
        assert reservation.status == "EXPIRED"
    assert invalidations


@pytest.mark.asyncio
async def test_expiry_sweeper_survives_failed_sweep(session_factory, monkeypatch):
    calls = []

    async def flaky_expire(db, now=None):
        calls.append(now)
        if len(calls) == 1:
            raise RuntimeError("database went away")
        return 0

    monkeypatch.setattr(reservation_service, "expire_stale_reservations", flaky_expire)

    async def swept_twice():
        return len(calls) >= 2

    sweeper = asyncio.create_task(reservation_service.run_expiry_sweeper(session_factory, 0.01))
    try:
        await _wait_for(swept_twice)
        assert not sweeper.done()
    finally:
        sweeper.cancel()

    with pytest.raises(asyncio.CancelledError):
        await sweeper
