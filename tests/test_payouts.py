"""
Tests for organizer balances, bank account setup, payouts and revenue.
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from ticketing.db.base import utcnow
from ticketing.models import Order
from ticketing.services.payout_service import PaidOrder, compute_balance, order_fees

PAYOUTS_URL = "/api/v1/organizer/payouts"
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _aged(amount: str, tickets: int, days: int) -> PaidOrder:
    return PaidOrder(amount=Decimal(amount), tickets=tickets, created_at=NOW - timedelta(days=days))


def test_order_fees_within_free_allowance():
    platform_fee, paystack_fee = order_fees(Decimal("10000"), 2, tickets_sold_before=0)
    assert platform_fee == 0
    assert paystack_fee == Decimal("250")


def test_order_fees_straddling_free_allowance():
    """Only the tickets past the first 100 pay the 3.5% platform fee."""
    platform_fee, _ = order_fees(Decimal("2000"), 2, tickets_sold_before=99)
    assert platform_fee == Decimal("35")

    platform_fee, _ = order_fees(Decimal("2000"), 2, tickets_sold_before=150)
    assert platform_fee == Decimal("70")


def test_compute_balance_settled_orders():
    balance = compute_balance([_aged("10000", 2, 10)], Decimal(0), now=NOW)
    assert balance["total_revenue"] == Decimal("10000.00")
    assert balance["paystack_fees"] == Decimal("250.00")
    assert balance["platform_fees"] == Decimal("0.00")
    assert balance["pending_balance"] == Decimal("0.00")
    assert balance["available_balance"] == Decimal("9750.00")
    assert balance["free_tickets_remaining"] == 98


def test_compute_balance_holds_recent_revenue():
    balance = compute_balance([_aged("10000", 2, 10), _aged("5000", 1, 2)], Decimal(0), now=NOW)
    assert balance["pending_balance"] == Decimal("4825.00")
    assert balance["available_balance"] == Decimal("9750.00")
    assert balance["net_revenue"] == Decimal("14575.00")


def test_compute_balance_threshold_in_sale_order():
    """The free allowance is used by the oldest orders first, whatever the input order."""
    orders = [_aged("2000", 2, 8), _aged("99000", 99, 20)]
    balance = compute_balance(orders, Decimal(0), now=NOW)
    assert balance["platform_fees"] == Decimal("35.00")
    assert balance["tickets_sold"] == 101
    assert balance["free_tickets_remaining"] == 0


def test_compute_balance_deducts_committed_payouts():
    balance = compute_balance([_aged("10000", 2, 10)], Decimal("9000"), now=NOW)
    assert balance["total_payouts"] == Decimal("9000.00")
    assert balance["available_balance"] == Decimal("750.00")

    overdrawn = compute_balance([_aged("10000", 2, 10)], Decimal("20000"), now=NOW)
    assert overdrawn["available_balance"] == Decimal("0.00")


def test_compute_balance_no_orders():
    balance = compute_balance([], Decimal(0), now=NOW)
    assert balance["available_balance"] == Decimal("0.00")
    assert balance["free_tickets_remaining"] == 100


async def _age_orders(session_factory, days: int = 8):
    async with session_factory() as session:
        await session.execute(update(Order).values(created_at=utcnow() - timedelta(days=days)))
        await session.commit()


async def _setup_bank(client: AsyncClient, headers: dict) -> dict:
    response = await client.post(
        f"{PAYOUTS_URL}/setup",
        json={"account_number": "0123456789", "bank_code": "058", "account_name": "Olu Organizer"},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
async def test_balance_endpoint(client: AsyncClient, event, paid_order, organizer_headers, session_factory):
    await paid_order(event.id, event.vip, 2)

    fresh = (await client.get(f"{PAYOUTS_URL}/balance", headers=organizer_headers)).json()
    assert fresh["total_revenue"] == 42700.0
    assert fresh["paystack_fees"] == 740.5
    assert fresh["pending_balance"] == 41959.5
    assert fresh["available_balance"] == 0.0

    await _age_orders(session_factory)
    aged = (await client.get(f"{PAYOUTS_URL}/balance", headers=organizer_headers)).json()
    assert aged["pending_balance"] == 0.0
    assert aged["available_balance"] == 41959.5


@pytest.mark.asyncio
async def test_balance_ignores_other_organizers(client: AsyncClient, event, paid_order, other_organizer_headers):
    await paid_order(event.id, event.vip, 1)
    balance = (await client.get(f"{PAYOUTS_URL}/balance", headers=other_organizer_headers)).json()
    assert balance["total_revenue"] == 0.0


@pytest.mark.asyncio
async def test_setup_bank_account(client: AsyncClient, organizer_headers):
    account = await _setup_bank(client, organizer_headers)
    assert account["recipient_code"] == "RCP_0123456789"
    assert account["account_name"] == "OLU ORGANIZER"
    assert account["bank_name"] == "Test Bank"


@pytest.mark.asyncio
async def test_setup_bank_account_rejects_bad_number(client: AsyncClient, organizer_headers):
    response = await client.post(
        f"{PAYOUTS_URL}/setup",
        json={"account_number": "12345", "bank_code": "058", "account_name": "Olu Organizer"},
        headers=organizer_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_payout_requires_bank_account(client: AsyncClient, organizer_headers):
    response = await client.post(f"{PAYOUTS_URL}/request", json={"amount": 10000}, headers=organizer_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_payout_limits(client: AsyncClient, event, paid_order, organizer_headers, session_factory):
    await paid_order(event.id, event.vip, 2)
    await _age_orders(session_factory)
    await _setup_bank(client, organizer_headers)

    below_minimum = await client.post(f"{PAYOUTS_URL}/request", json={"amount": 5000}, headers=organizer_headers)
    assert below_minimum.status_code == 400

    too_much = await client.post(f"{PAYOUTS_URL}/request", json={"amount": 50000}, headers=organizer_headers)
    assert too_much.status_code == 400
    assert "Insufficient balance" in too_much.json()["detail"]


@pytest.mark.asyncio
async def test_payout_flow(client: AsyncClient, event, paid_order, organizer_headers, session_factory, gateway):
    await paid_order(event.id, event.vip, 2)
    await _age_orders(session_factory)
    await _setup_bank(client, organizer_headers)

    response = await client.post(f"{PAYOUTS_URL}/request", json={"amount": 30000}, headers=organizer_headers)
    assert response.status_code == 201
    payout = response.json()
    assert payout["status"] == "PROCESSING"
    assert payout["reference"].startswith("PO-")
    assert payout["bank_account"]["account_number"] == "0123456789"
    assert gateway.transfers[0]["amount"] == 3000000
    assert gateway.transfers[0]["recipient"] == "RCP_0123456789"

    balance = (await client.get(f"{PAYOUTS_URL}/balance", headers=organizer_headers)).json()
    assert balance["total_payouts"] == 30000.0
    assert balance["available_balance"] == 11959.5

    # The rest cannot be withdrawn twice
    again = await client.post(f"{PAYOUTS_URL}/request", json={"amount": 20000}, headers=organizer_headers)
    assert again.status_code == 400

    body = json.dumps({"event": "transfer.success", "data": {"reference": payout["reference"]}}).encode()
    webhook = await client.post(
        "/api/v1/webhooks/paystack", content=body, headers={"x-paystack-signature": gateway.sign(body)}
    )
    assert webhook.status_code == 200

    completed = (await client.get(f"{PAYOUTS_URL}/{payout['id']}", headers=organizer_headers)).json()
    assert completed["status"] == "COMPLETED"
    assert completed["processed_at"] is not None

    listed = (await client.get(f"{PAYOUTS_URL}/", headers=organizer_headers)).json()
    assert listed["total"] == 1


@pytest.mark.asyncio
async def test_failed_transfer_returns_funds(
    client: AsyncClient, event, paid_order, organizer_headers, session_factory, gateway
):
    await paid_order(event.id, event.vip, 2)
    await _age_orders(session_factory)
    await _setup_bank(client, organizer_headers)

    payout = (await client.post(f"{PAYOUTS_URL}/request", json={"amount": 30000}, headers=organizer_headers)).json()
    body = json.dumps(
        {"event": "transfer.failed", "data": {"reference": payout["reference"], "reason": "Account closed"}}
    ).encode()
    await client.post("/api/v1/webhooks/paystack", content=body, headers={"x-paystack-signature": gateway.sign(body)})

    failed = (await client.get(f"{PAYOUTS_URL}/{payout['id']}", headers=organizer_headers)).json()
    assert failed["status"] == "FAILED"
    assert failed["failure_reason"] == "Account closed"

    balance = (await client.get(f"{PAYOUTS_URL}/balance", headers=organizer_headers)).json()
    assert balance["available_balance"] == 41959.5


@pytest.mark.asyncio
async def test_transfer_rejected_by_gateway(
    client: AsyncClient, event, paid_order, organizer_headers, session_factory, gateway
):
    await paid_order(event.id, event.vip, 2)
    await _age_orders(session_factory)
    await _setup_bank(client, organizer_headers)
    gateway.fail_transfers = True

    response = await client.post(f"{PAYOUTS_URL}/request", json={"amount": 30000}, headers=organizer_headers)
    assert response.status_code == 201
    assert response.json()["status"] == "FAILED"
    assert response.json()["failure_reason"] == "Insufficient platform balance"


@pytest.mark.asyncio
async def test_payout_of_another_organizer(client: AsyncClient, event, paid_order, organizer_headers,
                                           other_organizer_headers, session_factory):
    await paid_order(event.id, event.vip, 2)
    await _age_orders(session_factory)
    await _setup_bank(client, organizer_headers)
    payout = (await client.post(f"{PAYOUTS_URL}/request", json={"amount": 10000}, headers=organizer_headers)).json()

    response = await client.get(f"{PAYOUTS_URL}/{payout['id']}", headers=other_organizer_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_revenue_summary(client: AsyncClient, event, paid_order, checkout, organizer_headers):
    await paid_order(event.id, event.regular, 2)
    await paid_order(event.id, event.vip, 1)
    await checkout(event.id, event.regular, 1)  # Unpaid, not counted

    response = await client.get("/api/v1/organizer/revenue", headers=organizer_headers)
    assert response.status_code == 200
    summary = response.json()
    assert summary["total_orders"] == 2
    assert summary["total_tickets_sold"] == 3
    assert summary["total_revenue"] == 10750.0 + 21400.0

    (jazz,) = summary["events"]
    by_type = {t["name"]: t for t in jazz["ticket_types"]}
    assert by_type["Regular"]["tickets_sold"] == 2
    assert by_type["VIP"]["revenue"] == 21400.0
    assert by_type["Free"]["tickets_sold"] == 0
