"""
Organizer balances, payouts and revenue reporting.

BALANCE MODEL
=============

Revenue is the total of the organizer's PAID orders. Each order carries:
  - a Paystack fee: 1.5% of the order + 100 fixed
  - a platform fee: 3.5%, but only on tickets beyond the organizer's first
    100 sold (an order straddling the threshold pays pro-rata per ticket)

Orders are walked oldest first so the free-ticket allowance is used up in
sale order. Net revenue from orders younger than the hold period (7 days)
is pending. Everything already paid out, or on its way out, is deducted:

  available = revenue - fees - pending_net - payouts(PENDING|PROCESSING|COMPLETED)

floored at zero.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.db.base import utcnow
from ticketing.models.event import Event, TicketType
from ticketing.models.order import Order, OrderStatus
from ticketing.models.payout import Payout, PayoutStatus, COMMITTED_PAYOUT_STATUSES
from ticketing.models.user import User, OrganizerProfile
from ticketing.schemas.payout import BankAccountSetup
from ticketing.core.config import get_settings
from ticketing.core.identifiers import generate_payout_reference
from ticketing.core.logging import get_logger
from ticketing.services.interfaces.payment_gateway import PaymentGateway, PaymentGatewayError

logger = get_logger(__name__)
settings = get_settings()

CENT = Decimal("0.01")
HUNDRED = Decimal(100)


@dataclass
class PaidOrder:
    amount: Decimal
    tickets: int
    created_at: datetime


def _round(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def order_fees(amount: Decimal, tickets: int, tickets_sold_before: int) -> tuple[Decimal, Decimal]:
    """Return (platform_fee, paystack_fee) for one paid order."""
    paystack_fee = amount * settings.PAYSTACK_FEE_PERCENT / HUNDRED + settings.PAYSTACK_FIXED_FEE

    platform_fee = Decimal(0)
    free_left = max(0, settings.FREE_TICKETS_THRESHOLD - tickets_sold_before)
    chargeable = max(0, tickets - free_left)
    if chargeable and tickets:
        chargeable_amount = amount / tickets * chargeable
        platform_fee = chargeable_amount * settings.PAYOUT_PLATFORM_FEE_PERCENT / HUNDRED

    return platform_fee, paystack_fee


def compute_balance(
    orders: Iterable[PaidOrder],
    committed_payouts: Decimal,
    now: Optional[datetime] = None,
) -> dict:
    now = now or utcnow()
    hold_cutoff = now - timedelta(days=settings.PAYOUT_HOLD_DAYS)

    revenue = platform_fees = paystack_fees = Decimal(0)
    pending_revenue = pending_fees = Decimal(0)
    tickets_sold = 0

    for order in sorted(orders, key=lambda o: o.created_at):
        amount = Decimal(order.amount)
        platform_fee, paystack_fee = order_fees(amount, order.tickets, tickets_sold)
        revenue += amount
        platform_fees += platform_fee
        paystack_fees += paystack_fee
        tickets_sold += order.tickets

        if order.created_at >= hold_cutoff:
            pending_revenue += amount
            pending_fees += platform_fee + paystack_fee

    total_fees = platform_fees + paystack_fees
    pending = max(Decimal(0), pending_revenue - pending_fees)
    available = max(Decimal(0), revenue - total_fees - pending - committed_payouts)

    return {
        "total_revenue": _round(revenue),
        "platform_fees": _round(platform_fees),
        "paystack_fees": _round(paystack_fees),
        "total_fees": _round(total_fees),
        "net_revenue": _round(revenue - total_fees),
        "pending_balance": _round(pending),
        "total_payouts": _round(committed_payouts),
        "available_balance": _round(available),
        "tickets_sold": tickets_sold,
        "free_tickets_remaining": max(0, settings.FREE_TICKETS_THRESHOLD - tickets_sold),
        "currency": settings.DEFAULT_CURRENCY,
    }


async def get_balance(db: AsyncSession, organizer_id: int, now: Optional[datetime] = None) -> dict:
    result = await db.execute(
        select(Order.total_amount, Order.quantity, Order.created_at)
        .join(Event, Order.event_id == Event.id)
        .where(Event.organizer_id == organizer_id, Order.status == OrderStatus.PAID.value)
        .order_by(Order.created_at.asc(), Order.id.asc())
    )
    orders = [PaidOrder(amount=row.total_amount, tickets=row.quantity, created_at=row.created_at) for row in result]

    committed = (
        await db.execute(
            select(func.coalesce(func.sum(Payout.amount), 0)).where(
                Payout.organizer_id == organizer_id,
                Payout.status.in_(COMMITTED_PAYOUT_STATUSES),
            )
        )
    ).scalar()

    return compute_balance(orders, Decimal(committed), now=now)


async def _locked_profile(db: AsyncSession, user: User) -> OrganizerProfile:
    # Row lock serializes payout requests per organizer (no-op on SQLite)
    result = await db.execute(
        select(OrganizerProfile)
        .where(OrganizerProfile.user_id == user.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organizer profile required",
        )
    if profile.is_suspended:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organizer account is suspended",
        )
    return profile


async def setup_bank_account(
    db: AsyncSession, user: User, data: BankAccountSetup, gateway: PaymentGateway
) -> dict:
    """Register the organizer's bank account as a Paystack transfer recipient."""
    profile = await _locked_profile(db, user)

    account_number = data.account_number.strip()
    if len(account_number) != 10 or not account_number.isdigit():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account number must be exactly 10 digits",
        )

    try:
        recipient = await gateway.create_transfer_recipient(
            name=data.account_name,
            account_number=account_number,
            bank_code=data.bank_code,
            currency=settings.DEFAULT_CURRENCY,
        )
    except PaymentGatewayError as e:
        logger.error("bank_account_setup_failed", user_id=user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to set up bank account: {e}",
        )

    details = recipient.get("details") or {}
    profile.payout_recipient_code = recipient["recipient_code"]
    profile.bank_account_number = account_number
    profile.bank_code = data.bank_code
    profile.bank_name = data.bank_name or details.get("bank_name")
    profile.bank_account_name = details.get("account_name") or data.account_name
    profile.payout_setup_at = utcnow()
    await db.flush()

    logger.info("bank_account_setup", user_id=user.id, bank_code=data.bank_code)
    return {
        "recipient_code": profile.payout_recipient_code,
        "account_number": account_number,
        "bank_code": profile.bank_code,
        "bank_name": profile.bank_name,
        "account_name": profile.bank_account_name,
    }


async def request_payout(db: AsyncSession, user: User, amount: Decimal, gateway: PaymentGateway) -> Payout:
    """
    Withdraw from the available balance.
    The transfer is started right away; its outcome arrives by webhook.
    """
    profile = await _locked_profile(db, user)
    amount = _round(amount)

    if not profile.payout_recipient_code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Set up a bank account before requesting a payout",
        )
    if amount < settings.MINIMUM_PAYOUT_AMOUNT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Minimum payout amount is {settings.MINIMUM_PAYOUT_AMOUNT}",
        )

    balance = await get_balance(db, user.id)
    if amount > balance["available_balance"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Insufficient balance. Available: {balance['available_balance']}",
        )

    payout = Payout(
        organizer_id=user.id,
        amount=amount,
        currency=settings.DEFAULT_CURRENCY,
        status=PayoutStatus.PENDING.value,
        reference=generate_payout_reference(),
        bank_account={
            "account_number": profile.bank_account_number,
            "bank_code": profile.bank_code,
            "bank_name": profile.bank_name,
            "account_name": profile.bank_account_name,
        },
    )
    db.add(payout)
    await db.flush()
    logger.info("payout_requested", payout_id=payout.id, organizer_id=user.id, amount=str(amount))

    try:
        await gateway.initiate_transfer(
            amount_minor=int(amount * 100),
            recipient_code=profile.payout_recipient_code,
            reason=f"Payout {payout.reference}",
            reference=payout.reference,
        )
        payout.status = PayoutStatus.PROCESSING.value
        logger.info("payout_transfer_initiated", payout_id=payout.id, reference=payout.reference)
    except PaymentGatewayError as e:
        payout.status = PayoutStatus.FAILED.value
        payout.failure_reason = str(e)[:500]
        logger.error("payout_transfer_failed", payout_id=payout.id, error=str(e))

    await db.flush()
    return await get_payout(db, user, payout.id)


async def list_payouts(
    db: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 20,
    status_filter: Optional[str] = None,
) -> tuple[list[Payout], int]:
    query = select(Payout).where(Payout.organizer_id == user.id)
    if status_filter:
        query = query.where(Payout.status == status_filter)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Payout.created_at.desc(), Payout.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def get_payout(db: AsyncSession, user: User, payout_id: int) -> Payout:
    result = await db.execute(
        select(Payout)
        .where(Payout.id == payout_id, Payout.organizer_id == user.id)
        .execution_options(populate_existing=True)
    )
    payout = result.scalar_one_or_none()
    if not payout:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payout not found",
        )
    return payout


async def handle_transfer_event(db: AsyncSession, event: str, data: dict) -> Optional[Payout]:
    """Apply a transfer.success / transfer.failed / transfer.reversed webhook."""
    reference = data.get("reference")
    result = await db.execute(select(Payout).where(Payout.reference == reference))
    payout = result.scalar_one_or_none()
    if payout is None:
        logger.warning("transfer_payout_not_found", webhook_event=event, reference=reference)
        return None

    if payout.status in (PayoutStatus.COMPLETED.value, PayoutStatus.FAILED.value):
        logger.info("transfer_already_final", payout_id=payout.id, status=payout.status)
        return payout

    if event == "transfer.success":
        payout.status = PayoutStatus.COMPLETED.value
        payout.processed_at = utcnow()
    elif event in ("transfer.failed", "transfer.reversed"):
        payout.status = PayoutStatus.FAILED.value
        payout.failure_reason = (data.get("reason") or data.get("failures") or event)
        if not isinstance(payout.failure_reason, str):
            payout.failure_reason = str(payout.failure_reason)
        payout.failure_reason = payout.failure_reason[:500]
        payout.processed_at = utcnow()
    else:
        logger.info("transfer_event_ignored", webhook_event=event, payout_id=payout.id)
        return payout

    await db.flush()
    logger.info("payout_status_changed", payout_id=payout.id, status=payout.status, webhook_event=event)
    return payout


async def revenue_summary(db: AsyncSession, user: User) -> dict:
    """Paid revenue per event and per ticket type."""
    paid = (Order.status == OrderStatus.PAID.value)

    event_rows = await db.execute(
        select(
            Event.id,
            Event.title,
            Event.status,
            func.count(Order.id),
            func.coalesce(func.sum(Order.quantity), 0),
            func.coalesce(func.sum(Order.total_amount), 0),
        )
        .outerjoin(Order, (Order.event_id == Event.id) & paid)
        .where(Event.organizer_id == user.id)
        .group_by(Event.id, Event.title, Event.status)
        .order_by(Event.start_at.desc())
    )

    type_rows = await db.execute(
        select(
            TicketType.event_id,
            TicketType.id,
            TicketType.name,
            func.coalesce(func.sum(Order.quantity), 0),
            func.coalesce(func.sum(Order.total_amount), 0),
        )
        .join(Event, TicketType.event_id == Event.id)
        .outerjoin(Order, (Order.ticket_type_id == TicketType.id) & paid)
        .where(Event.organizer_id == user.id)
        .group_by(TicketType.event_id, TicketType.id, TicketType.name)
        .order_by(TicketType.id)
    )
    by_event: dict[int, list] = {}
    for event_id, tt_id, name, sold, revenue in type_rows:
        by_event.setdefault(event_id, []).append(
            {"ticket_type_id": tt_id, "name": name, "tickets_sold": int(sold), "revenue": _round(revenue)}
        )

    events = []
    for event_id, title, event_status, orders, sold, revenue in event_rows:
        events.append(
            {
                "event_id": event_id,
                "title": title,
                "status": event_status,
                "orders": orders,
                "tickets_sold": int(sold),
                "revenue": _round(revenue),
                "ticket_types": by_event.get(event_id, []),
            }
        )

    return {
        "total_revenue": _round(sum((e["revenue"] for e in events), Decimal(0))),
        "total_tickets_sold": sum(e["tickets_sold"] for e in events),
        "total_orders": sum(e["orders"] for e in events),
        "events": events,
    }
