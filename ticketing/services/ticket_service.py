"""
Ticket issuing, transfer and check-in.
"""

import json
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.db.base import utcnow
from ticketing.models.order import Order
from ticketing.models.ticket import Ticket, TicketStatus
from ticketing.models.user import User
from ticketing.schemas.ticket import TicketTransferRequest
from ticketing.core.identifiers import generate_ticket_number
from ticketing.core.logging import get_logger

logger = get_logger(__name__)


def build_qr_payload(ticket_number: str, order: Order) -> str:
    return json.dumps(
        {
            "ticketNumber": ticket_number,
            "orderId": order.id,
            "eventId": order.event_id,
            "orderNumber": order.order_number,
        }
    )


def _attendee_for(order: Order, position: int) -> tuple[Optional[str], str, Optional[str]]:
    attendees = order.attendee_info or []
    if position < len(attendees):
        attendee = attendees[position]
        return (
            attendee.get("name") or order.customer_name,
            attendee.get("email") or order.customer_email,
            attendee.get("phone") or order.customer_phone,
        )
    return order.customer_name, order.customer_email, order.customer_phone


async def issue_tickets(db: AsyncSession, order: Order) -> list[Ticket]:
    """One VALID ticket per unit. Issuing twice for the same order is a no-op."""
    existing = await db.execute(select(func.count(Ticket.id)).where(Ticket.order_id == order.id))
    if existing.scalar() > 0:
        return []

    tickets = []
    for position in range(order.quantity):
        name, email, phone = _attendee_for(order, position)
        ticket_number = generate_ticket_number()
        ticket = Ticket(
            ticket_number=ticket_number,
            order_id=order.id,
            event_id=order.event_id,
            ticket_type_id=order.ticket_type_id,
            attendee_name=name,
            attendee_email=email,
            attendee_phone=phone,
            qr_payload=build_qr_payload(ticket_number, order),
            status=TicketStatus.VALID.value,
        )
        db.add(ticket)
        tickets.append(ticket)
    await db.flush()

    logger.info("tickets_issued", order_id=order.id, count=len(tickets))
    return tickets


async def _get_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    result = await db.execute(
        select(Ticket).where(Ticket.id == ticket_id).execution_options(populate_existing=True)
    )
    ticket = result.scalar_one_or_none()
    if not ticket:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket not found",
        )
    return ticket


async def transfer_ticket(
    db: AsyncSession, ticket_id: int, user: User, data: TicketTransferRequest
) -> tuple[Ticket, Ticket]:
    """
    Hand a ticket to someone else.
    The original becomes TRANSFERRED; the recipient gets a new VALID ticket.
    """
    ticket = await _get_ticket(db, ticket_id)
    order = (await db.execute(select(Order).where(Order.id == ticket.order_id))).scalar_one()

    is_owner = order.user_id == user.id or order.customer_email.lower() == user.email.lower()
    if not is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only transfer your own tickets",
        )
    if ticket.status != TicketStatus.VALID.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only valid tickets can be transferred (ticket is {ticket.status})",
        )

    now = utcnow()
    recipient_email = data.recipient_email.lower()
    ticket.status = TicketStatus.TRANSFERRED.value
    ticket.transferred_to = recipient_email
    ticket.transferred_at = now

    ticket_number = generate_ticket_number()
    new_ticket = Ticket(
        ticket_number=ticket_number,
        order_id=order.id,
        event_id=ticket.event_id,
        ticket_type_id=ticket.ticket_type_id,
        attendee_name=data.recipient_name,
        attendee_email=recipient_email,
        attendee_phone=data.recipient_phone,
        qr_payload=build_qr_payload(ticket_number, order),
        status=TicketStatus.VALID.value,
        transferred_from=ticket.attendee_email,
        transferred_at=now,
    )
    db.add(new_ticket)
    await db.flush()

    logger.info(
        "ticket_transferred",
        ticket_id=ticket.id,
        new_ticket_id=new_ticket.id,
        order_id=order.id,
        from_user_id=user.id,
    )
    return await _get_ticket(db, ticket.id), await _get_ticket(db, new_ticket.id)


def _ticket_number_from_qr(qr_payload: str) -> str:
    try:
        data = json.loads(qr_payload)
        return data["ticketNumber"]
    except (ValueError, KeyError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unreadable QR code",
        )


async def check_in_ticket(
    db: AsyncSession,
    event_id: int,
    checked_in_by: User,
    ticket_number: Optional[str] = None,
    qr_payload: Optional[str] = None,
) -> Ticket:
    """Mark a ticket USED at the door. A ticket can be used once."""
    number = ticket_number or _ticket_number_from_qr(qr_payload)
    result = await db.execute(select(Ticket).where(Ticket.ticket_number == number))
    ticket = result.scalar_one_or_none()

    if not ticket or ticket.event_id != event_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket not found for this event",
        )
    if ticket.status == TicketStatus.USED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Ticket already checked in at {ticket.checked_in_at.isoformat()}",
        )
    if ticket.status != TicketStatus.VALID.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Ticket is {ticket.status.lower()} and cannot be used",
        )

    # Another scanner may have admitted the ticket since it was read
    admitted = await db.execute(
        update(Ticket)
        .where(Ticket.id == ticket.id, Ticket.status == TicketStatus.VALID.value)
        .values(status=TicketStatus.USED.value, checked_in_at=utcnow(), checked_in_by_id=checked_in_by.id)
        .execution_options(synchronize_session=False)
    )
    if admitted.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ticket already checked in",
        )

    logger.info("ticket_checked_in", ticket_id=ticket.id, event_id=event_id, by_user_id=checked_in_by.id)
    return await _get_ticket(db, ticket.id)
