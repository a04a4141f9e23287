"""
Inventory reservation service: the reserve -> expire/release -> convert
lifecycle on TicketType counters.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two buyers try to reserve the last ticket simultaneously.
  Both read available=1, both increment reserved, both succeed.
  Result: Overselling.

Solution:
  A `version` column on ticket_types plus conditional UPDATEs.

  1. Read the ticket type's counters and version
  2. UPDATE ticket_types
        SET reserved_quantity = reserved_quantity + N, version = version + 1
      WHERE id = :id AND version = :v
        AND total_quantity - sold_quantity - reserved_quantity >= N
  3. If rows_affected == 0, someone else modified the row -> re-read and retry

  Every other counter move (release, expiry, conversion) is also a single
  conditional UPDATE, and the CHECK constraint
  sold_quantity + reserved_quantity <= total_quantity is the final safety net.

  An optional inventory gate (see strategy_factory) rejects requests before
  they reach the database when a ticket type is visibly sold out.

Status transitions are guarded the same way: a reservation leaves ACTIVE
through `UPDATE ... WHERE status = 'ACTIVE'`, so a sweeper and a release
racing on the same row only move the counters once.
"""

import asyncio
import time
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.db.base import utcnow
from ticketing.models.event import Event, TicketType, ON_SALE_STATUSES
from ticketing.models.order import Order, OrderStatus
from ticketing.models.reservation import InventoryReservation, ReservationStatus
from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.core.metrics import (
    db_retries,
    reservation_latency,
    record_gate_decision,
    record_order_status,
    record_reservation_attempt,
    record_reservation_transition,
)
from ticketing.services.cache_service import invalidate_event_cache
from ticketing.services.strategy_factory import get_inventory_gate

logger = get_logger(__name__)
settings = get_settings()

MAX_RETRY_ATTEMPTS = 3


async def _load_ticket_type(db: AsyncSession, ticket_type_id: int) -> Optional[TicketType]:
    result = await db.execute(
        select(TicketType)
        .where(TicketType.id == ticket_type_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _load_reservation(db: AsyncSession, reservation_id: str) -> Optional[InventoryReservation]:
    result = await db.execute(
        select(InventoryReservation)
        .where(InventoryReservation.reservation_id == reservation_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _move_counters(
    db: AsyncSession,
    ticket_type_id: int,
    reserved_delta: int = 0,
    sold_delta: int = 0,
) -> bool:
    """
    Apply a counter change in one conditional UPDATE.

    The WHERE clause keeps both counters non-negative and, when stock is
    being taken, requires enough free units. Returns False if the row did
    not qualify.
    """
    conditions = [TicketType.id == ticket_type_id]
    if reserved_delta < 0:
        conditions.append(TicketType.reserved_quantity >= -reserved_delta)
    if sold_delta < 0:
        conditions.append(TicketType.sold_quantity >= -sold_delta)
    taken = reserved_delta + sold_delta
    if taken > 0:
        conditions.append(
            TicketType.total_quantity - TicketType.sold_quantity - TicketType.reserved_quantity >= taken
        )

    result = await db.execute(
        update(TicketType)
        .where(*conditions)
        .values(
            reserved_quantity=TicketType.reserved_quantity + reserved_delta,
            sold_quantity=TicketType.sold_quantity + sold_delta,
            version=TicketType.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _set_status(
    db: AsyncSession,
    reservation: InventoryReservation,
    from_status: ReservationStatus,
    to_status: ReservationStatus,
) -> bool:
    result = await db.execute(
        update(InventoryReservation)
        .where(
            InventoryReservation.id == reservation.id,
            InventoryReservation.status == from_status.value,
        )
        .values(status=to_status.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _cancel_pending_order(db: AsyncSession, order_id: Optional[int], reason: str) -> None:
    if order_id is None:
        return
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.PENDING.value)
        .values(status=OrderStatus.CANCELLED.value, payment_status=reason, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        record_order_status(OrderStatus.CANCELLED.value)
        logger.info("order_cancelled", order_id=order_id, reason=reason)


async def _sync_gate(db: AsyncSession, ticket_type_ids) -> None:
    gate = get_inventory_gate()
    for ticket_type_id in set(ticket_type_ids):
        ticket_type = await _load_ticket_type(db, ticket_type_id)
        if ticket_type is not None:
            await gate.sync(ticket_type_id, ticket_type.available_quantity)


async def check_availability(
    db: AsyncSession, event_id: int, ticket_type_id: int, quantity: int
) -> dict:
    ticket_type = await _load_ticket_type(db, ticket_type_id)
    if not ticket_type or ticket_type.event_id != event_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket type not found for this event",
        )
    available = ticket_type.available_quantity
    return {
        "event_id": event_id,
        "ticket_type_id": ticket_type_id,
        "requested": quantity,
        "available": available,
        "can_reserve": available >= quantity,
    }


async def expire_stale_reservations(
    db: AsyncSession,
    now: Optional[datetime] = None,
    ticket_type_id: Optional[int] = None,
) -> int:
    """
    Move every ACTIVE reservation past its expiry to EXPIRED and give its
    units back. A PENDING order holding the reservation is cancelled.
    Returns the number of reservations expired.
    """
    now = now or utcnow()
    query = select(InventoryReservation).where(
        InventoryReservation.status == ReservationStatus.ACTIVE.value,
        InventoryReservation.expires_at <= now,
    )
    if ticket_type_id is not None:
        query = query.where(InventoryReservation.ticket_type_id == ticket_type_id)

    stale = list((await db.execute(query)).scalars().all())
    expired = 0
    touched = []
    for reservation in stale:
        if not await _set_status(db, reservation, ReservationStatus.ACTIVE, ReservationStatus.EXPIRED):
            continue  # Released or converted concurrently
        await _move_counters(db, reservation.ticket_type_id, reserved_delta=-reservation.quantity)
        await _cancel_pending_order(db, reservation.order_id, "reservation_expired")
        expired += 1
        touched.append(reservation.ticket_type_id)

    if expired:
        record_reservation_transition("expired", expired)
        await _sync_gate(db, touched)
        logger.info("reservations_expired", count=expired, ticket_type_id=ticket_type_id)
    return expired


async def reserve_inventory(
    db: AsyncSession,
    event_id: int,
    ticket_type_id: int,
    quantity: int,
    user_id: Optional[int] = None,
) -> InventoryReservation:
    """
    Hold `quantity` units of a ticket type for RESERVATION_TTL_MINUTES.
    Retries up to MAX_RETRY_ATTEMPTS on version conflicts.
    """
    started = time.perf_counter()

    ticket_type = await _load_ticket_type(db, ticket_type_id)
    if not ticket_type or ticket_type.event_id != event_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket type not found for this event",
        )

    event = (await db.execute(select(Event).where(Event.id == event_id))).scalar_one()
    now = utcnow()
    if event.status not in ON_SALE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tickets for this event are not on sale",
        )
    if event.sale_start and now < event.sale_start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ticket sales have not started yet",
        )
    if event.sale_end and now > event.sale_end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ticket sales have ended",
        )

    if quantity < ticket_type.min_per_order or quantity > ticket_type.max_per_order:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Quantity must be between {ticket_type.min_per_order} "
                f"and {ticket_type.max_per_order} per order"
            ),
        )

    # Units held by abandoned checkouts go back on sale first
    await expire_stale_reservations(db, now=now, ticket_type_id=ticket_type_id)

    reservation_id = str(uuid.uuid4())
    gate = get_inventory_gate()
    admitted = await gate.admit(ticket_type_id, reservation_id, quantity)
    record_gate_decision(admitted)
    if not admitted:
        record_reservation_attempt("rejected")
        logger.info("reservation_rejected_by_gate", ticket_type_id=ticket_type_id, requested=quantity)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Not enough tickets available",
        )

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        # Step 1: Read current counters
        ticket_type = await _load_ticket_type(db, ticket_type_id)
        available = ticket_type.available_quantity

        if available < quantity:
            await gate.release(ticket_type_id, reservation_id)
            record_reservation_attempt("conflict")
            logger.warning(
                "reservation_failed_insufficient_inventory",
                ticket_type_id=ticket_type_id,
                requested=quantity,
                available=available,
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Not enough tickets available. Requested: {quantity}, Available: {available}",
            )

        # Step 2: Optimistic lock - update only if version matches
        update_result = await db.execute(
            update(TicketType)
            .where(
                TicketType.id == ticket_type_id,
                TicketType.version == ticket_type.version,
                TicketType.total_quantity - TicketType.sold_quantity - TicketType.reserved_quantity >= quantity,
            )
            .values(
                reserved_quantity=TicketType.reserved_quantity + quantity,
                version=TicketType.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        if update_result.rowcount == 0:
            # Version conflict - another transaction modified this ticket type
            db_retries.inc()
            logger.info(
                "reservation_retry",
                ticket_type_id=ticket_type_id,
                attempt=attempt,
                reason="version_conflict",
            )
            if attempt == MAX_RETRY_ATTEMPTS:
                await gate.release(ticket_type_id, reservation_id)
                record_reservation_attempt("conflict")
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Reservation failed due to high demand. Please try again.",
                )
            continue

        # Step 3: Record the hold
        reservation = InventoryReservation(
            reservation_id=reservation_id,
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            user_id=user_id,
            quantity=quantity,
            status=ReservationStatus.ACTIVE.value,
            expires_at=now + timedelta(minutes=settings.RESERVATION_TTL_MINUTES),
        )
        db.add(reservation)
        await db.flush()

        await gate.sync(ticket_type_id, available - quantity)
        record_reservation_attempt("success")
        reservation_latency.observe(time.perf_counter() - started)
        logger.info(
            "reservation_created",
            reservation_id=reservation_id,
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            quantity=quantity,
            attempt=attempt,
        )
        return reservation

    # Should not reach here, but just in case
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Reservation failed unexpectedly",
    )


async def release_reservation(db: AsyncSession, reservation_id: str) -> InventoryReservation:
    """Give an ACTIVE reservation's units back and cancel its pending order."""
    reservation = await _load_reservation(db, reservation_id)
    if not reservation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reservation not found",
        )
    if reservation.status == ReservationStatus.CONVERTED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reservation has already been converted to tickets",
        )
    if reservation.status != ReservationStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Reservation is already {reservation.status.lower()}",
        )

    if not await _set_status(db, reservation, ReservationStatus.ACTIVE, ReservationStatus.RELEASED):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reservation changed while releasing. Please retry.",
        )
    await _move_counters(db, reservation.ticket_type_id, reserved_delta=-reservation.quantity)
    await _cancel_pending_order(db, reservation.order_id, "reservation_released")

    record_reservation_transition("released")
    await _sync_gate(db, [reservation.ticket_type_id])
    logger.info(
        "reservation_released",
        reservation_id=reservation_id,
        ticket_type_id=reservation.ticket_type_id,
        quantity=reservation.quantity,
    )
    return await _load_reservation(db, reservation_id)


async def release_order_reservations(db: AsyncSession, order_id: int) -> int:
    """Release whatever an order still holds (payment failed)."""
    result = await db.execute(
        select(InventoryReservation).where(
            InventoryReservation.order_id == order_id,
            InventoryReservation.status == ReservationStatus.ACTIVE.value,
        )
    )
    released = 0
    for reservation in result.scalars().all():
        if await _set_status(db, reservation, ReservationStatus.ACTIVE, ReservationStatus.RELEASED):
            await _move_counters(db, reservation.ticket_type_id, reserved_delta=-reservation.quantity)
            await _sync_gate(db, [reservation.ticket_type_id])
            released += 1
    if released:
        record_reservation_transition("released", released)
        logger.info("order_reservations_released", order_id=order_id, count=released)
    return released


async def convert_order_reservations(db: AsyncSession, order: Order) -> bool:
    """
    Turn the order's held units into sold units.

    A reservation that expired before the payment landed is re-claimed
    from free stock. Returns False when that is no longer possible.
    """
    result = await db.execute(
        select(InventoryReservation)
        .where(InventoryReservation.order_id == order.id)
        .execution_options(populate_existing=True)
    )
    reservations = list(result.scalars().all())
    converted = 0

    for reservation in reservations:
        if reservation.status == ReservationStatus.CONVERTED.value:
            continue

        if reservation.status == ReservationStatus.ACTIVE.value and await _set_status(
            db, reservation, ReservationStatus.ACTIVE, ReservationStatus.CONVERTED
        ):
            await _move_counters(
                db,
                reservation.ticket_type_id,
                reserved_delta=-reservation.quantity,
                sold_delta=reservation.quantity,
            )
            converted += 1
            continue

        # Hold lapsed: take the units from whatever is free now
        if not await _move_counters(db, reservation.ticket_type_id, sold_delta=reservation.quantity):
            logger.error(
                "reservation_reclaim_failed",
                order_id=order.id,
                reservation_id=reservation.reservation_id,
                quantity=reservation.quantity,
            )
            return False
        await db.execute(
            update(InventoryReservation)
            .where(InventoryReservation.id == reservation.id)
            .values(status=ReservationStatus.CONVERTED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        logger.warning(
            "reservation_reclaimed_after_lapse",
            order_id=order.id,
            reservation_id=reservation.reservation_id,
            previous_status=reservation.status,
        )
        converted += 1

    if not reservations:
        # Order without a hold: sell directly from free stock
        if not await _move_counters(db, order.ticket_type_id, sold_delta=order.quantity):
            return False

    record_reservation_transition("converted", converted)
    await _sync_gate(db, [order.ticket_type_id])
    logger.info("order_inventory_converted", order_id=order.id, reservations=converted)
    return True


async def run_expiry_sweeper(session_factory, interval_seconds: int) -> None:
    """
    Background loop started from the application lifespan.
    Expires lapsed reservations every `interval_seconds`.
    """
    logger.info("reservation_sweeper_started", interval_seconds=interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with session_factory() as db:
                expired = await expire_stale_reservations(db)
                await db.commit()
            if expired:
                await invalidate_event_cache()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("reservation_sweep_failed")
