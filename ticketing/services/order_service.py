"""
Order service: checkout pricing, order creation and settlement.

An order always sits on top of an ACTIVE reservation. Settlement
(complete_order_payment) is shared by free checkouts, payment
verification and the payment webhook, and is safe to call repeatedly
for the same order.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.db.base import utcnow
from ticketing.models.order import Order, OrderStatus
from ticketing.models.reservation import InventoryReservation, ReservationStatus
from ticketing.models.event import TicketType
from ticketing.schemas.order import OrderCreate
from ticketing.core.config import get_settings
from ticketing.core.identifiers import generate_order_number, generate_free_reference
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_order_status
from ticketing.services import promo_service, reservation_service, ticket_service

logger = get_logger(__name__)
settings = get_settings()

CENT = Decimal("0.01")
HUNDRED = Decimal(100)

# Orders that a confirmed payment may still settle. CANCELLED covers a
# reservation that lapsed while the buyer was on the payment page.
SETTLEABLE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.CANCELLED.value)


def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_pricing(unit_price: Decimal, quantity: int, discount: Decimal = Decimal(0)) -> dict:
    """
    Price a checkout.

    Fees apply on the discounted subtotal and only when something is
    actually charged, so free and fully discounted orders cost nothing.
    """
    subtotal = _round(Decimal(unit_price) * quantity)
    discount = min(_round(discount), subtotal)
    discounted = subtotal - discount

    if discounted > 0:
        platform_fee = _round(discounted * settings.PLATFORM_FEE_PERCENT / HUNDRED)
        processing_fee = _round(
            discounted * settings.PROCESSING_FEE_PERCENT / HUNDRED + settings.PROCESSING_FEE_FIXED
        )
    else:
        platform_fee = Decimal("0.00")
        processing_fee = Decimal("0.00")

    return {
        "subtotal": subtotal,
        "discount_amount": discount,
        "platform_fee": platform_fee,
        "processing_fee": processing_fee,
        "total_amount": _round(discounted + platform_fee + processing_fee),
    }


async def get_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order {order_id} not found",
        )
    return order


async def find_order_by_reference(db: AsyncSession, reference: str) -> Optional[Order]:
    result = await db.execute(
        select(Order).where(Order.payment_reference == reference).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_order_by_reference(db: AsyncSession, reference: str) -> Order:
    order = await find_order_by_reference(db, reference)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found for this payment reference",
        )
    return order


async def _claim_reservation(db: AsyncSession, order_data: OrderCreate) -> InventoryReservation:
    result = await db.execute(
        select(InventoryReservation).where(InventoryReservation.reservation_id == order_data.reservation_id)
    )
    reservation = result.scalar_one_or_none()
    if not reservation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reservation not found",
        )
    if reservation.status != ReservationStatus.ACTIVE.value or reservation.expires_at <= utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Reservation has expired. Please select your tickets again.",
        )
    if reservation.order_id is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reservation is already attached to an order",
        )
    if (
        reservation.event_id != order_data.event_id
        or reservation.ticket_type_id != order_data.ticket_type_id
        or reservation.quantity != order_data.quantity
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Order does not match the reservation",
        )
    return reservation


async def create_order(
    db: AsyncSession,
    order_data: OrderCreate,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Order:
    """
    Create a PENDING order for a held reservation.
    A zero total settles immediately with a FREE- reference.
    """
    reservation = await _claim_reservation(db, order_data)
    ticket_type = (
        await db.execute(select(TicketType).where(TicketType.id == reservation.ticket_type_id))
    ).scalar_one()

    subtotal = _round(Decimal(ticket_type.price) * order_data.quantity)
    promo = None
    discount = Decimal(0)
    if order_data.promo_code:
        promo, discount = await promo_service.validate_promo_code(
            db, order_data.promo_code, order_data.event_id, subtotal
        )

    pricing = calculate_pricing(ticket_type.price, order_data.quantity, discount)

    order = Order(
        order_number=generate_order_number(),
        event_id=order_data.event_id,
        ticket_type_id=order_data.ticket_type_id,
        user_id=user_id,
        quantity=order_data.quantity,
        customer_email=order_data.customer_email.lower(),
        customer_name=order_data.customer_name,
        customer_phone=order_data.customer_phone,
        currency=ticket_type.currency,
        promo_code_id=promo.id if promo else None,
        promo_code=promo.code if promo else None,
        status=OrderStatus.PENDING.value,
        attendee_info=[a.model_dump() for a in order_data.attendees] if order_data.attendees else None,
        ip_address=ip_address,
        user_agent=user_agent[:500] if user_agent else None,
        **pricing,
    )
    db.add(order)
    await db.flush()

    # Attach the hold; a concurrent checkout on the same reservation loses here
    claimed = await db.execute(
        update(InventoryReservation)
        .where(
            InventoryReservation.id == reservation.id,
            InventoryReservation.order_id.is_(None),
            InventoryReservation.status == ReservationStatus.ACTIVE.value,
        )
        .values(order_id=order.id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reservation is already attached to an order",
        )

    record_order_status(OrderStatus.PENDING.value)
    logger.info(
        "order_created",
        order_id=order.id,
        order_number=order.order_number,
        reservation_id=reservation.reservation_id,
        total_amount=str(order.total_amount),
        promo_code=order.promo_code,
    )

    if order.total_amount == 0:
        return await complete_order_payment(
            db, order.id, reference=generate_free_reference(order.id), payment_status="free"
        )
    return await get_order(db, order.id)


async def complete_order_payment(
    db: AsyncSession,
    order_id: int,
    reference: Optional[str] = None,
    payment_status: str = "success",
) -> Order:
    """
    Settle a paid order: PENDING -> PAID, convert inventory, issue tickets
    and count the promo code use. Idempotent.
    """
    values = {"status": OrderStatus.PAID.value, "payment_status": payment_status, "paid_at": utcnow()}
    if reference:
        values["payment_reference"] = reference

    flipped = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status.in_(SETTLEABLE_STATUSES))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    order = await get_order(db, order_id)
    if flipped.rowcount == 0:
        logger.info("order_already_settled", order_id=order_id, status=order.status)
        return order

    if not await reservation_service.convert_order_reservations(db, order):
        await db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(status=OrderStatus.FAILED.value, payment_status="inventory_unavailable")
            .execution_options(synchronize_session=False)
        )
        record_order_status(OrderStatus.FAILED.value)
        logger.error(
            "order_inventory_unavailable",
            order_id=order_id,
            payment_reference=order.payment_reference,
            total_amount=str(order.total_amount),
            needs_refund=order.total_amount > 0,
        )
        return await get_order(db, order_id)

    await ticket_service.issue_tickets(db, order)
    if order.promo_code_id and not await promo_service.increment_usage(db, order.promo_code_id):
        # The order keeps its discount; the overrun is only logged
        logger.warning(
            "promo_usage_limit_exceeded",
            order_id=order_id,
            promo_code=order.promo_code,
            discount_amount=str(order.discount_amount),
        )

    record_order_status(OrderStatus.PAID.value)
    logger.info(
        "order_paid",
        order_id=order_id,
        order_number=order.order_number,
        payment_reference=order.payment_reference,
        total_amount=str(order.total_amount),
    )
    return await get_order(db, order_id)


async def fail_order(db: AsyncSession, order_id: int, payment_status: str = "failed") -> Order:
    """Payment declined: PENDING -> FAILED and the hold goes back on sale."""
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.PENDING.value)
        .values(status=OrderStatus.FAILED.value, payment_status=payment_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        await reservation_service.release_order_reservations(db, order_id)
        record_order_status(OrderStatus.FAILED.value)
        logger.info("order_failed", order_id=order_id, payment_status=payment_status)
    return await get_order(db, order_id)
