"""
Payment service: Paystack checkout, verification and webhooks.

Webhooks and the verify endpoint can both report the same successful
charge; settlement goes through order_service.complete_order_payment,
which only acts on the first report.
"""

import json
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.models.order import Order, OrderStatus
from ticketing.core.config import get_settings
from ticketing.core.identifiers import generate_payment_reference
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_webhook
from ticketing.services import order_service, payout_service
from ticketing.services.interfaces.payment_gateway import PaymentGateway, PaymentGatewayError

logger = get_logger(__name__)
settings = get_settings()

FREE_REFERENCE_PREFIX = "FREE-"


def to_minor_units(amount: Decimal) -> int:
    """Major currency units to kobo."""
    return int((Decimal(amount) * 100).to_integral_value())


def _callback_url() -> str:
    return settings.PAYSTACK_CALLBACK_URL or f"{settings.FRONTEND_URL.rstrip('/')}/payment/callback"


def _verify_result(order) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "reference": order.payment_reference,
        "status": order.status,
        "payment_status": order.payment_status,
        "paid": order.status == OrderStatus.PAID.value,
    }


async def initialize_payment(db: AsyncSession, order_id: int, gateway: PaymentGateway) -> dict:
    """Start a Paystack checkout for a PENDING order."""
    order = await order_service.get_order(db, order_id)
    if order.status != OrderStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Order is {order.status.lower()} and cannot be paid",
        )

    reference = generate_payment_reference()
    try:
        data = await gateway.initialize_transaction(
            email=order.customer_email,
            amount_minor=to_minor_units(order.total_amount),
            reference=reference,
            metadata={"order_id": order.id, "order_number": order.order_number},
            callback_url=_callback_url(),
        )
    except PaymentGatewayError as e:
        logger.error("payment_initialize_failed", order_id=order.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Payment initialization failed: {e}",
        )

    order.payment_reference = reference
    order.payment_status = "initialized"
    await db.flush()

    logger.info("payment_initialized", order_id=order.id, reference=reference)
    return {
        "order_id": order.id,
        "reference": reference,
        "authorization_url": data.get("authorization_url", ""),
        "access_code": data.get("access_code"),
    }


def _order_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Order not found for this payment reference",
    )


def _metadata_order_id(metadata) -> Optional[int]:
    # Paystack echoes metadata back as an object or, for some channels, a JSON string
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except ValueError:
            return None
    if not isinstance(metadata, dict):
        return None
    try:
        return int(metadata.get("order_id"))
    except (TypeError, ValueError):
        return None


async def _find_charge_order(db: AsyncSession, reference: Optional[str], metadata) -> Optional[Order]:
    """
    Match a charge to its order by reference, then by the order id sent in
    the checkout metadata. The fallback covers a buyer paying on an older
    checkout page after the order was initialized again.
    """
    if reference:
        order = await order_service.find_order_by_reference(db, reference)
        if order is not None:
            return order

    order_id = _metadata_order_id(metadata)
    if order_id is None:
        return None
    try:
        order = await order_service.get_order(db, order_id)
    except HTTPException:
        return None

    logger.info(
        "charge_matched_by_metadata",
        order_id=order.id,
        reference=reference,
        current_reference=order.payment_reference,
    )
    return order


def _underpaid(order: Order, paid_minor, reference: Optional[str]) -> bool:
    if paid_minor is None:
        return False
    expected_minor = to_minor_units(order.total_amount)
    if int(paid_minor) >= expected_minor:
        return False
    logger.error(
        "payment_amount_mismatch",
        order_id=order.id,
        reference=reference,
        paid=paid_minor,
        expected=expected_minor,
    )
    return True


async def verify_payment(db: AsyncSession, reference: str, gateway: PaymentGateway) -> dict:
    """Ask Paystack about a reference and settle the order if it was paid."""
    order = await order_service.find_order_by_reference(db, reference)

    if order is not None and (
        reference.startswith(FREE_REFERENCE_PREFIX) or order.status == OrderStatus.PAID.value
    ):
        return _verify_result(order)
    if order is None and reference.startswith(FREE_REFERENCE_PREFIX):
        raise _order_not_found()

    try:
        data = await gateway.verify_transaction(reference)
    except PaymentGatewayError as e:
        if order is None:
            raise _order_not_found()
        logger.error("payment_verify_failed", reference=reference, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Payment verification failed: {e}",
        )

    if order is None:
        order = await _find_charge_order(db, None, data.get("metadata"))
        if order is None:
            raise _order_not_found()

    gateway_status = data.get("status")
    if gateway_status == "success" and order.status != OrderStatus.PAID.value:
        if _underpaid(order, data.get("amount"), reference):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Paid amount does not match the order total",
            )
        order = await order_service.complete_order_payment(
            db, order.id, reference=reference, payment_status="success"
        )
    elif gateway_status in ("failed", "reversed") and order.payment_reference == reference:
        # A declined older attempt leaves the current checkout alone
        order = await order_service.fail_order(db, order.id, payment_status=gateway_status)

    logger.info("payment_verified", reference=reference, gateway_status=gateway_status, order_status=order.status)
    return _verify_result(order)


def _malformed_payload() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Malformed webhook payload",
    )


async def handle_webhook(
    db: AsyncSession,
    raw_body: bytes,
    signature: str,
    gateway: PaymentGateway,
) -> dict:
    """
    Process a signed Paystack event.
    Unknown references and event types are acknowledged and ignored.
    """
    if not signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing webhook signature",
        )
    if not gateway.verify_webhook_signature(raw_body, signature):
        logger.warning("webhook_signature_invalid")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise _malformed_payload()
    if not isinstance(payload, dict):
        raise _malformed_payload()

    event = payload.get("event") or ""
    data = payload.get("data") or {}
    if not isinstance(event, str) or not isinstance(data, dict):
        raise _malformed_payload()

    reference = data.get("reference")
    record_webhook(event)
    logger.info("webhook_received", webhook_event=event, reference=reference)

    if event == "charge.success":
        order = await _find_charge_order(db, reference, data.get("metadata"))
        if order is None:
            logger.warning("webhook_order_not_found", webhook_event=event, reference=reference)
        elif order.status == OrderStatus.PAID.value:
            logger.info("webhook_order_already_paid", order_id=order.id, reference=reference)
        elif not _underpaid(order, data.get("amount"), reference):
            await order_service.complete_order_payment(
                db, order.id, reference=reference, payment_status="success"
            )

    elif event == "charge.failed":
        order = await order_service.find_order_by_reference(db, reference or "")
        if order is None:
            logger.warning("webhook_order_not_found", webhook_event=event, reference=reference)
        else:
            await order_service.fail_order(db, order.id, payment_status="failed")

    elif event.startswith("transfer."):
        await payout_service.handle_transfer_event(db, event, data)

    else:
        logger.info("webhook_ignored", webhook_event=event)

    return {"received": True}
