"""
Payment confirmation

The checkout widget callback (client) and the Razorpay webhook each verify
their own signature, then issue the same command: confirm_payment(order_id).
Webhooks are delivered at least once and may race the client callback, so
confirm_payment is safe to run any number of times for the same order.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from coursemart import config
from coursemart.errors import InternalError, InvalidArgument, InvalidSignature, NotFound
from coursemart.purchases import ledger
from coursemart.purchases.enrollment import apply_enrollment
from coursemart.purchases.models import ConfirmationSource, PaymentVerifyRequest, PurchaseStatus
from coursemart.purchases.signatures import verify_razorpay_signature, verify_webhook_signature

logger = logging.getLogger(__name__)

PAYMENT_CAPTURED = "payment.captured"


@dataclass
class ConfirmationResult:
    purchase: dict
    already_completed: bool


async def project_enrollment(db: AsyncIOMotorDatabase, purchase: dict) -> None:
    """Run the enrollment projection for a completed purchase and stamp enrolledAt"""
    try:
        await apply_enrollment(db, purchase["userId"], purchase["courseId"])
        await ledger.mark_enrolled(db, purchase["_id"])
    except NotFound:
        logger.error("Purchase %s references a missing course %s", purchase["_id"], purchase["courseId"])
        raise InternalError("Course for purchase not found")
    except PyMongoError as e:
        logger.error("Enrollment projection failed for purchase %s: %s", purchase["_id"], e)
        raise InternalError()


async def confirm_payment(
    db: AsyncIOMotorDatabase,
    gateway_order_id: str,
    payment_id: Optional[str] = None,
    via: ConfirmationSource = ConfirmationSource.CLIENT,
    expected_user_id: Optional[ObjectId] = None
) -> ConfirmationResult:
    """Idempotent pending -> completed transition for one gateway order"""
    try:
        purchase = await ledger.get_purchase_by_order(db, gateway_order_id)
    except PyMongoError as e:
        logger.error("Purchase lookup failed for order %s: %s", gateway_order_id, e)
        raise InternalError()

    if not purchase:
        logger.warning("No purchase for order %s (via %s)", gateway_order_id, via.value)
        raise NotFound("Purchase not found")

    if expected_user_id is not None and purchase["userId"] != expected_user_id:
        raise NotFound("Purchase not found")

    if purchase["status"] == PurchaseStatus.COMPLETED.value:
        # A previous confirmation may have died mid-projection
        if not purchase.get("enrolledAt"):
            await project_enrollment(db, purchase)
        logger.info("Order %s already completed, ignoring duplicate (via %s)", gateway_order_id, via.value)
        return ConfirmationResult(purchase=purchase, already_completed=True)

    try:
        completed = await ledger.complete_purchase(db, gateway_order_id, payment_id, via)
    except PyMongoError as e:
        logger.error("Could not complete purchase for order %s: %s", gateway_order_id, e)
        raise InternalError()

    if completed is None:
        # Lost the race: the other path observed pending first
        try:
            current = await ledger.get_purchase_by_order(db, gateway_order_id)
        except PyMongoError as e:
            logger.error("Purchase re-read failed for order %s: %s", gateway_order_id, e)
            raise InternalError()
        return ConfirmationResult(purchase=current or purchase, already_completed=True)

    await project_enrollment(db, completed)
    logger.info(
        "Payment confirmed: order=%s purchase=%s via=%s",
        gateway_order_id, completed["_id"], via.value
    )
    return ConfirmationResult(purchase=completed, already_completed=False)


# ==================== ENTRY POINTS ====================

async def confirm_client_payment(
    db: AsyncIOMotorDatabase,
    payload: PaymentVerifyRequest,
    user_id: ObjectId
) -> ConfirmationResult:
    if not payload.is_complete():
        raise InvalidArgument("Missing payment details")

    if not verify_razorpay_signature(
        payload.razorpay_order_id,
        payload.razorpay_payment_id,
        payload.razorpay_signature,
        config.RAZORPAY_KEY_SECRET
    ):
        logger.warning("Invalid payment signature for order %s", payload.razorpay_order_id)
        raise InvalidSignature("Invalid signature")

    return await confirm_payment(
        db,
        payload.razorpay_order_id,
        payment_id=payload.razorpay_payment_id,
        via=ConfirmationSource.CLIENT,
        expected_user_id=user_id
    )


async def handle_webhook(
    db: AsyncIOMotorDatabase,
    body: bytes,
    signature: Optional[str]
) -> Optional[ConfirmationResult]:
    """
    Verify and process one webhook delivery.
    Returns None for events that do not confirm a payment.
    """
    secret = config.RAZORPAY_WEBHOOK_SECRET
    if not secret:
        logger.error("RAZORPAY_WEBHOOK_SECRET is not set")
        raise InternalError("Webhook secret not configured")

    if not verify_webhook_signature(body, signature, secret):
        logger.warning("Rejected webhook with %s signature", "invalid" if signature else "missing")
        raise InvalidSignature("Invalid signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise InvalidArgument("Invalid webhook payload")
    if not isinstance(event, dict):
        raise InvalidArgument("Invalid webhook payload")

    event_type = event.get("event")
    if event_type != PAYMENT_CAPTURED:
        logger.info("Ignoring webhook event %s", event_type)
        return None

    entity = (((event.get("payload") or {}).get("payment") or {}).get("entity") or {})
    order_id = entity.get("order_id")
    if not order_id:
        raise InvalidArgument("Webhook payment has no order_id")

    return await confirm_payment(
        db,
        order_id,
        payment_id=entity.get("id"),
        via=ConfirmationSource.WEBHOOK
    )
