import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart import config
from coursemart.courses.database import get_course
from coursemart.database import parse_object_id
from coursemart.errors import InvalidArgument, NotFound, Unauthorized
from coursemart.purchases import ledger
from coursemart.purchases.gateway import PaymentGateway, build_receipt, to_minor_units

logger = logging.getLogger(__name__)


def listed_price(course: dict) -> int:
    """Course price as a positive integer, or InvalidArgument"""
    price = course.get("coursePrice")
    if isinstance(price, float) and price.is_integer():
        price = int(price)
    if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
        raise InvalidArgument("Course is not available for purchase")
    return price


async def create_checkout_session(
    db: AsyncIOMotorDatabase,
    gateway: PaymentGateway,
    user_id: str,
    course_id: str
) -> dict:
    """
    Create a pending purchase and the Razorpay order that pays for it.

    On gateway failure the purchase stays pending without a gatewayOrderId;
    the client retries with a new checkout (and gets a new purchase row).
    """
    if not user_id:
        raise Unauthorized("Unauthorized: user ID missing")
    try:
        user_oid = parse_object_id(user_id, "user id")
    except InvalidArgument:
        raise Unauthorized("Unauthorized: user ID missing")

    course_oid = parse_object_id(course_id, "courseId")
    course = await get_course(db, course_oid)
    if not course:
        raise NotFound("Course not found!")

    amount = listed_price(course)
    currency = config.PAYMENT_CURRENCY

    purchase = await ledger.create_pending_purchase(db, user_oid, course_oid, amount, currency)

    order = await gateway.create_order(
        amount=to_minor_units(amount),
        currency=currency,
        receipt=build_receipt(str(course_oid), str(user_oid)),
        notes={"courseId": str(course_oid), "userId": str(user_oid)},
    )

    await ledger.attach_gateway_order(db, purchase["_id"], order["id"])
    logger.info(
        "Checkout created: purchase=%s order=%s course=%s amount=%s",
        purchase["_id"], order["id"], course_oid, amount
    )

    return {
        "success": True,
        "keyId": gateway.key_id,
        "orderId": order["id"],
        "amount": order.get("amount", to_minor_units(amount)),
        "currency": order.get("currency", currency),
        "courseTitle": course.get("courseTitle"),
        "courseThumbnail": course.get("courseThumbnail"),
    }
