"""
Course purchase endpoints (Razorpay)

POST /checkout/create-checkout-session  -> pending purchase + Razorpay order
POST /verify-payment                    -> checkout widget callback
POST /razorpay-webhook                  -> Razorpay server push, no session auth
"""

from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart.auth.auth_utils import get_current_user_id, require_instructor
from coursemart.courses.access import has_course_access, lecture_for_viewer
from coursemart.courses.database import (
    get_course, get_course_lectures, list_creator_courses, populate_creators
)
from coursemart.database import get_db, parse_object_id, serialize_many, serialize_mongo
from coursemart.errors import NotFound
from coursemart.purchases import ledger
from coursemart.purchases.checkout import create_checkout_session
from coursemart.purchases.confirmation import confirm_client_payment, handle_webhook
from coursemart.purchases.gateway import PaymentGateway, get_gateway
from coursemart.purchases.models import CheckoutRequest, PaymentVerifyRequest
from coursemart.users.database import get_user_profile

router = APIRouter(tags=["Purchases"])

WEBHOOK_SIGNATURE_HEADER = "x-razorpay-signature"


@router.post("/checkout/create-checkout-session")
async def create_checkout_session_endpoint(
    payload: CheckoutRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    user_id: str = Depends(get_current_user_id)
):
    return await create_checkout_session(db, gateway, user_id, payload.courseId)


@router.post("/verify-payment")
async def verify_payment(
    payload: PaymentVerifyRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    result = await confirm_client_payment(db, payload, parse_object_id(user_id))
    user = await get_user_profile(db, result.purchase["userId"])

    return {
        "success": True,
        "message": "Payment already verified" if result.already_completed else "Payment verified successfully",
        "user": serialize_mongo(user)
    }


@router.post("/razorpay-webhook")
async def razorpay_webhook(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Body is read raw; the signature covers the exact bytes Razorpay sent"""
    body = await request.body()
    await handle_webhook(db, body, request.headers.get(WEBHOOK_SIGNATURE_HEADER))
    return {"received": True}


@router.get("/course/{course_id}/detail-with-status")
async def get_course_detail_with_status(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course_oid = parse_object_id(course_id, "courseId")
    user_oid = parse_object_id(user_id)

    course = await get_course(db, course_oid)
    if not course:
        raise NotFound("course not found!")

    purchased = await ledger.has_completed_purchase(db, user_oid, course_oid)
    can_watch_all = purchased or await has_course_access(db, user_oid, course)

    lectures = await get_course_lectures(db, course)
    course["lectures"] = [lecture_for_viewer(lec, can_watch_all) for lec in lectures]
    await populate_creators(db, [course])

    return {
        "course": serialize_mongo(course),
        "purchased": purchased
    }


@router.get("/")
async def get_all_purchased_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(require_instructor)
):
    """Completed purchases of the calling instructor's courses"""
    courses = await list_creator_courses(db, parse_object_id(user_id))
    courses_by_id = {c["_id"]: c for c in courses}

    purchases = await ledger.list_completed_purchases_for_courses(db, list(courses_by_id))
    for course in courses:
        course["lectures"] = await get_course_lectures(db, course)
    for purchase in purchases:
        purchase["courseId"] = courses_by_id.get(purchase["courseId"], purchase["courseId"])

    return {
        "success": True,
        "purchasedCourse": serialize_many(purchases)
    }
