"""Tests for idempotent payment confirmation and the enrollment projection."""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from pymongo.errors import PyMongoError

from coursemart import config
from coursemart.errors import InternalError, InvalidArgument, InvalidSignature, NotFound
from coursemart.purchases.confirmation import (
    confirm_client_payment, confirm_payment, project_enrollment
)
from coursemart.purchases import ledger
from coursemart.purchases.models import ConfirmationSource, PaymentVerifyRequest
from coursemart.purchases.signatures import compute_signature


@pytest.fixture
async def pending(db, make_user, make_course, make_lecture, make_purchase):
    instructor = await make_user("Ada Instructor", role="instructor")
    student = await make_user("Sam Student")
    course = await make_course(instructor)
    lectures = [
        await make_lecture(course, "Intro", preview=True),
        await make_lecture(course, "Deep dive", public_id="deep"),
    ]
    purchase = await make_purchase(student, course, order_id="order_A")
    return {"student": student, "course": course, "lectures": lectures, "purchase": purchase}


def _signed_payload(order_id, payment_id, secret=None):
    signature = compute_signature(secret or config.RAZORPAY_KEY_SECRET, f"{order_id}|{payment_id}")
    return PaymentVerifyRequest(
        razorpay_order_id=order_id,
        razorpay_payment_id=payment_id,
        razorpay_signature=signature,
    )


async def test_confirm_completes_and_enrolls(db, pending):
    result = await confirm_payment(db, "order_A", payment_id="pay_1")

    assert result.already_completed is False
    purchase = await db.course_purchases.find_one({"gatewayOrderId": "order_A"})
    assert purchase["status"] == "completed"
    assert purchase["gatewayPaymentId"] == "pay_1"
    assert purchase["confirmedVia"] == "client"
    assert purchase["completedAt"] is not None
    assert purchase["enrolledAt"] is not None

    user = await db.users.find_one({"_id": pending["student"]["_id"]})
    assert user["enrolledCourses"] == [pending["course"]["_id"]]
    course = await db.courses.find_one({"_id": pending["course"]["_id"]})
    assert course["enrolledStudents"] == [pending["student"]["_id"]]

    lectures = await db.lectures.find({}).to_list(length=None)
    assert all(lec["isPreviewFree"] for lec in lectures)


async def test_confirm_twice_is_a_noop(db, pending):
    await confirm_payment(db, "order_A", payment_id="pay_1")
    second = await confirm_payment(db, "order_A", payment_id="pay_1", via=ConfirmationSource.WEBHOOK)

    assert second.already_completed is True
    purchase = await db.course_purchases.find_one({"gatewayOrderId": "order_A"})
    assert purchase["confirmedVia"] == "client"

    user = await db.users.find_one({"_id": pending["student"]["_id"]})
    assert user["enrolledCourses"] == [pending["course"]["_id"]]


async def test_concurrent_confirmations_complete_once(db, pending):
    results = await asyncio.gather(
        confirm_payment(db, "order_A", payment_id="pay_1", via=ConfirmationSource.CLIENT),
        confirm_payment(db, "order_A", payment_id="pay_1", via=ConfirmationSource.WEBHOOK),
    )

    assert sorted(r.already_completed for r in results) == [False, True]
    course = await db.courses.find_one({"_id": pending["course"]["_id"]})
    assert course["enrolledStudents"] == [pending["student"]["_id"]]


async def test_confirm_unknown_order(db, pending):
    with pytest.raises(NotFound):
        await confirm_payment(db, "order_missing")


async def test_confirm_for_another_user_is_not_found(db, pending, make_user):
    intruder = await make_user("Eve Intruder")

    with pytest.raises(NotFound):
        await confirm_payment(db, "order_A", payment_id="pay_1", expected_user_id=intruder["_id"])

    purchase = await db.course_purchases.find_one({"gatewayOrderId": "order_A"})
    assert purchase["status"] == "pending"


async def test_reconfirm_finishes_interrupted_projection(db, pending):
    # completed by an earlier call that died before fanning out
    await db.course_purchases.update_one(
        {"gatewayOrderId": "order_A"},
        {"$set": {"status": "completed", "gatewayPaymentId": "pay_1"}}
    )

    result = await confirm_payment(db, "order_A", payment_id="pay_1")

    assert result.already_completed is True
    purchase = await db.course_purchases.find_one({"gatewayOrderId": "order_A"})
    assert purchase["enrolledAt"] is not None
    user = await db.users.find_one({"_id": pending["student"]["_id"]})
    assert user["enrolledCourses"] == [pending["course"]["_id"]]


async def test_lectures_stay_locked_when_unlock_disabled(db, pending, monkeypatch):
    monkeypatch.setattr(config, "UNLOCK_LECTURES_ON_PURCHASE", False)

    await confirm_payment(db, "order_A", payment_id="pay_1")

    deep = await db.lectures.find_one({"_id": pending["lectures"][1]["_id"]})
    assert deep["isPreviewFree"] is False
    user = await db.users.find_one({"_id": pending["student"]["_id"]})
    assert user["enrolledCourses"] == [pending["course"]["_id"]]


async def test_projection_for_missing_course_is_internal_error(db, pending):
    await db.courses.delete_one({"_id": pending["course"]["_id"]})
    with pytest.raises(InternalError):
        await project_enrollment(db, pending["purchase"])


# ==================== CLIENT CALLBACK ====================

async def test_client_payment_with_valid_signature(db, pending):
    payload = _signed_payload("order_A", "pay_42")

    result = await confirm_client_payment(db, payload, pending["student"]["_id"])

    assert result.already_completed is False
    assert result.purchase["gatewayPaymentId"] == "pay_42"
    assert result.purchase["confirmedVia"] == "client"


async def test_client_payment_tampered_signature_changes_nothing(db, pending):
    payload = _signed_payload("order_A", "pay_42", secret="not-the-key-secret")

    with pytest.raises(InvalidSignature):
        await confirm_client_payment(db, payload, pending["student"]["_id"])

    purchase = await db.course_purchases.find_one({"gatewayOrderId": "order_A"})
    assert purchase["status"] == "pending"
    user = await db.users.find_one({"_id": pending["student"]["_id"]})
    assert user["enrolledCourses"] == []


async def test_client_payment_missing_fields(db, pending):
    payload = PaymentVerifyRequest(razorpay_order_id="order_A", razorpay_payment_id="pay_42")
    with pytest.raises(InvalidArgument):
        await confirm_client_payment(db, payload, pending["student"]["_id"])


async def test_storage_error_after_losing_the_race_is_internal_error(db, pending):
    lookup = AsyncMock(side_effect=[pending["purchase"], PyMongoError("connection reset")])

    with patch.object(ledger, "get_purchase_by_order", new=lookup), \
         patch.object(ledger, "complete_purchase", new=AsyncMock(return_value=None)):
        with pytest.raises(InternalError):
            await confirm_payment(db, "order_A", payment_id="pay_1")

    assert lookup.await_count == 2
