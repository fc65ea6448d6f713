"""
Purchase ledger
One document per checkout attempt in `course_purchases`; the only
source of truth for "has this user bought this course".
"""

from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from coursemart.database import utcnow
from coursemart.purchases.models import ConfirmationSource, PurchaseStatus


async def create_pending_purchase(
    db: AsyncIOMotorDatabase,
    user_id: ObjectId,
    course_id: ObjectId,
    amount: int,
    currency: str
) -> dict:
    """Insert a pending row; gatewayOrderId is left unset until the order exists"""
    now = utcnow()
    purchase = {
        "courseId": course_id,
        "userId": user_id,
        "amount": amount,
        "currency": currency,
        "status": PurchaseStatus.PENDING.value,
        "createdAt": now,
        "updatedAt": now,
    }
    result = await db.course_purchases.insert_one(purchase)
    purchase["_id"] = result.inserted_id
    return purchase


async def attach_gateway_order(db: AsyncIOMotorDatabase, purchase_id: ObjectId, gateway_order_id: str) -> bool:
    """Set gatewayOrderId once; never overwrites an existing value"""
    result = await db.course_purchases.update_one(
        {"_id": purchase_id, "gatewayOrderId": {"$exists": False}},
        {"$set": {"gatewayOrderId": gateway_order_id, "updatedAt": utcnow()}}
    )
    return result.modified_count > 0


async def get_purchase_by_order(db: AsyncIOMotorDatabase, gateway_order_id: str) -> Optional[dict]:
    return await db.course_purchases.find_one({"gatewayOrderId": gateway_order_id})


async def complete_purchase(
    db: AsyncIOMotorDatabase,
    gateway_order_id: str,
    payment_id: Optional[str],
    via: ConfirmationSource
) -> Optional[dict]:
    """
    pending -> completed, atomically.
    Returns the updated document, or None when the row was not pending
    (another confirmation got there first).
    """
    now = utcnow()
    return await db.course_purchases.find_one_and_update(
        {"gatewayOrderId": gateway_order_id, "status": PurchaseStatus.PENDING.value},
        {"$set": {
            "status": PurchaseStatus.COMPLETED.value,
            "gatewayPaymentId": payment_id,
            "confirmedVia": via.value,
            "completedAt": now,
            "updatedAt": now,
        }},
        return_document=ReturnDocument.AFTER
    )


async def mark_enrolled(db: AsyncIOMotorDatabase, purchase_id: ObjectId) -> None:
    now = utcnow()
    await db.course_purchases.update_one(
        {"_id": purchase_id},
        {"$set": {"enrolledAt": now, "updatedAt": now}}
    )


async def has_completed_purchase(db: AsyncIOMotorDatabase, user_id: ObjectId, course_id: ObjectId) -> bool:
    purchase = await db.course_purchases.find_one(
        {"userId": user_id, "courseId": course_id, "status": PurchaseStatus.COMPLETED.value},
        {"_id": 1}
    )
    return purchase is not None


async def list_completed_purchases_for_courses(db: AsyncIOMotorDatabase, course_ids: List[ObjectId]) -> List[dict]:
    if not course_ids:
        return []
    cursor = db.course_purchases.find({
        "courseId": {"$in": course_ids},
        "status": PurchaseStatus.COMPLETED.value
    }).sort("completedAt", -1)
    return await cursor.to_list(length=None)


async def find_unprojected_purchases(
    db: AsyncIOMotorDatabase,
    after_id: Optional[ObjectId] = None,
    limit: int = 100
) -> List[dict]:
    """
    Completed purchases whose enrollment fan-out never finished,
    in _id order starting after `after_id`.
    """
    query = {
        "status": PurchaseStatus.COMPLETED.value,
        "enrolledAt": None
    }
    if after_id is not None:
        query["_id"] = {"$gt": after_id}
    cursor = db.course_purchases.find(query).sort("_id", 1).limit(limit)
    return await cursor.to_list(length=limit)


async def record_repair_failure(db: AsyncIOMotorDatabase, purchase_id: ObjectId) -> None:
    now = utcnow()
    await db.course_purchases.update_one(
        {"_id": purchase_id},
        {"$inc": {"repairAttempts": 1}, "$set": {"lastRepairAt": now, "updatedAt": now}}
    )
