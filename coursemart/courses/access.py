"""
Lecture access: creator, completed purchase, or a free-preview lecture.
"""

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart.purchases.ledger import has_completed_purchase

LOCKED_FIELDS = ("videoUrl", "publicId")


def creator_id_of(course: dict):
    creator = course.get("creator")
    if isinstance(creator, dict):
        return creator.get("_id")
    return creator


async def has_course_access(db: AsyncIOMotorDatabase, user_id: ObjectId, course: dict) -> bool:
    if creator_id_of(course) == user_id:
        return True
    return await has_completed_purchase(db, user_id, course["_id"])


def lecture_for_viewer(lecture: dict, has_access: bool) -> dict:
    """Copy of the lecture with the video stripped when the viewer may not watch it"""
    if has_access or lecture.get("isPreviewFree"):
        return lecture
    locked = dict(lecture)
    for field in LOCKED_FIELDS:
        locked[field] = None
    return locked


async def has_lecture_access(db: AsyncIOMotorDatabase, user_id: ObjectId, course: dict, lecture: dict) -> bool:
    if lecture.get("isPreviewFree"):
        return True
    return await has_course_access(db, user_id, course)
