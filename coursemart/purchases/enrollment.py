"""
Enrollment projection of a completed purchase.

Three independent writes, each idempotent on its own:
    1. every lecture of the course -> isPreviewFree = true
    2. course id added to users.enrolledCourses
    3. user id added to courses.enrolledStudents
There is no transaction around them; a partial failure is repaired by
running the projection again.
"""

import logging
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart import config
from coursemart.errors import NotFound

logger = logging.getLogger(__name__)


async def unlock_course_lectures(db: AsyncIOMotorDatabase, course: dict) -> int:
    lecture_ids = course.get("lectures") or []
    if not lecture_ids:
        return 0
    result = await db.lectures.update_many(
        {"_id": {"$in": lecture_ids}},
        {"$set": {"isPreviewFree": True}}
    )
    return result.modified_count


async def apply_enrollment(
    db: AsyncIOMotorDatabase,
    user_id: ObjectId,
    course_id: ObjectId,
    unlock_lectures: Optional[bool] = None
) -> None:
    if unlock_lectures is None:
        unlock_lectures = config.UNLOCK_LECTURES_ON_PURCHASE

    course = await db.courses.find_one({"_id": course_id}, {"lectures": 1})
    if not course:
        raise NotFound("Course not found")

    if unlock_lectures:
        unlocked = await unlock_course_lectures(db, course)
        logger.debug("Unlocked %d lectures of course %s", unlocked, course_id)

    await db.users.update_one(
        {"_id": user_id},
        {"$addToSet": {"enrolledCourses": course_id}}
    )
    await db.courses.update_one(
        {"_id": course_id},
        {"$addToSet": {"enrolledStudents": user_id}}
    )
    logger.info("User %s enrolled in course %s", user_id, course_id)
