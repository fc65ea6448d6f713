import re
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart.database import utcnow
from coursemart.errors import Forbidden, NotFound

CREATOR_FIELDS = {"name": 1, "photoUrl": 1}


# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, title: str, category: str, creator_id: ObjectId) -> dict:
    now = utcnow()
    course = {
        "courseTitle": title,
        "subTitle": None,
        "description": None,
        "category": category,
        "courseLevel": None,
        "coursePrice": None,
        "courseThumbnail": None,
        "creator": creator_id,
        "lectures": [],
        "enrolledStudents": [],
        "isPublished": False,
        "createdAt": now,
        "updatedAt": now,
    }
    result = await db.courses.insert_one(course)
    course["_id"] = result.inserted_id
    return course


async def get_course(db: AsyncIOMotorDatabase, course_id: ObjectId) -> Optional[dict]:
    return await db.courses.find_one({"_id": course_id})


async def verify_course_owner(db: AsyncIOMotorDatabase, course_id: ObjectId, user_id: ObjectId) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise NotFound("Course not found!")
    if course.get("creator") != user_id:
        raise Forbidden("Not authorized")
    return course


async def update_course(db: AsyncIOMotorDatabase, course_id: ObjectId, updates: dict) -> Optional[dict]:
    updates["updatedAt"] = utcnow()
    await db.courses.update_one({"_id": course_id}, {"$set": updates})
    return await get_course(db, course_id)


async def list_creator_courses(db: AsyncIOMotorDatabase, creator_id: ObjectId) -> List[dict]:
    cursor = db.courses.find({"creator": creator_id}).sort("createdAt", -1)
    return await cursor.to_list(length=None)


async def list_published_courses(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.courses.find({"isPublished": True}).sort("createdAt", -1)
    courses = await cursor.to_list(length=None)
    await populate_creators(db, courses)
    return courses


async def search_courses(
    db: AsyncIOMotorDatabase,
    query: str = "",
    categories: Optional[List[str]] = None,
    sort_by_price: Optional[str] = None
) -> List[dict]:
    """Published courses matching query on title, subtitle or category"""
    pattern = {"$regex": re.escape(query or ""), "$options": "i"}
    criteria = {
        "isPublished": True,
        "$or": [
            {"courseTitle": pattern},
            {"subTitle": pattern},
            {"category": pattern},
        ]
    }
    if categories:
        criteria["category"] = {"$in": categories}

    cursor = db.courses.find(criteria)
    if sort_by_price == "low":
        cursor = cursor.sort("coursePrice", 1)
    elif sort_by_price == "high":
        cursor = cursor.sort("coursePrice", -1)

    courses = await cursor.to_list(length=None)
    await populate_creators(db, courses)
    return courses


async def populate_creators(db: AsyncIOMotorDatabase, courses: List[dict]) -> List[dict]:
    """Replace each course's creator id with {_id, name, photoUrl}"""
    creator_ids = list({c["creator"] for c in courses if isinstance(c.get("creator"), ObjectId)})
    if not creator_ids:
        return courses

    cursor = db.users.find({"_id": {"$in": creator_ids}}, CREATOR_FIELDS)
    creators = {u["_id"]: u for u in await cursor.to_list(length=None)}
    for course in courses:
        creator = course.get("creator")
        if isinstance(creator, ObjectId) and creator in creators:
            course["creator"] = creators[creator]
    return courses


# ==================== LECTURE CRUD ====================

async def create_lecture(db: AsyncIOMotorDatabase, course_id: ObjectId, title: str) -> dict:
    now = utcnow()
    lecture = {
        "lectureTitle": title,
        "videoUrl": None,
        "publicId": None,
        "isPreviewFree": False,
        "createdAt": now,
        "updatedAt": now,
    }
    result = await db.lectures.insert_one(lecture)
    lecture["_id"] = result.inserted_id

    await db.courses.update_one(
        {"_id": course_id},
        {"$push": {"lectures": lecture["_id"]}, "$set": {"updatedAt": now}}
    )
    return lecture


async def get_lecture(db: AsyncIOMotorDatabase, lecture_id: ObjectId) -> Optional[dict]:
    return await db.lectures.find_one({"_id": lecture_id})


async def get_course_lectures(db: AsyncIOMotorDatabase, course: dict) -> List[dict]:
    """Lectures of a course in course order"""
    lecture_ids = course.get("lectures", [])
    if not lecture_ids:
        return []
    cursor = db.lectures.find({"_id": {"$in": lecture_ids}})
    by_id = {lec["_id"]: lec for lec in await cursor.to_list(length=None)}
    return [by_id[lid] for lid in lecture_ids if lid in by_id]


def course_has_lecture(course: dict, lecture_id: ObjectId) -> bool:
    return lecture_id in (course.get("lectures") or [])


async def update_lecture(db: AsyncIOMotorDatabase, lecture_id: ObjectId, updates: dict) -> Optional[dict]:
    """Caller must have checked that the lecture belongs to a course it owns"""
    updates["updatedAt"] = utcnow()
    await db.lectures.update_one({"_id": lecture_id}, {"$set": updates})
    return await get_lecture(db, lecture_id)


async def remove_lecture(db: AsyncIOMotorDatabase, course_id: ObjectId, lecture_id: ObjectId) -> Optional[dict]:
    lecture = await db.lectures.find_one_and_delete({"_id": lecture_id})
    if lecture:
        await db.courses.update_one(
            {"_id": course_id},
            {"$pull": {"lectures": lecture_id}}
        )
    return lecture


async def get_course_for_lecture(db: AsyncIOMotorDatabase, lecture_id: ObjectId) -> Optional[dict]:
    return await db.courses.find_one({"lectures": lecture_id})
