from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart.courses.database import populate_creators
from coursemart.database import utcnow

PUBLIC_PROJECTION = {"password": 0}


async def create_user(db: AsyncIOMotorDatabase, name: str, email: str, password_hash: str, role: str) -> dict:
    now = utcnow()
    user = {
        "name": name.strip(),
        "email": email,
        "password": password_hash,
        "role": role,
        "enrolledCourses": [],
        "photoUrl": "",
        "createdAt": now,
        "updatedAt": now,
    }
    result = await db.users.insert_one(user)
    user["_id"] = result.inserted_id
    return user


async def get_user_by_email(db: AsyncIOMotorDatabase, email: str) -> Optional[dict]:
    return await db.users.find_one({"email": email})


async def get_user(db: AsyncIOMotorDatabase, user_id: ObjectId) -> Optional[dict]:
    return await db.users.find_one({"_id": user_id}, PUBLIC_PROJECTION)


async def update_user(db: AsyncIOMotorDatabase, user_id: ObjectId, updates: dict) -> Optional[dict]:
    updates["updatedAt"] = utcnow()
    await db.users.update_one({"_id": user_id}, {"$set": updates})
    return await get_user(db, user_id)


async def get_user_profile(db: AsyncIOMotorDatabase, user_id: ObjectId) -> Optional[dict]:
    """User without password, enrolledCourses populated with their creator"""
    user = await get_user(db, user_id)
    if not user:
        return None

    course_ids = user.get("enrolledCourses", [])
    courses = []
    if course_ids:
        cursor = db.courses.find({"_id": {"$in": course_ids}})
        by_id = {c["_id"]: c for c in await cursor.to_list(length=None)}
        # keep enrollment order
        courses = [by_id[cid] for cid in course_ids if cid in by_id]
        await populate_creators(db, courses)

    user["enrolledCourses"] = courses
    return user


def public_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password"}
