import logging
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from coursemart import config
from coursemart.errors import InvalidArgument

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(config.MONGO_URL)
db = client[config.MONGO_DB_NAME]


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


# ==================== HELPERS ====================

def serialize_mongo(value: Any) -> Any:
    """Render ObjectIds (at any depth) as strings so documents are JSON ready"""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: serialize_mongo(item) for key, item in value.items()}
    if isinstance(value, list):
        return [serialize_mongo(item) for item in value]
    return value


def serialize_many(docs: list[dict]) -> list[dict]:
    return [serialize_mongo(doc) for doc in docs]


def parse_object_id(value: Optional[str], label: str = "id") -> ObjectId:
    """Parse a client supplied identifier, rejecting malformed ones"""
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(value):
        raise InvalidArgument(f"Invalid or missing {label}")
    return ObjectId(value)


def utcnow() -> datetime:
    return datetime.utcnow()


# ==================== INDEXES ====================

async def create_indexes(database: AsyncIOMotorDatabase):
    """
    Create MongoDB indexes
    Called during application startup
    """
    # Purchases: one ledger row per gateway order
    await database.course_purchases.create_index("gatewayOrderId", unique=True, sparse=True)
    await database.course_purchases.create_index([("userId", 1), ("courseId", 1)])
    await database.course_purchases.create_index([("status", 1), ("enrolledAt", 1)])

    # Users
    await database.users.create_index("email", unique=True)

    # Courses
    await database.courses.create_index("creator")
    await database.courses.create_index([("isPublished", 1), ("category", 1)])

    logger.info("MongoDB indexes created")
