"""Pytest configuration and fixtures."""
import os

# must be set before coursemart.config is imported
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["CLOUDINARY_CLOUD_NAME"] = "demo"
os.environ["CLOUDINARY_API_KEY"] = "test-api-key"
os.environ["CLOUDINARY_API_SECRET"] = "test-api-secret"
os.environ["ENROLLMENT_REPAIR_INTERVAL_SECONDS"] = "0"
os.environ["UNLOCK_LECTURES_ON_PURCHASE"] = "true"

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from coursemart.auth.auth_utils import create_access_token, hash_password
from coursemart.database import get_db, utcnow
from coursemart.errors import GatewayError
from coursemart.main import app
from coursemart.purchases.gateway import get_gateway


class FakeGateway:
    """Stands in for PaymentGateway; records every order it creates"""

    def __init__(self):
        self.key_id = "rzp_test_key"
        self.orders = []
        self.fail = False

    async def create_order(self, amount, currency, receipt, notes):
        if self.fail:
            raise GatewayError("Error creating Razorpay order")
        order = {
            "id": f"order_test{len(self.orders) + 1}",
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
            "status": "created",
        }
        self.orders.append(order)
        return order


@pytest.fixture
def db():
    """Fresh in-memory database per test"""
    return AsyncMongoMockClient()["coursemart_test"]


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db, gateway):
    async def override_get_db():
        return db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    async def _make(name="Test Student", email=None, role="student", password="secret123"):
        now = utcnow()
        user = {
            "name": name,
            "email": email or f"{name.lower().replace(' ', '.')}@example.com",
            "password": hash_password(password),
            "role": role,
            "enrolledCourses": [],
            "photoUrl": "",
            "createdAt": now,
            "updatedAt": now,
        }
        result = await db.users.insert_one(user)
        user["_id"] = result.inserted_id
        return user
    return _make


@pytest.fixture
def make_course(db):
    async def _make(creator, title="Python Basics", price=499, published=True, category="Programming"):
        now = utcnow()
        course = {
            "courseTitle": title,
            "subTitle": None,
            "description": None,
            "category": category,
            "courseLevel": "Beginner",
            "coursePrice": price,
            "courseThumbnail": "https://res.cloudinary.com/demo/image/upload/v1/thumb.jpg",
            "creator": creator["_id"],
            "lectures": [],
            "enrolledStudents": [],
            "isPublished": published,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await db.courses.insert_one(course)
        course["_id"] = result.inserted_id
        return course
    return _make


@pytest.fixture
def make_lecture(db):
    async def _make(course, title="Intro", video_url="https://res.cloudinary.com/demo/video/upload/v1/intro.mp4",
                    public_id="intro", preview=False):
        now = utcnow()
        lecture = {
            "lectureTitle": title,
            "videoUrl": video_url,
            "publicId": public_id,
            "isPreviewFree": preview,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await db.lectures.insert_one(lecture)
        lecture["_id"] = result.inserted_id
        await db.courses.update_one({"_id": course["_id"]}, {"$push": {"lectures": lecture["_id"]}})
        course.setdefault("lectures", []).append(lecture["_id"])
        return lecture
    return _make


@pytest.fixture
def make_purchase(db):
    async def _make(user, course, order_id="order_test1", status="pending", **extra):
        now = utcnow()
        purchase = {
            "courseId": course["_id"],
            "userId": user["_id"],
            "amount": course.get("coursePrice") or 499,
            "currency": "INR",
            "gatewayOrderId": order_id,
            "status": status,
            "createdAt": now,
            "updatedAt": now,
            **extra,
        }
        result = await db.course_purchases.insert_one(purchase)
        purchase["_id"] = result.inserted_id
        return purchase
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token(str(user["_id"]), user["role"])
        return {"Authorization": f"Bearer {token}"}
    return _headers
