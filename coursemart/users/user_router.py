import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from coursemart import config
from coursemart.auth.auth_utils import (
    create_access_token, get_current_user_id, hash_password, verify_password
)
from coursemart.database import get_db, parse_object_id, serialize_mongo
from coursemart.errors import InvalidArgument, NotFound
from coursemart.media.cloudinary_client import upload_media
from coursemart.media.media_router import read_upload
from coursemart.users.database import (
    create_user, get_user_by_email, get_user_profile, public_user, update_user
)
from coursemart.users.models import UserLogin, UserRegister

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])


def _issue_session(response: Response, user: dict) -> None:
    token = create_access_token(str(user["_id"]), user["role"])
    response.set_cookie(
        config.TOKEN_COOKIE_NAME,
        token,
        httponly=True,
        samesite="strict",
        secure=config.ENVIRONMENT == "production",
        max_age=config.TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


@router.post("/register", status_code=201)
async def register(
    payload: UserRegister,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if await get_user_by_email(db, payload.email):
        raise InvalidArgument("User already exists.")

    try:
        user = await create_user(
            db, payload.name, payload.email, hash_password(payload.password), payload.role.value
        )
    except DuplicateKeyError:
        raise InvalidArgument("User already exists.")

    logger.info("User registered: %s (%s)", user["_id"], user["role"])
    _issue_session(response, user)
    return {
        "success": True,
        "message": "Account created successfully.",
        "user": serialize_mongo(public_user(user))
    }


@router.post("/login")
async def login(
    payload: UserLogin,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user = await get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise InvalidArgument("Incorrect email or password.")

    _issue_session(response, user)
    return {
        "success": True,
        "message": f"Welcome back {user['name']}",
        "user": serialize_mongo(public_user(user))
    }


@router.get("/logout")
async def logout(response: Response):
    response.delete_cookie(config.TOKEN_COOKIE_NAME)
    return {"success": True, "message": "Logged out successfully."}


@router.get("/profile")
async def get_profile(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    user = await get_user_profile(db, parse_object_id(user_id))
    if not user:
        raise NotFound("Profile not found.")
    return {"success": True, "user": serialize_mongo(user)}


@router.put("/profile/update")
async def update_profile(
    name: Optional[str] = Form(None),
    profilePhoto: Optional[UploadFile] = File(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    oid = parse_object_id(user_id)
    updates = {}

    if name and name.strip():
        updates["name"] = name.strip()

    if profilePhoto is not None and profilePhoto.filename:
        content = await read_upload(profilePhoto, "image")
        uploaded = await upload_media(content, profilePhoto.content_type)
        updates["photoUrl"] = uploaded["secure_url"]

    if not updates:
        raise InvalidArgument("No updates provided.")

    user = await update_user(db, oid, updates)
    if not user:
        raise NotFound("User not found.")

    return {
        "success": True,
        "message": "Profile updated successfully",
        "user": serialize_mongo(user)
    }
