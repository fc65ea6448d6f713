# coursemart/auth/auth_utils.py
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from fastapi import Cookie, Depends, Header
from jose import jwt, JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart import config
from coursemart.database import get_db, parse_object_id
from coursemart.errors import Forbidden, InvalidArgument, Unauthorized


# ==================== PASSWORDS ====================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


# ==================== TOKENS ====================

def create_access_token(user_id: str, role: str) -> str:
    expires = datetime.utcnow() + timedelta(days=config.TOKEN_EXPIRE_DAYS)
    payload = {"sub": str(user_id), "role": role, "exp": expires}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid or expired token")


def _extract_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    # The browser client sends both; the cookie wins when present
    if cookie_token:
        return cookie_token
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


# ==================== DEPENDENCIES ====================

def get_token_payload(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Cookie(None),
) -> dict:
    raw = _extract_token(authorization, token)
    if not raw:
        raise Unauthorized("User not authenticated")

    payload = decode_access_token(raw)
    if not payload.get("sub"):
        raise Unauthorized("Invalid token")
    return payload


def get_current_user_id(payload: dict = Depends(get_token_payload)) -> str:
    """Authenticated user id (string form of the users._id ObjectId)"""
    user_id = payload["sub"]
    try:
        parse_object_id(user_id, "user id")
    except InvalidArgument:
        raise Unauthorized("Invalid token")
    return user_id


async def require_instructor(
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> str:
    """Role is re-read from the database so demotions apply immediately"""
    user = await db.users.find_one({"_id": parse_object_id(user_id)}, {"role": 1})
    if not user:
        raise Unauthorized("User not found")
    if user.get("role") != "instructor":
        raise Forbidden("Instructor access required")
    return user_id
