"""
Coursemart configuration
Everything comes from the environment (.env is loaded for local runs)
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "coursemart_db")

# Session tokens
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_EXPIRE_DAYS = int(os.getenv("TOKEN_EXPIRE_DAYS", "1"))
TOKEN_COOKIE_NAME = "token"

# Razorpay
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")

# Cloudinary
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "100"))

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# A completed purchase flips every lecture of the course to free preview
UNLOCK_LECTURES_ON_PURCHASE = _env_bool("UNLOCK_LECTURES_ON_PURCHASE", True)

# 0 disables the periodic repair task (it still runs once at startup)
ENROLLMENT_REPAIR_INTERVAL_SECONDS = int(os.getenv("ENROLLMENT_REPAIR_INTERVAL_SECONDS", "300"))
