"""
Cloudinary media storage
Thumbnails, profile photos and lecture videos live on Cloudinary;
only the returned URL / public id is stored in MongoDB.
"""

import base64
import logging

import cloudinary
import cloudinary.uploader
from fastapi.concurrency import run_in_threadpool

from coursemart import config
from coursemart.errors import InvalidArgument, MediaError

logger = logging.getLogger(__name__)

UPLOAD_FOLDER = "course_media"
# Cloudinary wants large videos sent in chunks
CHUNK_SIZE = 6_000_000


def is_configured() -> bool:
    return all([
        config.CLOUDINARY_CLOUD_NAME,
        config.CLOUDINARY_API_KEY,
        config.CLOUDINARY_API_SECRET,
    ])


if is_configured():
    cloudinary.config(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
        secure=True,
    )
else:
    logger.warning("Cloudinary credentials missing, media uploads are disabled")


def _ensure_configured():
    if not is_configured():
        raise MediaError("Cloudinary is not configured")


def public_id_from_url(url: str) -> str:
    """https://res.cloudinary.com/<cloud>/image/upload/v1/abc.jpg -> abc"""
    return url.rsplit("/", 1)[-1].split(".", 1)[0]


async def upload_media(content: bytes, content_type: str) -> dict:
    """Upload raw bytes; returns {"secure_url", "public_id", "resource_type"}"""
    if not content:
        raise InvalidArgument("No file provided")
    _ensure_configured()

    data_uri = f"data:{content_type};base64,{base64.b64encode(content).decode()}"
    try:
        result = await run_in_threadpool(
            cloudinary.uploader.upload,
            data_uri,
            resource_type="auto",
            chunk_size=CHUNK_SIZE,
            folder=UPLOAD_FOLDER,
        )
    except Exception as e:
        logger.error("Cloudinary upload failed: %s", e)
        raise MediaError("Error uploading to Cloudinary")

    return {
        "secure_url": result.get("secure_url"),
        "public_id": result.get("public_id"),
        "resource_type": result.get("resource_type"),
    }


async def delete_media(public_id: str) -> dict:
    if not public_id:
        raise InvalidArgument("No public ID provided")
    _ensure_configured()
    try:
        return await run_in_threadpool(cloudinary.uploader.destroy, public_id)
    except Exception as e:
        logger.error("Cloudinary delete failed for %s: %s", public_id, e)
        raise MediaError("Error deleting media from Cloudinary")


async def delete_video(public_id: str) -> dict:
    if not public_id:
        raise InvalidArgument("No public ID provided")
    _ensure_configured()
    try:
        return await run_in_threadpool(
            cloudinary.uploader.destroy, public_id, resource_type="video"
        )
    except Exception as e:
        logger.error("Cloudinary video delete failed for %s: %s", public_id, e)
        raise MediaError("Error deleting video from Cloudinary")
