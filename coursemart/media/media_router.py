from fastapi import APIRouter, Depends, File, UploadFile

from coursemart import config
from coursemart.auth.auth_utils import get_current_user_id
from coursemart.errors import InvalidArgument
from coursemart.media.cloudinary_client import upload_media

router = APIRouter(tags=["Media"])


async def read_upload(file: UploadFile, kind: str) -> bytes:
    """Read an upload, enforcing mime family ("image" / "video") and size limit"""
    if not (file.content_type or "").startswith(f"{kind}/"):
        raise InvalidArgument(f"Only {kind} files are allowed!")

    content = await file.read()
    if len(content) > config.MAX_UPLOAD_MB * 1024 * 1024:
        raise InvalidArgument(f"File size too large. Maximum size is {config.MAX_UPLOAD_MB}MB")
    return content


@router.post("/upload-video")
async def upload_video(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id)
):
    """Upload a lecture video; the client stores the result on the lecture"""
    content = await read_upload(file, "video")
    result = await upload_media(content, file.content_type)
    return {
        "success": True,
        "message": "File uploaded successfully.",
        "data": result
    }
