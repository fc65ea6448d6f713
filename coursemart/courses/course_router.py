import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart.auth.auth_utils import get_current_user_id, require_instructor
from coursemart.courses.access import has_lecture_access, lecture_for_viewer
from coursemart.courses.database import (
    course_has_lecture, create_course, create_lecture, get_course, get_course_for_lecture,
    get_course_lectures,
    get_lecture, list_creator_courses, list_published_courses, remove_lecture,
    search_courses, update_course, update_lecture, verify_course_owner
)
from coursemart.courses.models import CourseCreate, CourseLevel, LectureCreate, LectureUpdate, PriceSort
from coursemart.database import get_db, parse_object_id, serialize_many, serialize_mongo
from coursemart.errors import InvalidArgument, NotFound, PlatformError
from coursemart.media.cloudinary_client import delete_media, delete_video, public_id_from_url, upload_media
from coursemart.media.media_router import read_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Course Management"])


# ==================== COURSE CRUD ====================

@router.post("/", status_code=201)
async def create_course_endpoint(
    payload: CourseCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(require_instructor)
):
    course = await create_course(db, payload.courseTitle, payload.category, parse_object_id(user_id))
    logger.info("Course created: %s by %s", course["_id"], user_id)
    return {
        "success": True,
        "course": serialize_mongo(course),
        "message": "Course created."
    }


@router.get("/")
async def get_creator_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    courses = await list_creator_courses(db, parse_object_id(user_id))
    if not courses:
        return {"success": True, "courses": [], "message": "Course not found"}
    return {"success": True, "courses": serialize_many(courses)}


@router.get("/search")
async def search_courses_endpoint(
    query: str = "",
    categories: Optional[str] = None,
    sortByPrice: Optional[PriceSort] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    category_list = [c.strip() for c in (categories or "").split(",") if c.strip()]
    courses = await search_courses(
        db, query, category_list, sortByPrice.value if sortByPrice else None
    )
    return {"success": True, "courses": serialize_many(courses)}


@router.get("/published-courses")
async def get_published_courses(db: AsyncIOMotorDatabase = Depends(get_db)):
    courses = await list_published_courses(db)
    if not courses:
        raise NotFound("Course not found")
    return {"courses": serialize_many(courses)}


# must be declared before /{course_id}
@router.get("/lecture/{lecture_id}")
async def get_lecture_by_id(
    lecture_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    lecture = await get_lecture(db, parse_object_id(lecture_id, "lectureId"))
    if not lecture:
        raise NotFound("Lecture not found!")

    course = await get_course_for_lecture(db, lecture["_id"])
    allowed = course is not None and await has_lecture_access(
        db, parse_object_id(user_id), course, lecture
    )
    return {"lecture": serialize_mongo(lecture_for_viewer(lecture, allowed))}


@router.get("/{course_id}")
async def get_course_by_id(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course = await get_course(db, parse_object_id(course_id, "courseId"))
    if not course:
        raise NotFound("Course not found!")
    return {"course": serialize_mongo(course)}


@router.put("/{course_id}")
async def edit_course(
    course_id: str,
    courseTitle: Optional[str] = Form(None),
    subTitle: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    courseLevel: Optional[CourseLevel] = Form(None),
    coursePrice: Optional[int] = Form(None),
    courseThumbnail: Optional[UploadFile] = File(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Multipart edit; only the fields that were sent are changed"""
    course_oid = parse_object_id(course_id, "courseId")
    course = await verify_course_owner(db, course_oid, parse_object_id(user_id))

    if coursePrice is not None and coursePrice < 0:
        raise InvalidArgument("Course price cannot be negative")

    updates = {
        "courseTitle": courseTitle,
        "subTitle": subTitle,
        "description": description,
        "category": category,
        "courseLevel": courseLevel.value if courseLevel else None,
        "coursePrice": coursePrice,
    }
    updates = {k: v for k, v in updates.items() if v is not None}

    if courseThumbnail is not None and courseThumbnail.filename:
        content = await read_upload(courseThumbnail, "image")
        old_thumbnail = course.get("courseThumbnail")
        uploaded = await upload_media(content, courseThumbnail.content_type)
        updates["courseThumbnail"] = uploaded["secure_url"]

        if old_thumbnail:
            try:
                await delete_media(public_id_from_url(old_thumbnail))
            except PlatformError as e:
                logger.warning("Old thumbnail of course %s not deleted: %s", course_oid, e.message)

    course = await update_course(db, course_oid, updates)
    return {
        "course": serialize_mongo(course),
        "message": "Course updated successfully."
    }


@router.patch("/{course_id}")
async def toggle_publish_course(
    course_id: str,
    publish: bool = Query(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course_oid = parse_object_id(course_id, "courseId")
    await verify_course_owner(db, course_oid, parse_object_id(user_id))
    await update_course(db, course_oid, {"isPublished": publish})

    status = "Published" if publish else "Unpublished"
    return {"message": f"Course is {status}"}


# ==================== LECTURES ====================

@router.post("/{course_id}/lecture", status_code=201)
async def create_lecture_endpoint(
    course_id: str,
    payload: LectureCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course_oid = parse_object_id(course_id, "courseId")
    await verify_course_owner(db, course_oid, parse_object_id(user_id))

    lecture = await create_lecture(db, course_oid, payload.lectureTitle)
    return {
        "lecture": serialize_mongo(lecture),
        "message": "Lecture created successfully."
    }


@router.get("/{course_id}/lecture")
async def get_course_lecture(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course = await get_course(db, parse_object_id(course_id, "courseId"))
    if not course:
        raise NotFound("Course not found")
    lectures = await get_course_lectures(db, course)
    return {"lectures": serialize_many(lectures)}


@router.put("/{course_id}/lecture/{lecture_id}")
async def edit_lecture(
    course_id: str,
    lecture_id: str,
    payload: LectureUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course_oid = parse_object_id(course_id, "courseId")
    lecture_oid = parse_object_id(lecture_id, "lectureId")
    course = await verify_course_owner(db, course_oid, parse_object_id(user_id))

    if not course_has_lecture(course, lecture_oid) or not await get_lecture(db, lecture_oid):
        raise NotFound("Lecture not found!")

    updates = {"isPreviewFree": payload.isPreviewFree}
    if payload.lectureTitle:
        updates["lectureTitle"] = payload.lectureTitle
    if payload.videoInfo:
        if payload.videoInfo.videoUrl:
            updates["videoUrl"] = payload.videoInfo.videoUrl
        if payload.videoInfo.publicId:
            updates["publicId"] = payload.videoInfo.publicId

    lecture = await update_lecture(db, lecture_oid, updates)
    return {
        "lecture": serialize_mongo(lecture),
        "message": "Lecture updated successfully."
    }


@router.delete("/{course_id}/lecture/{lecture_id}")
async def remove_lecture_endpoint(
    course_id: str,
    lecture_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    course_oid = parse_object_id(course_id, "courseId")
    lecture_oid = parse_object_id(lecture_id, "lectureId")
    course = await verify_course_owner(db, course_oid, parse_object_id(user_id))
    if not course_has_lecture(course, lecture_oid):
        raise NotFound("Lecture not found!")

    lecture = await remove_lecture(db, course_oid, lecture_oid)
    if not lecture:
        raise NotFound("Lecture not found!")

    if lecture.get("publicId"):
        try:
            await delete_video(lecture["publicId"])
        except PlatformError as e:
            logger.warning("Video of lecture %s not deleted: %s", lecture_oid, e.message)

    return {"message": "Lecture removed successfully."}
