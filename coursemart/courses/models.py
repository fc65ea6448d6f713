from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    MEDIUM = "Medium"
    ADVANCE = "Advance"


class PriceSort(str, Enum):
    LOW = "low"
    HIGH = "high"


# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    courseTitle: str
    category: str

    @field_validator("courseTitle", "category")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Course title and category is required.")
        return v.strip()


# ==================== LECTURE MODELS ====================

class LectureCreate(BaseModel):
    lectureTitle: str

    @field_validator("lectureTitle")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Lecture title is required")
        return v.strip()


class VideoInfo(BaseModel):
    videoUrl: Optional[str] = None
    publicId: Optional[str] = None


class LectureUpdate(BaseModel):
    lectureTitle: Optional[str] = None
    videoInfo: Optional[VideoInfo] = None
    isPreviewFree: bool = False
