from enum import Enum

from pydantic import BaseModel, field_validator


class UserRole(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"


class UserRegister(BaseModel):
    name: str
    email: str
    password: str
    role: UserRole = UserRole.STUDENT

    @field_validator("name", "email", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("All fields are required.")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class UserLogin(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()
