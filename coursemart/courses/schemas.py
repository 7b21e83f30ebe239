"""Pydantic schemas for courses and modules."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from coursemart.auth.validators import validate_image_link
from coursemart.courses.models import Course, Module


# Blank after stripping fails min_length
Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def _check_image_link(v: str | None) -> str | None:
    if v is None or not v.strip():
        return None
    v = v.strip()
    result = validate_image_link(v)
    if not result.valid:
        raise ValueError(result.message)
    return v


class CourseCreateForm(BaseModel):
    """Course creation form (multipart, the image may come as a file)."""

    title: Title
    description: Text
    price: int = Field(..., ge=0, description="Price in major currency units")
    category: str | None = Field(None, max_length=100)
    image_link: str | None = Field(None, description="Image URL if no file is sent")

    @field_validator("image_link")
    @classmethod
    def validate_link(cls, v: str | None) -> str | None:
        return _check_image_link(v)


class CourseUpdateForm(BaseModel):
    """Course update form; every field is optional."""

    title: Title | None = None
    description: Text | None = None
    price: int | None = Field(None, ge=0)
    category: str | None = Field(None, max_length=100)
    image_link: str | None = None

    @field_validator("image_link")
    @classmethod
    def validate_link(cls, v: str | None) -> str | None:
        return _check_image_link(v)


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    price: int
    category: str | None
    image_url: str
    owner_id: UUID
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, course: Course) -> "CourseResponse":
        return cls(**course.to_dict())


class CourseListResponse(BaseModel):
    """List of courses."""

    items: list[CourseResponse]
    total: int

    @classmethod
    def from_entities(cls, courses: list[Course]) -> "CourseListResponse":
        return cls(
            items=[CourseResponse.from_entity(c) for c in courses],
            total=len(courses),
        )


class CreateModuleRequest(BaseModel):
    """Module creation request."""

    title: Title
    description: str | None = None


class UpdateModuleRequest(BaseModel):
    """Module update request."""

    title: Title | None = None
    description: str | None = None


class ModuleResponse(BaseModel):
    """Module response."""

    id: UUID
    course_id: UUID
    admin_id: UUID
    title: str
    description: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, module: Module) -> "ModuleResponse":
        return cls(
            id=module.id,
            course_id=module.course_id,
            admin_id=module.admin_id,
            title=module.title,
            description=module.description,
            created_at=module.created_at,
            updated_at=module.updated_at,
        )


class ModuleListResponse(BaseModel):
    """Modules of a course in creation order."""

    course_id: UUID
    items: list[ModuleResponse]
