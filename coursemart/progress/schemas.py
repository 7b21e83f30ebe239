"""Pydantic schemas for course progress."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from coursemart.progress.models import ModuleCompletion


class ModuleProgressItem(BaseModel):
    """Completion state of one module."""

    module_id: UUID
    title: str
    is_completed: bool
    completed_at: datetime | None = None


class CourseProgressResponse(BaseModel):
    """Per-module completion of a course, in module creation order."""

    course_id: UUID
    modules: list[ModuleProgressItem]
    completed_modules: int
    total_modules: int
    completion_percentage: Decimal = Field(description="0-100, two decimals")


class ToggleModuleResponse(BaseModel):
    """Completion state after a toggle."""

    module_id: UUID
    course_id: UUID
    is_completed: bool
    completed_at: datetime | None = None

    @classmethod
    def from_entity(cls, completion: ModuleCompletion) -> "ToggleModuleResponse":
        return cls(
            module_id=completion.module_id,
            course_id=completion.course_id,
            is_completed=completion.completed,
            completed_at=completion.completed_at,
        )
