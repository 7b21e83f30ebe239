"""Course and module service layer.

Business logic for:
- Course CRUD with image upload or image link
- Module CRUD
- Ownership checks (an administrator manages only the courses they own)
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from coursemart.core.errors import ForbiddenError, NotFoundError, ValidationError
from coursemart.courses.models import Course, Module
from coursemart.courses.schemas import (
    CourseCreateForm,
    CourseUpdateForm,
    CreateModuleRequest,
    UpdateModuleRequest,
)
from coursemart.storage.service import (
    FirebaseStorageService,
    ImageUpload,
    StorageNotConfiguredError,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class CourseNotFoundError(NotFoundError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class ModuleNotFoundError(NotFoundError):
    """Module not found."""

    def __init__(self, message: str = "Module not found"):
        super().__init__(message, "module_not_found")


class NotCourseOwnerError(ForbiddenError):
    """Administrator does not own the course."""

    def __init__(self, message: str = "You do not own this course"):
        super().__init__(message, "not_course_owner")


class CourseService:
    """Courses, their images and their owners."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        storage: FirebaseStorageService | None = None,
    ):
        self.session = session
        self.keyspace = keyspace
        self.storage = storage
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._list_courses = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses LIMIT ?"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, description, price, category, image_url, owner_id,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_course = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET title = ?, description = ?, price = ?, category = ?,
                image_url = ?, updated_at = ?
            WHERE id = ?
        """)
        self._delete_course = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses WHERE id = ?"
        )

        # Owner lookup table
        self._insert_course_by_owner = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses_by_owner
            (owner_id, created_at, course_id)
            VALUES (?, ?, ?)
        """)
        self._delete_course_by_owner = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses_by_owner "
            "WHERE owner_id = ? AND created_at = ? AND course_id = ?"
        )
        self._get_courses_by_owner = self.session.prepare(
            f"SELECT course_id FROM {self.keyspace}.courses_by_owner WHERE owner_id = ?"
        )

        # Modules removed together with their course
        self._get_course_module_ids = self.session.prepare(
            f"SELECT module_id FROM {self.keyspace}.modules_by_course WHERE course_id = ?"
        )
        self._delete_module = self.session.prepare(
            f"DELETE FROM {self.keyspace}.modules WHERE id = ?"
        )
        self._delete_course_modules = self.session.prepare(
            f"DELETE FROM {self.keyspace}.modules_by_course WHERE course_id = ?"
        )

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def require_course(self, course_id: UUID) -> Course:
        """Get course by ID or raise CourseNotFoundError."""
        course = await self.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def require_owned_course(self, course_id: UUID, admin_id: UUID) -> Course:
        """Get a course the administrator owns.

        Raises:
            CourseNotFoundError: If the course does not exist
            NotCourseOwnerError: If another administrator owns it
        """
        course = await self.require_course(course_id)
        if course.owner_id != admin_id:
            raise NotCourseOwnerError
        return course

    async def list_courses(self, limit: int = 100) -> list[Course]:
        """List courses."""
        rows = await self.session.aexecute(self._list_courses, [limit])
        return [Course.from_row(row) for row in rows]

    async def get_courses(self, course_ids: list[UUID]) -> list[Course]:
        """Fetch courses by ID, skipping ones that no longer exist."""
        courses = []
        for course_id in course_ids:
            course = await self.get_course(course_id)
            if course:
                courses.append(course)
        return courses

    async def list_courses_by_owner(self, owner_id: UUID) -> list[Course]:
        """List courses created by an administrator, newest first."""
        rows = await self.session.aexecute(self._get_courses_by_owner, [owner_id])
        return await self.get_courses([row.course_id for row in rows])

    async def _resolve_image(
        self,
        course_id: UUID,
        image: ImageUpload | None,
        image_link: str | None,
    ) -> str | None:
        """Upload the file if one was sent, else fall back to the link."""
        if image is not None:
            if self.storage is None:
                raise StorageNotConfiguredError
            return await self.storage.upload_image(image, str(course_id))
        return image_link

    async def create_course(
        self,
        owner_id: UUID,
        data: CourseCreateForm,
        image: ImageUpload | None = None,
    ) -> Course:
        """Create a course.

        Raises:
            ValidationError: If neither an image file nor an image link is given
            UpstreamError: If the image upload fails
        """
        if image is None and not data.image_link:
            raise ValidationError("Image file or image link is required", field="image_link")

        course = Course(
            title=data.title,
            description=data.description,
            price=data.price,
            category=data.category,
            owner_id=owner_id,
        )
        course.image_url = await self._resolve_image(course.id, image, data.image_link) or ""

        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.description,
                course.price,
                course.category,
                course.image_url,
                course.owner_id,
                course.created_at,
                course.updated_at,
            ],
        )
        await self.session.aexecute(
            self._insert_course_by_owner,
            [course.owner_id, course.created_at, course.id],
        )

        logger.info(
            "course_created",
            course_id=str(course.id),
            owner_id=str(owner_id),
            price=course.price,
        )
        return course

    async def update_course(
        self,
        course_id: UUID,
        admin_id: UUID,
        data: CourseUpdateForm,
        image: ImageUpload | None = None,
    ) -> Course:
        """Update an owned course."""
        course = await self.require_owned_course(course_id, admin_id)

        for name, value in data.model_dump(exclude_none=True, exclude={"image_link"}).items():
            setattr(course, name, value)

        new_image = await self._resolve_image(course.id, image, data.image_link)
        if new_image:
            course.image_url = new_image

        course.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._update_course,
            [
                course.title,
                course.description,
                course.price,
                course.category,
                course.image_url,
                course.updated_at,
                course.id,
            ],
        )

        logger.info("course_updated", course_id=str(course.id))
        return course

    async def delete_course(self, course_id: UUID, admin_id: UUID) -> None:
        """Delete an owned course and its modules.

        Payments referencing the course are kept.
        """
        course = await self.require_owned_course(course_id, admin_id)

        rows = await self.session.aexecute(self._get_course_module_ids, [course.id])
        for row in rows:
            await self.session.aexecute(self._delete_module, [row.module_id])
        await self.session.aexecute(self._delete_course_modules, [course.id])

        await self.session.aexecute(
            self._delete_course_by_owner,
            [course.owner_id, course.created_at, course.id],
        )
        await self.session.aexecute(self._delete_course, [course.id])

        logger.info("course_deleted", course_id=str(course.id))


class ModuleService:
    """Modules, dual written to modules and modules_by_course."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_module_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.modules WHERE id = ?"
        )
        self._insert_module = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.modules
            (id, course_id, admin_id, title, description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_module = self.session.prepare(f"""
            UPDATE {self.keyspace}.modules
            SET title = ?, description = ?, updated_at = ?
            WHERE id = ?
        """)
        self._delete_module = self.session.prepare(
            f"DELETE FROM {self.keyspace}.modules WHERE id = ?"
        )

        # Course ordering table (dual write)
        self._get_course_modules = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.modules_by_course WHERE course_id = ?"
        )
        self._upsert_module_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.modules_by_course
            (course_id, created_at, module_id, admin_id, title, description, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._delete_module_by_course = self.session.prepare(
            f"DELETE FROM {self.keyspace}.modules_by_course "
            "WHERE course_id = ? AND created_at = ? AND module_id = ?"
        )

    async def get_module(self, module_id: UUID) -> Module | None:
        """Get module by ID."""
        result = await self.session.aexecute(self._get_module_by_id, [module_id])
        row = result.one()
        return Module.from_row(row) if row else None

    async def require_module(self, module_id: UUID) -> Module:
        """Get module by ID or raise ModuleNotFoundError."""
        module = await self.get_module(module_id)
        if module is None:
            raise ModuleNotFoundError
        return module

    async def list_course_modules(self, course_id: UUID) -> list[Module]:
        """Modules of a course in creation order."""
        rows = await self.session.aexecute(self._get_course_modules, [course_id])
        return [Module.from_course_row(row) for row in rows]

    async def _write(self, module: Module) -> None:
        await self.session.aexecute(
            self._upsert_module_by_course,
            [
                module.course_id,
                module.created_at,
                module.id,
                module.admin_id,
                module.title,
                module.description,
                module.updated_at,
            ],
        )

    async def create_module(
        self, course_id: UUID, admin_id: UUID, data: CreateModuleRequest
    ) -> Module:
        """Create a module in a course."""
        module = Module(
            course_id=course_id,
            admin_id=admin_id,
            title=data.title,
            description=data.description,
        )

        await self.session.aexecute(
            self._insert_module,
            [
                module.id,
                module.course_id,
                module.admin_id,
                module.title,
                module.description,
                module.created_at,
                module.updated_at,
            ],
        )
        await self._write(module)

        logger.info(
            "module_created",
            module_id=str(module.id),
            course_id=str(course_id),
        )
        return module

    async def update_module(self, module: Module, data: UpdateModuleRequest) -> Module:
        """Update title/description of a module."""
        for name, value in data.model_dump(exclude_none=True).items():
            setattr(module, name, value)
        module.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_module,
            [module.title, module.description, module.updated_at, module.id],
        )
        await self._write(module)

        logger.info("module_updated", module_id=str(module.id))
        return module

    async def delete_module(self, module: Module) -> None:
        """Delete a module.

        Completion records of the module are not touched; they no longer
        match any module of the course and drop out of progress results.
        """
        await self.session.aexecute(
            self._delete_module_by_course,
            [module.course_id, module.created_at, module.id],
        )
        await self.session.aexecute(self._delete_module, [module.id])

        logger.info("module_deleted", module_id=str(module.id))
