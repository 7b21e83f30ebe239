"""Progress service layer.

Business logic for:
- Course progress aggregation (per-module completion + percentage)
- Module completion toggle
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from coursemart.core.errors import ConflictError, NotFoundError
from coursemart.core.logging import get_logger
from coursemart.courses.models import Module
from coursemart.courses.service import ModuleService
from coursemart.progress.models import ModuleCompletion
from coursemart.progress.schemas import CourseProgressResponse, ModuleProgressItem


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)

MAX_TOGGLE_ATTEMPTS = 3
TWO_PLACES = Decimal("0.01")


class NoModulesError(NotFoundError):
    """Course has no modules, so it has no progress percentage."""

    def __init__(self, message: str = "No modules found for this course"):
        super().__init__(message, "no_modules")


def completion_percentage(completed: int, total: int) -> Decimal:
    """completed / total * 100 rounded half-up to two decimals."""
    if total <= 0:
        raise NoModulesError
    return (Decimal(completed) * 100 / Decimal(total)).quantize(
        TWO_PLACES, rounding=ROUND_HALF_UP
    )


class ProgressService:
    """Service for module completion tracking."""

    def __init__(self, session: "Session", keyspace: str, module_service: ModuleService):
        """Initialize with Cassandra session.

        Args:
            session: Cassandra driver session
            keyspace: Keyspace name for queries
            module_service: Source of a course's modules
        """
        self.session = session
        self.keyspace = keyspace
        self.module_service = module_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_course_completions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.module_completions
            WHERE learner_id = ? AND course_id = ?
        """)
        self._get_completion = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.module_completions
            WHERE learner_id = ? AND course_id = ? AND module_id = ?
        """)
        self._insert_completion = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.module_completions
            (learner_id, course_id, module_id, completed, completed_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._flip_completion = self.session.prepare(f"""
            UPDATE {self.keyspace}.module_completions
            SET completed = ?, completed_at = ?, updated_at = ?
            WHERE learner_id = ? AND course_id = ? AND module_id = ?
            IF completed = ?
        """)

    async def _get_completion_record(
        self, learner_id: UUID, course_id: UUID, module_id: UUID
    ) -> ModuleCompletion | None:
        result = await self.session.aexecute(
            self._get_completion, [learner_id, course_id, module_id]
        )
        row = result.one()
        return ModuleCompletion.from_row(row) if row else None

    # ==========================================================================
    # Course Progress Queries
    # ==========================================================================

    async def get_course_progress(
        self,
        learner_id: UUID,
        course_id: UUID,
    ) -> CourseProgressResponse:
        """Completion of every module of a course for a learner.

        A module counts as completed only if its record exists with
        completed = true.

        Raises:
            NoModulesError: If the course has no modules
        """
        modules = await self.module_service.list_course_modules(course_id)
        if not modules:
            raise NoModulesError

        rows = await self.session.aexecute(
            self._get_course_completions, [learner_id, course_id]
        )
        completions = {
            record.module_id: record
            for record in (ModuleCompletion.from_row(row) for row in rows)
        }

        items = []
        for module in modules:
            record = completions.get(module.id)
            done = record is not None and record.completed
            items.append(
                ModuleProgressItem(
                    module_id=module.id,
                    title=module.title,
                    is_completed=done,
                    completed_at=record.completed_at if done else None,
                )
            )

        completed = sum(1 for item in items if item.is_completed)
        return CourseProgressResponse(
            course_id=course_id,
            modules=items,
            completed_modules=completed,
            total_modules=len(items),
            completion_percentage=completion_percentage(completed, len(items)),
        )

    # ==========================================================================
    # Toggle
    # ==========================================================================

    async def toggle_module_status(
        self, learner_id: UUID, module: Module
    ) -> ModuleCompletion:
        """Flip a module's completion for a learner.

        A missing record counts as not completed and is created completed.
        Each write is conditional on the value that was read; a lost race is
        re-read and retried.

        Raises:
            ConflictError: If the record keeps changing under concurrent toggles
        """
        for _ in range(MAX_TOGGLE_ATTEMPTS):
            current = await self._get_completion_record(
                learner_id, module.course_id, module.id
            )
            now = datetime.now(UTC)

            if current is None:
                record = ModuleCompletion(
                    learner_id=learner_id,
                    course_id=module.course_id,
                    module_id=module.id,
                    completed=True,
                    completed_at=now,
                    updated_at=now,
                )
                result = await self.session.aexecute(
                    self._insert_completion,
                    [
                        record.learner_id,
                        record.course_id,
                        record.module_id,
                        record.completed,
                        record.completed_at,
                        record.updated_at,
                    ],
                )
            else:
                record = ModuleCompletion(
                    learner_id=learner_id,
                    course_id=module.course_id,
                    module_id=module.id,
                    completed=not current.completed,
                    completed_at=None if current.completed else now,
                    updated_at=now,
                )
                result = await self.session.aexecute(
                    self._flip_completion,
                    [
                        record.completed,
                        record.completed_at,
                        record.updated_at,
                        learner_id,
                        module.course_id,
                        module.id,
                        current.completed,
                    ],
                )

            if result.was_applied:
                logger.info(
                    "module_status_toggled",
                    learner_id=str(learner_id),
                    module_id=str(module.id),
                    completed=record.completed,
                )
                return record

            logger.debug("module_toggle_retry", module_id=str(module.id))

        raise ConflictError("Module status changed concurrently, try again", "toggle_conflict")
