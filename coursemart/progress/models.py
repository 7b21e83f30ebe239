"""Database models for module completion tracking.

Cassandra table definitions for:
- module_completions: one record per (learner, course, module)

Partition key (learner_id, course_id) so a course's progress is one
partition read.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from coursemart.auth.models import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

MODULE_COMPLETION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_completions (
    learner_id UUID,
    course_id UUID,
    module_id UUID,
    completed BOOLEAN,
    completed_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((learner_id, course_id), module_id)
)
"""

PROGRESS_TABLES_CQL = [
    MODULE_COMPLETION_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass
class ModuleCompletion:
    """Completion record of a module for a learner.

    completed_at is set when the record turns complete and cleared otherwise.
    """

    learner_id: UUID
    course_id: UUID
    module_id: UUID
    completed: bool = False
    completed_at: datetime | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "ModuleCompletion":
        """Create instance from Cassandra row."""
        return cls(
            learner_id=row.learner_id,
            course_id=row.course_id,
            module_id=row.module_id,
            completed=bool(row.completed),
            completed_at=ensure_utc_aware(row.completed_at),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )
