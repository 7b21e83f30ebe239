"""Database models for courses and modules.

Cassandra table definitions for:
- courses: main course table
- courses_by_owner: lookup for an administrator's courses
- modules: main module table
- modules_by_course: modules of a course ordered by creation time, which is
  the order the progress aggregator reports them in
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from coursemart.auth.models import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    price INT,
    category TEXT,
    image_url TEXT,
    owner_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COURSES_BY_OWNER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses_by_owner (
    owner_id UUID,
    created_at TIMESTAMP,
    course_id UUID,
    PRIMARY KEY ((owner_id), created_at, course_id)
) WITH CLUSTERING ORDER BY (created_at DESC, course_id ASC)
"""

MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules (
    id UUID PRIMARY KEY,
    course_id UUID,
    admin_id UUID,
    title TEXT,
    description TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

MODULES_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules_by_course (
    course_id UUID,
    created_at TIMESTAMP,
    module_id UUID,
    admin_id UUID,
    title TEXT,
    description TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((course_id), created_at, module_id)
) WITH CLUSTERING ORDER BY (created_at ASC, module_id ASC)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSES_BY_OWNER_TABLE_CQL,
    MODULE_TABLE_CQL,
    MODULES_BY_COURSE_TABLE_CQL,
]


@dataclass
class Course:
    """A course sold on the platform.

    price is in major currency units; the gateway amount is price * 100.
    """

    title: str
    description: str
    price: int
    owner_id: UUID
    image_url: str = ""
    category: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Course":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title,
            description=row.description or "",
            price=row.price or 0,
            category=row.category,
            image_url=row.image_url or "",
            owner_id=row.owner_id,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "image_url": self.image_url,
            "owner_id": self.owner_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Module:
    """A learning module; belongs to one course and its creating administrator."""

    course_id: UUID
    admin_id: UUID
    title: str
    description: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Module":
        """Create instance from a modules row."""
        return cls._from(row, row.id)

    @classmethod
    def from_course_row(cls, row: "Row") -> "Module":
        """Create instance from a modules_by_course row."""
        return cls._from(row, row.module_id)

    @classmethod
    def _from(cls, row: "Row", module_id: UUID) -> "Module":
        return cls(
            id=module_id,
            course_id=row.course_id,
            admin_id=row.admin_id,
            title=row.title,
            description=row.description,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )
