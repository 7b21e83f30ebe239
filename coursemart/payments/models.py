"""Database models for payments.

Cassandra table definitions for:
- payments: main table (by payment ID)
- payments_by_order: gateway order ID -> payment IDs
- payments_by_learner: a learner's payments, newest first
- payments_by_admin: payments for an administrator's courses, newest first

Status only moves pending -> success, guarded by IF status = 'pending'.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from coursemart.auth.models import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


class PaymentStatus(str, Enum):
    """Payment states."""

    PENDING = "pending"
    SUCCESS = "success"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PAYMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments (
    id UUID PRIMARY KEY,
    learner_id UUID,
    course_id UUID,
    admin_id UUID,
    amount INT,
    currency TEXT,
    receipt TEXT,
    status TEXT,
    gateway_order_id TEXT,
    gateway_payment_id TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

PAYMENTS_BY_ORDER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments_by_order (
    gateway_order_id TEXT,
    payment_id UUID,
    PRIMARY KEY ((gateway_order_id), payment_id)
)
"""

PAYMENTS_BY_LEARNER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments_by_learner (
    learner_id UUID,
    created_at TIMESTAMP,
    payment_id UUID,
    course_id UUID,
    PRIMARY KEY ((learner_id), created_at, payment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, payment_id ASC)
"""

PAYMENTS_BY_ADMIN_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments_by_admin (
    admin_id UUID,
    created_at TIMESTAMP,
    payment_id UUID,
    PRIMARY KEY ((admin_id), created_at, payment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, payment_id ASC)
"""

PAYMENTS_TABLES_CQL = [
    PAYMENT_TABLE_CQL,
    PAYMENTS_BY_ORDER_TABLE_CQL,
    PAYMENTS_BY_LEARNER_TABLE_CQL,
    PAYMENTS_BY_ADMIN_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass
class Payment:
    """A course purchase.

    amount is the course price in major currency units at order time;
    the gateway order carries amount * 100.
    """

    learner_id: UUID
    course_id: UUID
    admin_id: UUID
    amount: int
    gateway_order_id: str
    currency: str = "INR"
    receipt: str = ""
    status: PaymentStatus = PaymentStatus.PENDING
    gateway_payment_id: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_successful(self) -> bool:
        return self.status == PaymentStatus.SUCCESS

    @classmethod
    def from_row(cls, row: "Row") -> "Payment":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            learner_id=row.learner_id,
            course_id=row.course_id,
            admin_id=row.admin_id,
            amount=row.amount or 0,
            currency=row.currency or "INR",
            receipt=row.receipt or "",
            status=PaymentStatus(row.status or PaymentStatus.PENDING.value),
            gateway_order_id=row.gateway_order_id,
            gateway_payment_id=row.gateway_payment_id,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "learner_id": self.learner_id,
            "course_id": self.course_id,
            "admin_id": self.admin_id,
            "amount": self.amount,
            "currency": self.currency,
            "receipt": self.receipt,
            "status": self.status.value,
            "gateway_order_id": self.gateway_order_id,
            "gateway_payment_id": self.gateway_payment_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
