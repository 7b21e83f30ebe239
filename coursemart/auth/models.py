"""Database models for accounts.

Cassandra table definitions, per actor type:
- {table}: main account table keyed by id
- {table}_by_username: username claim, written with IF NOT EXISTS
- {table}_by_email: email claim, written with IF NOT EXISTS

The claim tables are what make username and email unique within an actor
type. The refresh_token cell holds the single live refresh token of the
account (empty string after logout) and is only ever rotated with a
conditional update on its previous value.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from coursemart.auth.actors import ActorType


if TYPE_CHECKING:
    from cassandra.cluster import Row


# CQL templates: "{table}" is substituted per actor type, "{keyspace}" at init
ACCOUNT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.{table} (
    id UUID PRIMARY KEY,
    username TEXT,
    email TEXT,
    contact TEXT,
    address TEXT,
    password_hash TEXT,
    refresh_token TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

ACCOUNT_BY_USERNAME_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.{table}_by_username (
    username TEXT PRIMARY KEY,
    account_id UUID
)
"""

ACCOUNT_BY_EMAIL_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.{table}_by_email (
    email TEXT PRIMARY KEY,
    account_id UUID
)
"""


def _tables_for(actor_type: ActorType) -> list[str]:
    return [
        cql.replace("{table}", actor_type.table)
        for cql in (
            ACCOUNT_TABLE_CQL,
            ACCOUNT_BY_USERNAME_TABLE_CQL,
            ACCOUNT_BY_EMAIL_TABLE_CQL,
        )
    ]


# All CQL statements for table setup
ACCOUNT_TABLES_CQL = [
    *_tables_for(ActorType.LEARNER),
    *_tables_for(ActorType.ADMINISTRATOR),
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


@dataclass
class Account:
    """Learner or administrator account.

    Attributes:
        id: Unique identifier (UUID)
        username: Unique handle within the actor type
        email: Unique email address within the actor type (lowercased)
        contact: 10 digit contact number
        address: Postal address
        password_hash: Argon2id hashed password
        refresh_token: Current refresh token, "" when logged out
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """

    username: str
    email: str
    contact: str
    address: str
    password_hash: str
    id: UUID = field(default_factory=uuid4)
    refresh_token: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Account":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            username=row.username,
            email=row.email,
            contact=row.contact or "",
            address=row.address or "",
            password_hash=row.password_hash,
            refresh_token=row.refresh_token or "",
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    def token_claims(self) -> dict[str, str]:
        """Display claims embedded in issued tokens."""
        return {
            "sub": str(self.id),
            "username": self.username,
            "email": self.email,
        }
