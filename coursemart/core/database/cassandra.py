"""Cassandra cluster lifecycle and schema bootstrap.

The session comes from cassandra-asyncio-driver, so services await
session.aexecute() instead of blocking the event loop. Atomic
read-modify-write goes through lightweight transactions (IF NOT EXISTS,
IF col = ?) and the row's [applied] flag.
"""

from typing import Any

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import Session
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from coursemart.auth.models import ACCOUNT_TABLES_CQL
from coursemart.config.settings import Settings, get_settings
from coursemart.courses.models import COURSES_TABLES_CQL
from coursemart.payments.models import PAYMENTS_TABLES_CQL
from coursemart.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)

SCHEMA: tuple[tuple[str, list[str]], ...] = (
    ("accounts", ACCOUNT_TABLES_CQL),
    ("courses", COURSES_TABLES_CQL),
    ("progress", PROGRESS_TABLES_CQL),
    ("payments", PAYMENTS_TABLES_CQL),
)

_SIMPLE_REPLICATION = "{'class': 'SimpleStrategy', 'replication_factor': 1}"
_PRODUCTION_REPLICATION = "{'class': 'NetworkTopologyStrategy', 'datacenter1': 3}"


class AsyncCassandraConnection:
    """Owns one cluster and the session opened on it."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.cluster: Cluster | None = None
        self.session: Session | None = None

    def _build_cluster(self) -> Cluster:
        s = self.settings
        auth: Any = None
        if s.cassandra_username and s.cassandra_password:
            auth = PlainTextAuthProvider(
                username=s.cassandra_username, password=s.cassandra_password
            )
        return Cluster(
            contact_points=s.cassandra_hosts,
            port=s.cassandra_port,
            auth_provider=auth,
            protocol_version=s.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=s.cassandra_connect_timeout,
        )

    def connect(self) -> Session:
        """Open the session, once.

        Raises:
            ConnectionError: No contact point answered.
        """
        if self.session is not None:
            return self.session

        self.cluster = self._build_cluster()
        try:
            self.session = self.cluster.connect()
        except Exception as e:
            logger.error(
                "cassandra_connection_failed",
                hosts=self.settings.cassandra_hosts,
                error=str(e),
            )
            self.cluster.shutdown()
            self.cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=self.settings.cassandra_hosts,
            port=self.settings.cassandra_port,
        )
        return self.session

    @property
    def is_connected(self) -> bool:
        return self.session is not None and not self.session.is_shutdown

    async def create_schema(self) -> None:
        """Keyspace and every table, all idempotent."""
        assert self.session is not None
        keyspace = self.settings.cassandra_keyspace
        replication = (
            _PRODUCTION_REPLICATION if self.settings.is_production else _SIMPLE_REPLICATION
        )
        await self.session.aexecute(
            f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
            f"WITH replication = {replication} AND durable_writes = true"
        )
        self.session.set_keyspace(keyspace)

        for group, statements in SCHEMA:
            for cql in statements:
                await self.session.aexecute(cql.format(keyspace=keyspace))
            logger.debug("cassandra_tables_ready", group=group, keyspace=keyspace)

    def close(self) -> None:
        if self.session is not None:
            self.session.shutdown()
            self.session = None
        if self.cluster is not None:
            self.cluster.shutdown()
            self.cluster = None
        logger.info("cassandra_closed")


_connection: AsyncCassandraConnection | None = None


async def init_async_cassandra() -> Session:
    """Connect, create the schema and return the shared session."""
    global _connection
    if _connection is None:
        _connection = AsyncCassandraConnection(get_settings())

    session = _connection.connect()
    await _connection.create_schema()
    logger.info("cassandra_initialized", keyspace=_connection.settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    global _connection
    if _connection is not None:
        _connection.close()
        _connection = None
