"""Async Cassandra connection for progress persistence.

Uses cassandra-asyncio-driver, whose sessions add ``aexecute()`` on top of
the standard cassandra-driver API. Connecting is synchronous; queries are
awaited.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from lesson_viewer.config.settings import Settings
from lesson_viewer.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)


class AsyncCassandraConnection:
    """Cluster and session lifecycle for one application instance."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._cluster: Cluster | None = None
        self._session = None  # cassandra_asyncio session

    def connect(self):
        """Connect to the cluster, reusing an open session.

        Raises:
            ConnectionError: If the cluster cannot be reached
        """
        if self._session is not None:
            return self._session

        settings = self.settings
        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        self._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            self._session = self._cluster.connect()
        except Exception as e:
            logger.error("cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return self._session

    @property
    def session(self):
        return self._session

    def is_connected(self) -> bool:
        return self._session is not None and not self._session.is_shutdown

    def disconnect(self) -> None:
        if self._session is not None:
            self._session.shutdown()
            self._session = None
        if self._cluster is not None:
            self._cluster.shutdown()
            self._cluster = None
        logger.info("cassandra_disconnected")


async def init_keyspace(session, keyspace: str, production: bool = False) -> None:
    """Create the keyspace if it does not exist."""
    if production:
        replication = "'class': 'NetworkTopologyStrategy', 'datacenter1': 3"
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )
    logger.info("keyspace_ready", keyspace=keyspace)


async def init_progress_tables(session, keyspace: str) -> None:
    """Create lesson, enrollment and progress tables."""
    for cql_template in PROGRESS_TABLES_CQL:
        await session.aexecute(cql_template.format(keyspace=keyspace))
    logger.info("progress_tables_ready", keyspace=keyspace, tables=len(PROGRESS_TABLES_CQL))


async def init_async_cassandra(connection: AsyncCassandraConnection):
    """Connect and make sure the schema exists.

    Returns:
        Session with aexecute() support, bound to the configured keyspace
    """
    settings = connection.settings
    session = connection.connect()

    await init_keyspace(session, settings.cassandra_keyspace, settings.is_production)
    session.set_keyspace(settings.cassandra_keyspace)
    await init_progress_tables(session, settings.cassandra_keyspace)

    logger.info("cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session
