"""Async Cassandra connection using cassandra-asyncio-driver.

Provides:
- Cluster and session lifecycle
- Session with aexecute() for non-blocking queries
- Keyspace and table creation at startup
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from pepyatka.comments.models import COMMENTS_TABLES_CQL
from pepyatka.config.settings import get_settings
from pepyatka.groups.models import GROUPS_TABLES_CQL
from pepyatka.posts.models import POSTS_TABLES_CQL
from pepyatka.users.models import USERS_TABLES_CQL


logger = structlog.get_logger(__name__)

SCHEMA = {
    "users": USERS_TABLES_CQL,
    "groups": GROUPS_TABLES_CQL,
    "posts": POSTS_TABLES_CQL,
    "comments": COMMENTS_TABLES_CQL,
}


class AsyncCassandraConnection:
    """Cluster connection and session lifecycle.

    Connecting is synchronous; queries run through the session's aexecute().
    """

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls):
        """Establish connection to the Cassandra cluster.

        Raises:
            ConnectionError: If connection fails
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error("cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        cls._session.default_timeout = settings.cassandra_request_timeout
        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
            protocol_version=settings.cassandra_protocol_version,
        )
        return cls._session

    @classmethod
    def get_session(cls):
        if cls._session is None:
            return cls.connect()
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
            logger.info("cassandra_session_closed")

        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_cluster_closed")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


def get_async_cassandra_session():
    """Get async-capable Cassandra session (dependency injection helper)."""
    return AsyncCassandraConnection.get_session()


def replication_options(is_production: bool, replication_factor: int) -> str:
    """CQL replication map for the keyspace."""
    if is_production:
        return (
            "{'class': 'NetworkTopologyStrategy', "
            f"'datacenter1': {replication_factor}}}"
        )
    return f"{{'class': 'SimpleStrategy', 'replication_factor': {replication_factor}}}"


async def init_async_keyspace(session, keyspace: str) -> None:
    """Create keyspace if not exists."""
    settings = get_settings()
    replication = replication_options(
        settings.is_production, settings.cassandra_replication_factor
    )
    cql = f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {replication}
        AND durable_writes = true
    """
    await session.aexecute(cql)
    logger.info("keyspace_created", keyspace=keyspace)


async def init_async_tables(session, keyspace: str) -> None:
    """Create every module's tables."""
    for module, statements in SCHEMA.items():
        for cql_template in statements:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.info("tables_created", module=module, keyspace=keyspace)


async def init_async_cassandra():
    """Connect, then create keyspace and tables if they don't exist.

    Returns:
        Configured Cassandra session with aexecute() support
    """
    settings = get_settings()
    session = AsyncCassandraConnection.connect()

    await init_async_keyspace(session, settings.cassandra_keyspace)
    session.set_keyspace(settings.cassandra_keyspace)
    await init_async_tables(session, settings.cassandra_keyspace)

    logger.info("cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()
