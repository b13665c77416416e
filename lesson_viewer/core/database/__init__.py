"""Database connection module."""

from lesson_viewer.core.database.async_cassandra import (
    AsyncCassandraConnection,
    init_async_cassandra,
    init_keyspace,
    init_progress_tables,
)


__all__ = [
    "AsyncCassandraConnection",
    "init_async_cassandra",
    "init_keyspace",
    "init_progress_tables",
]
