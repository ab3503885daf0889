"""
Storage Package.

This package manages block persistence in ClickHouse.

Modules:
- clickhouse: HTTP client for the analytics store
- repositories/: Data access layer
- migrations/: Schema migrations
"""

from storage.clickhouse import ClickHouseClient, ClickHouseError
from storage.migrations import apply_migrations
from storage.repositories import (
    BlockRepository,
    BlockStats,
    PersistOutcome,
    QueryError,
    RepositoryException,
    SchemaError,
    StoreLookupError,
    WriteError,
)

__all__ = [
    "ClickHouseClient",
    "ClickHouseError",
    "apply_migrations",
    "BlockRepository",
    "BlockStats",
    "PersistOutcome",
    "QueryError",
    "RepositoryException",
    "SchemaError",
    "StoreLookupError",
    "WriteError",
]
