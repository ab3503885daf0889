"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to the analytics store.
All ClickHouse access outside of migrations goes through
repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. Client Injection: The ClickHouse client is injected, not created
2. Explicit Methods: No generic 'execute', clear method names
3. Append-Only: Blocks are inserted, never updated
4. Exception Handling: Store errors wrapped in repository exceptions

============================================================
USAGE
============================================================

    from storage.clickhouse import ClickHouseClient
    from storage.repositories import BlockRepository

    async def store(client: ClickHouseClient, block):
        repo = BlockRepository(client)
        return await repo.persist_if_new(block)

============================================================
"""

# =============================================================
# EXCEPTIONS
# =============================================================
from storage.repositories.exceptions import (
    RepositoryException,
    WriteError,
    StoreLookupError,
    QueryError,
    SchemaError,
)

# =============================================================
# BASE REPOSITORY
# =============================================================
from storage.repositories.base import BaseRepository

# =============================================================
# BLOCK REPOSITORY
# =============================================================
from storage.repositories.block_repository import (
    BLOCK_COLUMNS,
    BlockRepository,
    BlockStats,
    PersistOutcome,
)

# =============================================================
# PUBLIC API
# =============================================================
__all__ = [
    # Exceptions
    "RepositoryException",
    "WriteError",
    "StoreLookupError",
    "QueryError",
    "SchemaError",

    # Base
    "BaseRepository",

    # Blocks
    "BLOCK_COLUMNS",
    "BlockRepository",
    "BlockStats",
    "PersistOutcome",
]
