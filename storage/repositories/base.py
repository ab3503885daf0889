"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Provides common functionality for all repositories including:
- Client injection
- Error handling wrappers
- Common query operations
- Logging setup

============================================================
USAGE
============================================================
Domain repositories inherit from BaseRepository.
The ClickHouse client is injected via the constructor.

============================================================
"""

import logging
from abc import ABC
from typing import Any, Dict, List, Mapping, Optional

from storage.clickhouse import ClickHouseClient, ClickHouseError
from storage.repositories.exceptions import QueryError


class BaseRepository(ABC):
    """
    Abstract base class for all repositories.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Wraps store client errors in repository exceptions
    - Manages logging for all operations
    - Owns the table name it reads and writes

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository):
        def __init__(self, client: ClickHouseClient):
            super().__init__(client, "my_table", "MyRepository")

    ============================================================
    """

    def __init__(
        self,
        client: ClickHouseClient,
        table: str,
        repository_name: str
    ) -> None:
        """
        Initialize the repository.

        Args:
            client: ClickHouse client (injected)
            table: Table this repository manages
            repository_name: Name for logging and error messages
        """
        self._client = client
        self._table = table
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def client(self) -> ClickHouseClient:
        return self._client

    @property
    def table(self) -> str:
        return self._table

    @property
    def repository_name(self) -> str:
        return self._repository_name

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _log_store_error(
        self,
        error: ClickHouseError,
        operation: str,
        context: Optional[dict] = None
    ) -> None:
        self._logger.error(
            f"Store error in {operation}: {error}",
            extra={"context": context or {}},
        )

    async def _select(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        operation: str = "query",
    ) -> List[Dict[str, Any]]:
        """
        Run a read query.

        Raises:
            QueryError: If the store call fails
        """
        try:
            return await self._client.query(sql, params)
        except ClickHouseError as e:
            self._log_store_error(e, operation, dict(params or {}))
            raise QueryError(
                repository_name=self._repository_name,
                operation=operation,
                query_description=operation,
                original_error=str(e),
            ) from e

    async def _select_one(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        operation: str = "query_one",
    ) -> Optional[Dict[str, Any]]:
        rows = await self._select(sql, params, operation)
        return rows[0] if rows else None
