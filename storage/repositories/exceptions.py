"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Defines repository-specific exceptions for proper error handling
and propagation. All store client errors must be caught and wrapped
in these exceptions.

============================================================
USAGE
============================================================
Repositories catch ClickHouseError and re-raise as repository
exceptions with context.

The ingestion service treats every RepositoryException as a
best-effort failure; dashboard services degrade them to empty
results.

============================================================
"""

from typing import Any, Dict, Optional


class RepositoryException(Exception):
    """
    Base exception for all repository operations.

    All repository-specific exceptions inherit from this class.
    Callers can catch this for generic error handling.
    """

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.repository_name}] {self.operation}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "repository_name": self.repository_name,
            "operation": self.operation,
            "details": self.details,
        }


class WriteError(RepositoryException):
    """
    Raised when the store is unreachable, rejects a write,
    or answers a write with something unusable.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str,
        block_ids: Optional[list] = None,
    ) -> None:
        super().__init__(
            message=f"Write failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={
                "original_error": original_error,
                "block_ids": (block_ids or [])[:10],
            }
        )
        self.block_ids = block_ids or []


class StoreLookupError(RepositoryException):
    """
    Raised when an existence check cannot be answered.

    Callers deciding whether to insert should treat this as
    "unknown" rather than "exists".
    """

    def __init__(
        self,
        repository_name: str,
        key: Any,
        original_error: str,
    ) -> None:
        super().__init__(
            message=f"Lookup of {key} failed: {original_error}",
            repository_name=repository_name,
            operation="exists",
            details={"key": str(key), "original_error": original_error}
        )
        self.key = key


class QueryError(RepositoryException):
    """
    Raised when a read query fails.

    Use for connection problems, syntax errors and malformed responses
    on the read path.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        query_description: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Query failed ({query_description}): {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={
                "query_description": query_description,
                "original_error": original_error
            }
        )


class SchemaError(RepositoryException):
    """
    Raised when a schema migration cannot be applied.
    """

    def __init__(
        self,
        repository_name: str,
        migration: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Migration {migration} failed: {original_error}",
            repository_name=repository_name,
            operation="migrate",
            details={"migration": migration, "original_error": original_error}
        )
        self.migration = migration
