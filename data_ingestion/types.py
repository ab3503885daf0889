"""
Data Ingestion - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the block ingestion layer.

- Feed acknowledgment signal
- Ingestion result and metric tracking types
- Error types

============================================================
DESIGN PRINCIPLES
============================================================
- Clear typing for all fields
- No business logic
- Serializable for monitoring

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID, uuid4


RawBlockPayload = Mapping[str, Any]


# =============================================================
# ENUMS
# =============================================================

class IngestionSource(str, Enum):
    """Identifiers for block feeds."""
    CHAIN_SYNC_WS = "chain_sync_ws"
    IN_PROCESS = "in_process"


class IngestionStatus(str, Enum):
    """Status of a single block ingestion."""
    SUCCESS = "success"
    PARTIAL = "partial"  # in window, store write failed
    SKIPPED = "skipped"  # malformed payload


class AdvanceSignal(str, Enum):
    """What the feed should do after a block was handled."""
    NEXT_BLOCK = "next_block"


# =============================================================
# INGESTION RESULT TYPES
# =============================================================

@dataclass
class BlockIngestionResult:
    """Result of handling one delivered payload."""
    ingestion_id: UUID = field(default_factory=uuid4)
    block_id: Optional[str] = None
    status: IngestionStatus = IngestionStatus.SUCCESS
    outcome: Optional[str] = None  # inserted / already_exists / store_failed
    evicted_block_id: Optional[str] = None
    error: Optional[str] = None
    received_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/monitoring."""
        return {
            "ingestion_id": str(self.ingestion_id),
            "block_id": self.block_id,
            "status": self.status.value,
            "outcome": self.outcome,
            "evicted_block_id": self.evicted_block_id,
            "error": self.error,
            "received_at": self.received_at.isoformat() if self.received_at else None,
        }


@dataclass
class IngestionMetrics:
    """Aggregated counters for the ingestion service."""
    received: int = 0
    normalized: int = 0
    malformed: int = 0
    inserted: int = 0
    duplicates: int = 0
    store_failures: int = 0
    evicted: int = 0
    published: int = 0

    last_block_id: Optional[str] = None
    last_block_height: Optional[int] = None
    last_received_at: Optional[datetime] = None
    last_store_failure_at: Optional[datetime] = None
    recent_errors: List[str] = field(default_factory=list)

    max_recent_errors: int = 20

    def record_error(self, error: str) -> None:
        """Keep a short tail of recent errors."""
        self.recent_errors.append(error)
        if len(self.recent_errors) > self.max_recent_errors:
            self.recent_errors = self.recent_errors[-self.max_recent_errors:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "received": self.received,
            "normalized": self.normalized,
            "malformed": self.malformed,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "store_failures": self.store_failures,
            "evicted": self.evicted,
            "published": self.published,
            "last_block_id": self.last_block_id,
            "last_block_height": self.last_block_height,
            "last_received_at": (
                self.last_received_at.isoformat() if self.last_received_at else None
            ),
            "last_store_failure_at": (
                self.last_store_failure_at.isoformat() if self.last_store_failure_at else None
            ),
            "recent_errors": self.recent_errors[-5:],
        }


# =============================================================
# ERROR TYPES
# =============================================================

class IngestionError(Exception):
    """Base exception for ingestion errors."""

    def __init__(
        self,
        message: str,
        source: str,
        recoverable: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.recoverable = recoverable
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source": self.source,
            "recoverable": self.recoverable,
            "details": self.details,
        }


class MalformedPayload(IngestionError):
    """A block payload is missing required fields or has the wrong shape."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        raw_data: Optional[Any] = None,
        source: str = "normalizer",
    ):
        super().__init__(
            message,
            source=source,
            recoverable=True,
            details={"field": field_name} if field_name else None,
        )
        self.field_name = field_name
        self.raw_data = raw_data

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "field_name": self.field_name,
            "raw_data": str(self.raw_data)[:500] if self.raw_data is not None else None,
        })
        return data


class FeedError(IngestionError):
    """The upstream feed connection failed."""
    pass
