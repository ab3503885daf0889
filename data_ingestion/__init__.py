"""
Data Ingestion Package.

This package turns delivered block payloads into canonical records
and hands them to the window, the store and live consumers.

Sub-packages:
- feeds: Block delivery (websocket relay, in-process queue)
- normalizers: Payload normalization to CanonicalBlock

Main service:
- ingestion_service: Coordinates handling of each delivered block.
  Import it from its module; it depends on storage and realtime,
  which themselves import data_ingestion.models.
"""

from data_ingestion.models import CanonicalBlock
from data_ingestion.types import (
    AdvanceSignal,
    BlockIngestionResult,
    FeedError,
    IngestionError,
    IngestionMetrics,
    IngestionSource,
    IngestionStatus,
    MalformedPayload,
    RawBlockPayload,
)
from data_ingestion.normalizers import BlockNormalizer
from data_ingestion.feeds import BlockHandler, QueueBlockFeed, WebSocketBlockFeed


__all__ = [
    # Feeds
    "BlockHandler",
    "QueueBlockFeed",
    "WebSocketBlockFeed",
    # Normalizer
    "BlockNormalizer",
    # Models
    "CanonicalBlock",
    # Types
    "AdvanceSignal",
    "BlockIngestionResult",
    "IngestionMetrics",
    "IngestionSource",
    "IngestionStatus",
    "RawBlockPayload",
    # Errors
    "IngestionError",
    "MalformedPayload",
    "FeedError",
]
