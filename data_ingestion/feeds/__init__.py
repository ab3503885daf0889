"""
Data Ingestion - Block Feeds.

Feeds deliver decoded block payloads to a BlockHandler one at a time
and acknowledge each exactly once.
"""

from data_ingestion.feeds.base import BaseBlockFeed, BlockHandler
from data_ingestion.feeds.chain_sync_ws import (
    DEFAULT_ACK_MESSAGE,
    WebSocketBlockFeed,
    extract_block,
)
from data_ingestion.feeds.queue_feed import QueueBlockFeed

__all__ = [
    "BaseBlockFeed",
    "BlockHandler",
    "DEFAULT_ACK_MESSAGE",
    "QueueBlockFeed",
    "WebSocketBlockFeed",
    "extract_block",
]
