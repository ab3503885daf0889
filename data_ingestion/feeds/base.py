"""
Data Ingestion - Block Feed Base.

============================================================
PURPOSE
============================================================
Contract between block feeds and the ingestion service.

A feed delivers decoded block payloads one at a time, in order.
For each payload it awaits the handler and then acknowledges
exactly once, whatever the handler did with the block.

============================================================
DESIGN PRINCIPLES
============================================================
- No business logic - delivery only
- Never deliver the next payload before the current one is handled
- A handler failure is logged and the feed still advances

============================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Protocol

from data_ingestion.types import AdvanceSignal, IngestionSource, RawBlockPayload


class BlockHandler(Protocol):
    """Anything that can take one block payload from a feed."""

    async def on_block(self, payload: RawBlockPayload) -> AdvanceSignal:
        ...


class BaseBlockFeed(ABC):
    """
    Abstract base class for block feeds.

    ============================================================
    LIFECYCLE
    ============================================================
    1. Initialize with a handler
    2. await run() until stop() is called (or the source ends)
    3. delivered / acknowledged / handler_errors describe progress

    ============================================================
    """

    def __init__(self, handler: BlockHandler, source: IngestionSource) -> None:
        self._handler = handler
        self._source = source
        self._logger = logging.getLogger(f"feed.{source.value}")
        self._running = False

        self.delivered = 0
        self.acknowledged = 0
        self.handler_errors = 0

    @property
    def source_name(self) -> str:
        return self._source.value

    @property
    def handler(self) -> BlockHandler:
        return self._handler

    @property
    def is_running(self) -> bool:
        return self._running

    @abstractmethod
    async def run(self) -> None:
        """Deliver payloads until stopped."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Ask run() to return."""
        pass

    async def _deliver(self, payload: RawBlockPayload) -> Optional[AdvanceSignal]:
        """
        Hand one payload to the handler.

        Returns:
            The handler's signal, or None if the handler raised
        """
        self.delivered += 1
        try:
            return await self._handler.on_block(payload)
        except Exception as e:
            self.handler_errors += 1
            self._logger.error(f"[{self.source_name}] block handler failed: {e}", exc_info=True)
            return None

    def get_health_status(self) -> dict:
        return {
            "source": self.source_name,
            "running": self._running,
            "delivered": self.delivered,
            "acknowledged": self.acknowledged,
            "handler_errors": self.handler_errors,
        }
