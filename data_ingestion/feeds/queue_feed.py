"""
Data Ingestion - In-Process Queue Feed.

Single-consumer asyncio.Queue channel. Producers submit decoded block
payloads; run() hands them to the handler in submission order.
Used for manual and backfill producers and in tests.
"""

import asyncio
from typing import Any, Optional

from data_ingestion.feeds.base import BaseBlockFeed, BlockHandler
from data_ingestion.types import IngestionSource, RawBlockPayload


_STOP = object()


class QueueBlockFeed(BaseBlockFeed):
    """Feed backed by an in-memory queue."""

    def __init__(self, handler: BlockHandler, maxsize: int = 0) -> None:
        super().__init__(handler, IngestionSource.IN_PROCESS)
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=maxsize)

    async def submit(self, payload: RawBlockPayload) -> None:
        """Enqueue a payload, waiting if the queue is bounded and full."""
        await self._queue.put(payload)

    def submit_nowait(self, payload: RawBlockPayload) -> None:
        self._queue.put_nowait(payload)

    def pending(self) -> int:
        return self._queue.qsize()

    async def run(self) -> None:
        """
        Consume until stop().

        Payloads submitted before stop() are still delivered.
        """
        self._running = True
        self._logger.info(f"[{self.source_name}] feed started")
        try:
            while True:
                item = await self._queue.get()
                try:
                    if item is _STOP:
                        break
                    await self._deliver(item)
                    self.acknowledged += 1
                finally:
                    self._queue.task_done()
                if not self._running:
                    break
        finally:
            self._running = False
            self._logger.info(
                f"[{self.source_name}] feed stopped after {self.acknowledged} blocks"
            )

    async def stop(self) -> None:
        try:
            self._queue.put_nowait(_STOP)
        except asyncio.QueueFull:
            self._running = False

    async def join(self, timeout: Optional[float] = None) -> None:
        """Wait until every submitted payload has been handled."""
        if timeout is None:
            await self._queue.join()
        else:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
