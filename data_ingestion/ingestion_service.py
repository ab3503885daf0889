"""
Data Ingestion - Block Ingestion Service.

============================================================
RESPONSIBILITY
============================================================
Coordinates the handling of one delivered block payload.

- Normalizes the payload into a CanonicalBlock
- Pushes it into the real-time window
- Persists it to the analytics store, best effort
- Publishes it to live consumers
- Tells the feed to advance, always exactly once

============================================================
DESIGN PRINCIPLES
============================================================
- No business logic - coordination only
- Store failures never stop the feed
- No retry queue: a block that fails to persist is only in the window
- Failure isolation between window, store and live channel

============================================================
WORKFLOW
============================================================
1. normalize(payload)            malformed -> skip, advance
2. window.push(block)            eviction -> on_evicted hooks
3. repository.persist_if_new()   failure -> log, count, continue
4. broadcaster.publish()         never blocks
5. return AdvanceSignal.NEXT_BLOCK

============================================================
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from core.clock import ClockFactory, ClockProtocol
from data_ingestion.models import CanonicalBlock
from data_ingestion.normalizers.block_normalizer import BlockNormalizer
from data_ingestion.types import (
    AdvanceSignal,
    BlockIngestionResult,
    IngestionMetrics,
    IngestionStatus,
    MalformedPayload,
    RawBlockPayload,
)
from realtime.block_window import BlockWindow
from realtime.broadcaster import LiveBroadcaster, NewBlockEvent
from storage.repositories.block_repository import BlockRepository, PersistOutcome
from storage.repositories.exceptions import RepositoryException


EvictionHook = Callable[[CanonicalBlock], None]

MAX_RECENT_RESULTS = 100


class BlockIngestionService:
    """
    Handles blocks delivered by a feed.

    ============================================================
    USAGE
    ============================================================
    ```python
    service = BlockIngestionService(
        normalizer=BlockNormalizer(),
        window=BlockWindow(10),
        repository=BlockRepository(client),
        broadcaster=LiveBroadcaster(),
    )
    feed = WebSocketBlockFeed(url, service)
    await feed.run()
    ```

    ============================================================
    """

    def __init__(
        self,
        normalizer: BlockNormalizer,
        window: BlockWindow,
        repository: BlockRepository,
        broadcaster: Optional[LiveBroadcaster] = None,
        on_evicted: Optional[List[EvictionHook]] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._normalizer = normalizer
        self._window = window
        self._repository = repository
        self._broadcaster = broadcaster
        self._eviction_hooks: List[EvictionHook] = list(on_evicted or [])
        self._clock = clock
        self._logger = logging.getLogger("ingestion.blocks")

        self._metrics = IngestionMetrics()
        self._results: List[BlockIngestionResult] = []

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    @property
    def window(self) -> BlockWindow:
        return self._window

    @property
    def repository(self) -> BlockRepository:
        return self._repository

    def add_eviction_hook(self, hook: EvictionHook) -> None:
        self._eviction_hooks.append(hook)

    # =========================================================
    # FEED HANDLER
    # =========================================================

    async def on_block(self, payload: RawBlockPayload) -> AdvanceSignal:
        """
        Handle one delivered payload.

        Returns:
            AdvanceSignal.NEXT_BLOCK, whatever happened to the block
        """
        result = await self.ingest(payload)
        self._record(result)
        return AdvanceSignal.NEXT_BLOCK

    async def ingest(self, payload: RawBlockPayload) -> BlockIngestionResult:
        """Run the pipeline for one payload and describe what happened."""
        received_at = self.clock.now_truncated()
        self._metrics.received += 1
        self._metrics.last_received_at = received_at

        try:
            block = self._normalizer.normalize(payload)
        except MalformedPayload as e:
            self._metrics.malformed += 1
            self._metrics.record_error(e.message)
            self._logger.warning(f"[ingestion] skipping malformed block payload: {e.message}")
            return BlockIngestionResult(
                block_id=_payload_id(payload),
                status=IngestionStatus.SKIPPED,
                error=e.message,
                received_at=received_at,
            )

        self._metrics.normalized += 1
        self._metrics.last_block_id = block.block_id
        self._metrics.last_block_height = block.block_height

        evicted = self._window.push(block)
        if evicted is not None:
            self._metrics.evicted += 1
            self._run_eviction_hooks(evicted)

        result = BlockIngestionResult(
            block_id=block.block_id,
            evicted_block_id=evicted.block_id if evicted else None,
            received_at=received_at,
        )

        try:
            outcome = await self._repository.persist_if_new(block)
        except RepositoryException as e:
            self._metrics.store_failures += 1
            self._metrics.last_store_failure_at = received_at
            self._metrics.record_error(str(e))
            self._logger.error(
                f"[ingestion] failed to persist block {block.block_id} "
                f"(height={block.block_height}): {e}"
            )
            result.status = IngestionStatus.PARTIAL
            result.outcome = "store_failed"
            result.error = e.message
        else:
            result.outcome = outcome.value
            if outcome == PersistOutcome.INSERTED:
                self._metrics.inserted += 1
                self._logger.info(
                    f"[ingestion] stored block {block.block_id} "
                    f"(height={block.block_height}, txs={block.tx_count})"
                )
            else:
                self._metrics.duplicates += 1
                self._logger.debug(f"[ingestion] block {block.block_id} already stored")

        if self._broadcaster is not None:
            self._broadcaster.publish(NewBlockEvent(block, is_real_time=True))
            self._metrics.published += 1

        return result

    def _run_eviction_hooks(self, evicted: CanonicalBlock) -> None:
        for hook in self._eviction_hooks:
            try:
                hook(evicted)
            except Exception as e:
                self._logger.error(
                    f"[ingestion] eviction hook failed for {evicted.block_id}: {e}",
                    exc_info=True,
                )

    def _record(self, result: BlockIngestionResult) -> None:
        self._results.append(result)
        if len(self._results) > MAX_RECENT_RESULTS:
            self._results = self._results[-MAX_RECENT_RESULTS:]

    # =========================================================
    # HEALTH & METRICS
    # =========================================================

    def get_metrics(self) -> IngestionMetrics:
        return self._metrics

    def get_recent_results(self, limit: int = 10) -> List[BlockIngestionResult]:
        """
        Get recent ingestion results.

        Args:
            limit: Maximum number of results to return
        """
        return self._results[-limit:] if limit > 0 else []

    def get_health_status(self) -> Dict[str, Any]:
        """
        Get aggregated health status.

        The service is degraded while the most recent outcome was a
        store failure; blocks keep flowing to the window either way.
        """
        last = self._results[-1] if self._results else None
        store_degraded = last is not None and last.status == IngestionStatus.PARTIAL
        return {
            "healthy": not store_degraded,
            "store_degraded": store_degraded,
            "window_size": self._window.size(),
            "window_capacity": self._window.capacity,
            "subscribers": self._broadcaster.subscriber_count if self._broadcaster else 0,
            "metrics": self._metrics.to_dict(),
        }


def _payload_id(payload: Any) -> Optional[str]:
    if isinstance(payload, dict) and payload.get("id") is not None:
        return str(payload["id"])
    return None
