"""
Realtime - Live Block Broadcaster.

============================================================
RESPONSIBILITY
============================================================
Fans new-block events out to live consumers (dashboard websockets).

- publish() never awaits and never raises on slow consumers
- Each subscriber owns a bounded queue; when full, the oldest
  pending event is dropped to make room
- Delivery is independent of whether the block was persisted

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from data_ingestion.models import CanonicalBlock


logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIBER_QUEUE_SIZE = 100


@dataclass(frozen=True)
class NewBlockEvent:
    """A block that just arrived from the live feed."""
    block: CanonicalBlock
    is_real_time: bool = True

    def to_dict(self) -> Dict[str, Any]:
        block = self.block.to_dict()
        block["is_real_time"] = self.is_real_time
        return {"event": "new_block", "block": block}


class Subscription:
    """One consumer's view of the live channel."""

    def __init__(self, broadcaster: "LiveBroadcaster", max_pending: int) -> None:
        self._broadcaster = broadcaster
        self._queue: "asyncio.Queue[NewBlockEvent]" = asyncio.Queue(maxsize=max_pending)
        self.dropped = 0

    def offer(self, event: NewBlockEvent) -> None:
        """Enqueue without waiting, dropping the oldest event when full."""
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> NewBlockEvent:
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> NewBlockEvent:
        return await self.get()


class LiveBroadcaster:
    """In-process publish/subscribe for new-block events."""

    def __init__(self, max_pending: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE) -> None:
        self._max_pending = max_pending
        self._subscribers: Set[Subscription] = set()
        self._published = 0

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self._max_pending)
        self._subscribers.add(subscription)
        logger.debug(f"[broadcaster] subscriber added ({len(self._subscribers)} total)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscribers.discard(subscription)
        logger.debug(f"[broadcaster] subscriber removed ({len(self._subscribers)} total)")

    def publish(self, event: NewBlockEvent) -> int:
        """
        Deliver an event to every current subscriber.

        Returns:
            Number of subscribers the event was offered to
        """
        self._published += 1
        subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.offer(event)
        return len(subscribers)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def published_count(self) -> int:
        return self._published
