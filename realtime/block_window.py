"""
Realtime - Bounded Block Window.

============================================================
RESPONSIBILITY
============================================================
Holds the most recent blocks for real-time display.

- Fixed capacity, newest block first
- Pushing past capacity evicts and returns the oldest block
- Never deduplicates: a redelivered block appears twice

============================================================
CONCURRENCY
============================================================
Every operation runs under one lock, so pushes from the live
feed and from a manual producer never interleave and readers
always see a whole snapshot. Store I/O never happens here.

============================================================
"""

import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from data_ingestion.models import CanonicalBlock


logger = logging.getLogger(__name__)

DEFAULT_WINDOW_CAPACITY = 10


class BlockWindow:
    """Lock-guarded, newest-first ring of CanonicalBlocks."""

    def __init__(self, capacity: int = DEFAULT_WINDOW_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("Window capacity must be at least 1")
        self._capacity = capacity
        self._blocks: Deque[CanonicalBlock] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, block: CanonicalBlock) -> Optional[CanonicalBlock]:
        """
        Prepend a block.

        Returns:
            The evicted oldest block if capacity was exceeded, else None
        """
        with self._lock:
            self._blocks.appendleft(block)
            if len(self._blocks) > self._capacity:
                evicted = self._blocks.pop()
            else:
                evicted = None

        if evicted is not None:
            logger.debug(f"[window] evicted block {evicted.block_id}")
        return evicted

    def snapshot(self) -> List[CanonicalBlock]:
        """Current contents, newest first."""
        with self._lock:
            return list(self._blocks)

    def clear(self) -> None:
        with self._lock:
            self._blocks.clear()
        logger.info("[window] cleared")

    def size(self) -> int:
        with self._lock:
            return len(self._blocks)

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        return f"<BlockWindow(size={self.size()}, capacity={self._capacity})>"


# ============================================================
# PROCESS-WIDE INSTANCE
# ============================================================

_default_window: Optional[BlockWindow] = None
_default_lock = threading.Lock()


def get_default_window(capacity: int = DEFAULT_WINDOW_CAPACITY) -> BlockWindow:
    """Get (or create) the shared window used by the app."""
    global _default_window
    with _default_lock:
        if _default_window is None:
            _default_window = BlockWindow(capacity)
        return _default_window
