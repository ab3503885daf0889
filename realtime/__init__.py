"""
Realtime Package.

In-memory, display-oriented state. Nothing here is durable.

Modules:
- block_window: Bounded, newest-first window of recent blocks
- broadcaster: Publish/subscribe channel for new-block events
"""

from realtime.block_window import BlockWindow, DEFAULT_WINDOW_CAPACITY, get_default_window
from realtime.broadcaster import LiveBroadcaster, NewBlockEvent, Subscription


__all__ = [
    "BlockWindow",
    "DEFAULT_WINDOW_CAPACITY",
    "get_default_window",
    "LiveBroadcaster",
    "NewBlockEvent",
    "Subscription",
]
