"""
Data Ingestion - Chain-Sync WebSocket Feed.

============================================================
RESPONSIBILITY
============================================================
Relays decoded blocks from a chain-sync websocket into a handler.

- Maintains a persistent WebSocket connection
- Accepts bare block payloads or JSON-RPC envelopes (result.block)
- Acknowledges every message exactly once, after handling
- Handles reconnection automatically

============================================================
DESIGN PRINCIPLES
============================================================
- No business logic - delivery only
- No chain-sync protocol logic: intersection and rollbacks are
  the relay's concern, rollback messages are just acknowledged
- Connection resilience with capped exponential backoff

============================================================
DATA FLOW
============================================================
1. Connect, send one acknowledgment to request the first block
2. For each message: decode, extract block, await handler
3. Send acknowledgment (default: JSON-RPC "nextBlock")
4. On disconnect, back off and reconnect

============================================================
"""

import asyncio
import json
from typing import Any, Callable, Dict, Optional

import websockets

from data_ingestion.feeds.base import BaseBlockFeed, BlockHandler
from data_ingestion.types import FeedError, IngestionSource


DEFAULT_ACK_MESSAGE: Dict[str, Any] = {"jsonrpc": "2.0", "method": "nextBlock"}
MAX_BACKOFF_SECONDS = 60


def extract_block(message: Any) -> Optional[Dict[str, Any]]:
    """
    Pull the block payload out of a decoded message.

    Returns:
        The block mapping, or None for messages that carry no block
        (rollbacks, errors, handshake replies)
    """
    if not isinstance(message, dict):
        return None
    if "jsonrpc" in message:
        result = message.get("result")
        if isinstance(result, dict) and isinstance(result.get("block"), dict):
            return result["block"]
        return None
    return message


class WebSocketBlockFeed(BaseBlockFeed):
    """
    Block feed over a websocket relay.

    ============================================================
    NOTE
    ============================================================
    The connect callable defaults to websockets.connect and must
    return an async context manager yielding a connection that
    supports async iteration and send().

    ============================================================
    """

    def __init__(
        self,
        url: str,
        handler: BlockHandler,
        ack_message: Optional[Dict[str, Any]] = None,
        reconnect_attempts: int = 5,
        heartbeat_interval_seconds: int = 30,
        prime_on_connect: bool = True,
        connect: Optional[Callable[..., Any]] = None,
    ) -> None:
        super().__init__(handler, IngestionSource.CHAIN_SYNC_WS)
        self._url = url
        self._ack_payload = json.dumps(ack_message or DEFAULT_ACK_MESSAGE)
        self._reconnect_attempts = reconnect_attempts
        self._heartbeat_interval = heartbeat_interval_seconds
        self._prime_on_connect = prime_on_connect
        self._connect = connect or websockets.connect

        self._websocket = None
        self._connected = False
        self._reconnect_count = 0
        self.messages_received = 0
        self.invalid_messages = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def url(self) -> str:
        return self._url

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def run(self) -> None:
        """
        Stream blocks until stop().

        Raises:
            FeedError: When reconnect attempts are exhausted
        """
        self._running = True
        self._logger.info(f"[{self.source_name}] starting feed from {self._url}")
        try:
            while self._running:
                try:
                    await self._run_connection()
                except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
                    self._connected = False
                    if not self._running:
                        break
                    self._logger.warning(f"[{self.source_name}] connection lost: {e}")
                else:
                    if not self._running:
                        break
                    self._logger.warning(f"[{self.source_name}] relay closed the stream")
                await self._backoff()
        finally:
            self._running = False
            self._connected = False
            self._websocket = None
            self._logger.info(
                f"[{self.source_name}] feed stopped after {self.acknowledged} acknowledgments"
            )

    async def stop(self) -> None:
        self._running = False
        if self._websocket is not None:
            try:
                await self._websocket.close()
            except websockets.exceptions.WebSocketException as e:
                self._logger.warning(f"[{self.source_name}] error closing websocket: {e}")

    async def _backoff(self) -> None:
        if self._reconnect_count >= self._reconnect_attempts:
            self._logger.error(f"[{self.source_name}] max reconnection attempts reached")
            raise FeedError(
                message="Max reconnection attempts reached",
                source=self.source_name,
                recoverable=False,
                details={"url": self._url, "attempts": self._reconnect_count},
            )
        backoff = min(2 ** self._reconnect_count, MAX_BACKOFF_SECONDS)
        self._reconnect_count += 1
        self._logger.info(
            f"[{self.source_name}] reconnecting in {backoff}s (attempt {self._reconnect_count})"
        )
        await asyncio.sleep(backoff)

    # =========================================================
    # MESSAGE PROCESSING
    # =========================================================

    async def _run_connection(self) -> None:
        async with self._connect(self._url, ping_interval=self._heartbeat_interval) as websocket:
            self._websocket = websocket
            self._connected = True
            self._reconnect_count = 0
            self._logger.info(f"[{self.source_name}] connected to {self._url}")

            if self._prime_on_connect:
                await websocket.send(self._ack_payload)

            async for message in websocket:
                if not self._running:
                    break
                await self._handle_message(message)

        self._connected = False
        self._websocket = None

    async def _handle_message(self, message: Any) -> None:
        """Handle one frame and acknowledge it."""
        self.messages_received += 1
        try:
            decoded = json.loads(message)
        except (TypeError, ValueError) as e:
            self.invalid_messages += 1
            self._logger.warning(f"[{self.source_name}] undecodable message: {e}")
            decoded = None

        block = extract_block(decoded)
        if block is not None:
            await self._deliver(block)
        else:
            self._logger.debug(f"[{self.source_name}] non-block message acknowledged")

        await self._websocket.send(self._ack_payload)
        self.acknowledged += 1

    def get_health_status(self) -> dict:
        status = super().get_health_status()
        status.update({
            "url": self._url,
            "connected": self._connected,
            "reconnect_count": self._reconnect_count,
            "messages_received": self.messages_received,
            "invalid_messages": self.invalid_messages,
        })
        return status
