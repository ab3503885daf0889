import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from dashboard.dependencies import get_window
from dashboard.schemas import WindowResponse
from realtime.block_window import BlockWindow
from realtime.broadcaster import LiveBroadcaster, NewBlockEvent, Subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live", tags=["Live"])


@router.get("/window", response_model=WindowResponse)
def get_window_snapshot(window: BlockWindow = Depends(get_window)):
    """
    The in-memory window, newest first.
    """
    return WindowResponse(success=True, capacity=window.capacity, data=_live_records(window))


@router.websocket("/ws")
async def live_blocks(websocket: WebSocket):
    """
    Snapshot of the window, then one message per new block.
    """
    window: BlockWindow = websocket.app.state.window
    broadcaster: LiveBroadcaster = websocket.app.state.broadcaster

    await websocket.accept()
    # Subscribe before the snapshot so no block falls in between
    subscription = broadcaster.subscribe()
    forward = None
    try:
        await websocket.send_json({
            "event": "snapshot",
            "blocks": _live_records(window),
        })
        forward = asyncio.create_task(_forward_events(websocket, subscription))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("[live] websocket client disconnected")
    finally:
        if forward is not None:
            forward.cancel()
            await asyncio.gather(forward, return_exceptions=True)
        subscription.close()


def _live_records(window: BlockWindow) -> List[Dict[str, Any]]:
    """Window contents in the same record shape as new_block events."""
    return [NewBlockEvent(block).to_dict()["block"] for block in window.snapshot()]


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json(event.to_dict())
