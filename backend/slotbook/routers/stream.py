import asyncio
import contextlib
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..config import Settings, get_settings
from ..deps import get_store
from ..domain.repositories import SnapshotStore, SnapshotSubscription
from ..domain.snapshot import name_colors, public_tree

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["stream"])


async def _close_on_disconnect(websocket: WebSocket, subscription: SnapshotSubscription) -> None:
    with contextlib.suppress(WebSocketDisconnect):
        while True:
            await websocket.receive_text()
    subscription.close()


@router.websocket("/ws/reservations")
async def stream_reservations(
    websocket: WebSocket,
    store: SnapshotStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> None:
    """Push the public snapshot on connect and after every committed change."""
    await websocket.accept()
    subscription = await store.subscribe(settings.snapshot_path)
    watcher = asyncio.create_task(_close_on_disconnect(websocket, subscription))
    try:
        async for current in subscription:
            await websocket.send_json(
                {
                    "version": current.version,
                    "reservations": public_tree(current.snapshot),
                    "colors": name_colors(current.snapshot),
                }
            )
    except WebSocketDisconnect:
        logger.info("snapshot stream client disconnected")
    finally:
        watcher.cancel()
        subscription.close()
