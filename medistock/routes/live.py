import asyncio
import contextlib
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import user_from_token
from ..services.inventory import item_view
from ..services.live_feed import InventoryFeed, ItemSnapshot, snapshot_items


router = APIRouter(tags=["live"])

log = structlog.get_logger(__name__)


def _message(snapshot: List[ItemSnapshot]) -> dict:
    now = datetime.now(timezone.utc)
    return {"type": "items", "items": jsonable_encoder([item_view(i, now) for i in snapshot])}


@router.websocket("/ws/inventory")
async def ws_inventory(websocket: WebSocket, token: Optional[str] = None, db: Session = Depends(get_db)):
    """Pushes the full item list with statuses on connect and after every inventory write."""
    if not token:
        await websocket.close(code=4401)
        return
    try:
        user = user_from_token(token, db)
    except HTTPException:
        await websocket.close(code=4401)
        return

    feed: InventoryFeed = websocket.app.state.inventory_feed
    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    # Writers publish from worker threads
    unsubscribe = feed.subscribe(lambda snapshot: loop.call_soon_threadsafe(queue.put_nowait, snapshot))
    log.info("live_feed_connected", user_id=str(user.id))

    async def pump():
        while True:
            snapshot = await queue.get()
            await websocket.send_json(_message(snapshot))

    await websocket.send_json(_message(snapshot_items(db)))
    sender = asyncio.create_task(pump())
    try:
        while True:
            data = await websocket.receive_text()
            if data and data.strip().lower() in {"ping", "keepalive"}:
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            try:
                await sender
            except (WebSocketDisconnect, RuntimeError) as e:
                log.warning("live_feed_send_failed", user_id=str(user.id), error=str(e))
        log.info("live_feed_disconnected", user_id=str(user.id))
