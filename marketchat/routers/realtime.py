import asyncio
import contextlib
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from marketchat.utils.realtime_bus import get_bus, participant_channel
from marketchat.utils.websocket_manager import manager


logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/{participant_id}")
async def conversation_events(websocket: WebSocket, participant_id: str):
    """
    Push channel for conversation events ("message", "read") addressed to one
    participant. Clients only listen; writes go through the HTTP routes. A
    "ping" frame is answered with "pong" as a keep-alive.
    """
    await manager.connect(participant_id, websocket)
    bus = await get_bus()
    subscriber = None
    sub_task = None
    if bus.enabled:
        subscriber = await bus.subscribe(participant_channel(participant_id), websocket.send_text)
        sub_task = asyncio.create_task(subscriber.run())
    logger.info("Realtime channel opened for %s", participant_id)
    try:
        while True:
            if await websocket.receive_text() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info("Realtime channel closed for %s", participant_id)
    finally:
        manager.disconnect(participant_id, websocket)
        # stop the reader before closing the pubsub it is reading from
        if sub_task is not None:
            sub_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sub_task
        if subscriber is not None:
            await subscriber.cancel()
