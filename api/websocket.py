"""
WebSocket Endpoint

Pushes change events to connected clients. A client reacts to any event by
calling GET /api/board, which reconciles and returns fresh state; the event
itself only says which relation (and which Juz) changed.
"""
import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from core.change_notifier import notifier

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue):
    while True:
        event = await queue.get()
        await websocket.send_json(event.to_dict())


async def _wait_for_disconnect(websocket: WebSocket):
    # client frames, text or binary, are ignored
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/board")
async def board_updates(websocket: WebSocket):
    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # publish() runs on worker threads; hand events over to this loop
    handle = notifier.subscribe(
        lambda event: loop.call_soon_threadsafe(queue.put_nowait, event)
    )
    logger.info(f"Board subscriber {handle} connected")

    tasks = []
    try:
        # tells the client events from now on will reach it
        await websocket.send_json({"type": "subscribed", "handle": handle})

        tasks = [
            asyncio.create_task(_forward_events(websocket, queue)),
            asyncio.create_task(_wait_for_disconnect(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error(f"Board subscriber {handle} failed: {error}", exc_info=error)
    except WebSocketDisconnect:
        pass
    finally:
        notifier.unsubscribe(handle)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Board subscriber {handle} disconnected")
