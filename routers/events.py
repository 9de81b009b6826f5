import asyncio
from typing import Optional

import redis
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from backend import RoomSubscription
from constants import AUTH_COOKIE_NAME
from events import RoomDestroyed, parse_event
from exceptions import ChatError
from logging_config import get_logger, short_token
from services.admission import AdmissionGate

logger = get_logger(__name__)

events_router = APIRouter(tags=["events"])


async def relay_room_events(websocket: WebSocket, subscription: RoomSubscription, room_id: str) -> Optional[bool]:
    """Forward events from the room channel to one socket.

    Returns True once room.destroyed has been relayed, False if the channel broke
    and None if the client went away mid-send or the subscription was closed.
    """
    loop = asyncio.get_running_loop()
    while not subscription.closed:
        try:
            # Blocking poll runs in the thread pool, bounded by PUBSUB_POLL_SECONDS
            message = await loop.run_in_executor(None, subscription.poll)
        except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as e:
            logger.error(f"Lost pub/sub connection for room {room_id}: {e}", exc_info=True)
            return False

        if message is None or message.get("type") != "message":
            continue

        event = parse_event(message["data"])
        if event is None:
            continue
        try:
            await websocket.send_text(event.model_dump_json())
        except WebSocketDisconnect:
            return None
        if isinstance(event, RoomDestroyed):
            logger.debug(f"Relayed room.destroyed for room {room_id}, closing socket")
            return True
    return None


async def wait_for_disconnect(websocket: WebSocket):
    # clients only listen; anything they send is ignored
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


async def stop_tasks(*tasks: Optional[asyncio.Task]):
    running = [task for task in tasks if task is not None]
    for task in running:
        task.cancel()
    if running:
        await asyncio.gather(*running, return_exceptions=True)


@events_router.websocket("/rooms/{room_id}/ws")
async def room_events_endpoint(websocket: WebSocket, room_id: str, token: Optional[str] = None):
    """Live event stream for an admitted member.

    Query parameters:
    - token: the member's token (the x-auth-token cookie is used when absent)
    """
    token = token or websocket.cookies.get(AUTH_COOKIE_NAME)
    backend = websocket.app.state.redis_backend
    logger.info(f"WebSocket connection attempt for room {room_id}, token {short_token(token)}")

    try:
        AdmissionGate(backend).admit(room_id, token)
        # subscribe before accepting so nothing published after the handshake is missed
        subscription = backend.subscribe_to_room(room_id)
    except ChatError as e:
        logger.info(f"WebSocket connection rejected for room {room_id}: {e.message}")
        await websocket.close(code=1008, reason=e.message)
        return

    relay = watcher = None
    try:
        await websocket.accept()
        await websocket.send_json({"event": "system.connected", "data": {"room_id": room_id}})

        relay = asyncio.create_task(relay_room_events(websocket, subscription, room_id), name=f"relay:{room_id}")
        watcher = asyncio.create_task(wait_for_disconnect(websocket), name=f"watcher:{room_id}")
        done, _ = await asyncio.wait({relay, watcher}, return_when=asyncio.FIRST_COMPLETED)
        await stop_tasks(relay, watcher)

        if relay in done:
            destroyed = relay.result()
            if destroyed is not None:
                await websocket.close(code=1000 if destroyed else 1011)
        else:
            logger.info(f"WebSocket for room {room_id} disconnected by client")
    finally:
        # runs on cancellation too: no relay may outlive the socket
        try:
            await stop_tasks(relay, watcher)
        finally:
            subscription.close()
            logger.debug(f"Released pub/sub subscription for room {room_id}")
