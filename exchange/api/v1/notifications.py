"""WebSocket transport for the notification relay."""

import asyncio
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from loguru import logger

from exchange.api.deps import DBSession, load_active_user
from exchange.core.config import get_settings
from exchange.services.notifications import EventType, Notification

router = APIRouter(tags=["notifications"])


async def wait_for_disconnect(websocket: WebSocket) -> None:
    """Drain client frames until the client closes the socket."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, user_id: uuid.UUID, session: DBSession):
    """Stream transaction events for ``user_id`` (and admin broadcasts for admins).

    Sends an ``authenticated`` event first, then every queued notification,
    and a ``ping`` whenever nothing was sent for the heartbeat interval.
    Client frames are read and ignored so a close is noticed at once
    rather than on the next send.
    Events published while the client is disconnected are lost; clients
    re-fetch after reconnecting.
    """
    user = await load_active_user(session, user_id)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    relay = websocket.app.state.relay
    heartbeat = get_settings().WS_HEARTBEAT_SECONDS

    await websocket.accept()
    subscription = relay.subscribe(user.id, is_admin=user.is_admin)
    disconnected = asyncio.ensure_future(wait_for_disconnect(websocket))
    try:
        await websocket.send_json(
            Notification(
                event=EventType.AUTHENTICATED,
                data={"user_id": str(user.id), "is_admin": user.is_admin},
            ).model_dump(mode="json")
        )
        while True:
            next_event = asyncio.ensure_future(subscription.get())
            done, _ = await asyncio.wait(
                {next_event, disconnected},
                timeout=heartbeat,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if disconnected in done:
                next_event.cancel()
                logger.info(f"WebSocket closed by client for user {user.id}")
                break
            if next_event in done:
                notification = next_event.result()
            else:
                next_event.cancel()
                notification = Notification(
                    event=EventType.PING,
                    data={"timestamp": datetime.now(timezone.utc).isoformat()},
                )
            await websocket.send_json(notification.model_dump(mode="json"))
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user.id}")
    finally:
        disconnected.cancel()
        relay.unsubscribe(subscription)
