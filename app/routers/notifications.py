# app/routers/notifications.py
import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.core.realtime import get_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])


def _parse_register(raw: str) -> uuid.UUID:
    """
    Extract the user id from a register message:

        {"type": "register", "userId": "<uuid>"}

    Raises:
        ValueError: on anything else.
    """
    message = json.loads(raw)
    if not isinstance(message, dict) or message.get("type") != "register":
        raise ValueError("Expected a register message")
    return uuid.UUID(str(message.get("userId")))


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket):
    """
    Realtime notification channel.

    The client registers its user id once connected; from then on the
    server pushes {"type": "notification", ...} messages. Registering
    again re-binds the session. Malformed messages get an error reply and
    the connection stays open.
    """
    registry = get_registry()
    await websocket.accept()
    logger.info("Notification socket connected")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                user_id = _parse_register(raw)
            except ValueError as e:
                # json.JSONDecodeError is a ValueError too
                await websocket.send_json({"type": "error", "error": str(e)})
                continue

            registry.register(user_id, websocket)
            logger.info("User %s registered for notifications", user_id)
            await websocket.send_json({"type": "registered", "userId": str(user_id)})
    except WebSocketDisconnect:
        logger.info("Notification socket disconnected")
    finally:
        for user_id in registry.unregister(websocket):
            logger.info("User %s unregistered", user_id)
