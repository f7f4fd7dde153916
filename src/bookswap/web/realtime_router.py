"""WebSocket endpoint binding a client connection to a user's room."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from bookswap.realtime.channels import WebSocketChannel
from bookswap.realtime.router import SessionRouter
from bookswap.web.identity import USER_ID_HEADER

logger = logging.getLogger(__name__)

router = APIRouter()


def _is_leave(message: str) -> bool:
    try:
        payload = json.loads(message)
    except json.JSONDecodeError:
        return False
    return isinstance(payload, dict) and payload.get("action") == "leave"


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket) -> None:
    """Live notification channel.

    The user id comes from the forwarded identity header or, for browsers
    that cannot set headers on a WebSocket, the ``user_id`` query parameter.
    Missed notifications are not replayed here; clients re-sync through
    ``GET /api/notifications`` after connecting.
    """
    user_id = (
        websocket.headers.get(USER_ID_HEADER) or websocket.query_params.get("user_id") or ""
    ).strip()
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session_router: SessionRouter = websocket.app.state.session_router
    await websocket.accept()
    channel = WebSocketChannel(websocket)
    session_router.register(user_id, channel)
    try:
        await websocket.send_json(
            {"event": "registered", "user_id": user_id, "channel_id": channel.channel_id}
        )
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
                continue
            if _is_leave(message):
                session_router.unregister(user_id, channel)
                await websocket.close()
                return
    except WebSocketDisconnect:
        logger.debug("Channel %s for %s disconnected", channel.channel_id, user_id)
    finally:
        session_router.unregister(user_id, channel)
