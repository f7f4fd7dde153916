"""Channel implementations."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import WebSocket


class WebSocketChannel:
    """A FastAPI WebSocket bound to one user."""

    def __init__(self, websocket: WebSocket, channel_id: str | None = None) -> None:
        self._ws = websocket
        self._channel_id = channel_id or str(uuid.uuid4())

    @property
    def channel_id(self) -> str:
        return self._channel_id

    async def send(self, payload: dict[str, Any]) -> None:
        await self._ws.send_json(payload)
