"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

from bookswap.lending.models import BookInfo


class RecordingChannel:
    """Channel that keeps every payload it is sent."""

    def __init__(self, channel_id: str | None = None) -> None:
        self.channel_id = channel_id or str(uuid.uuid4())
        self.sent: list[dict[str, Any]] = []

    async def send(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)


class SlowChannel(RecordingChannel):
    """Channel whose sends take longer than any test timeout."""

    def __init__(self, delay: float = 5.0, channel_id: str | None = None) -> None:
        super().__init__(channel_id)
        self.delay = delay

    async def send(self, payload: dict[str, Any]) -> None:
        await asyncio.sleep(self.delay)
        self.sent.append(payload)


class BrokenChannel(RecordingChannel):
    """Channel whose transport is gone."""

    async def send(self, payload: dict[str, Any]) -> None:
        raise ConnectionResetError("peer went away")


def headers(user_id: str) -> dict[str, str]:
    """Forwarded identity header for API calls."""
    return {"X-User-Id": user_id}


BOOKS = [
    BookInfo(id="b1", title="Dune", owner_id="u1", owner_name="Alice"),
    BookInfo(id="b2", title="Emma", owner_id="u1", owner_name="Alice"),
    BookInfo(id="b3", title="Ulysses", owner_id="u3", owner_name="Carol"),
]
