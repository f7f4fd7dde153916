"""Session router: live mapping of users to their connected channels.

Bindings live only in process memory. A restart drops them and clients
re-register on reconnect; the notification store stays the record of what
a disconnected client missed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


@runtime_checkable
class Channel(Protocol):
    """A live, push-capable transport connection."""

    @property
    def channel_id(self) -> str: ...

    async def send(self, payload: dict[str, Any]) -> None: ...


class DeliveryReport(BaseModel):
    """Outcome of one ``deliver`` call."""

    user_id: str
    delivered: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    timed_out: list[str] = Field(default_factory=list)

    @property
    def reached(self) -> bool:
        """False is the "no live recipient" signal."""
        return bool(self.delivered)


class SessionRouter:
    """Maps ``user_id`` to the set of channels bound to it ("rooms").

    ``register``/``unregister`` are the only mutators and never yield to the
    event loop, so concurrent connect/disconnect churn cannot corrupt the
    table. ``deliver`` works on a snapshot and re-checks each binding right
    before sending.
    """

    def __init__(self, send_timeout_seconds: float = 2.0) -> None:
        self._send_timeout = send_timeout_seconds
        self._rooms: dict[str, dict[str, Channel]] = {}
        self._started = False

    def init(self) -> None:
        """Start with an empty binding table."""
        self._rooms.clear()
        self._started = True

    @property
    def started(self) -> bool:
        return self._started

    def register(self, user_id: str, channel: Channel) -> None:
        room = self._rooms.setdefault(user_id, {})
        if channel.channel_id not in room:
            room[channel.channel_id] = channel
            logger.debug("Channel %s joined room %s", channel.channel_id, user_id)

    def unregister(self, user_id: str, channel: Channel) -> None:
        room = self._rooms.get(user_id)
        if not room or channel.channel_id not in room:
            return
        del room[channel.channel_id]
        if not room:
            del self._rooms[user_id]
        logger.debug("Channel %s left room %s", channel.channel_id, user_id)

    def channels_for(self, user_id: str) -> list[Channel]:
        return list(self._rooms.get(user_id, {}).values())

    def has_live_channel(self, user_id: str) -> bool:
        return bool(self._rooms.get(user_id))

    @property
    def connected_users(self) -> list[str]:
        return list(self._rooms)

    @property
    def channel_count(self) -> int:
        return sum(len(room) for room in self._rooms.values())

    async def deliver(self, user_id: str, payload: dict[str, Any]) -> DeliveryReport:
        """Send ``payload`` to every channel bound to ``user_id``.

        Nothing is buffered: with no channel bound the report is empty.
        A channel whose send raises is unregistered; one that exceeds the
        send timeout is reported but kept.
        """
        report = DeliveryReport(user_id=user_id)
        snapshot = self.channels_for(user_id)
        if not snapshot:
            return report

        results = await asyncio.gather(
            *(self._send_one(user_id, channel, payload) for channel in snapshot)
        )
        for channel, outcome in zip(snapshot, results):
            if outcome == "delivered":
                report.delivered.append(channel.channel_id)
            elif outcome == "timeout":
                report.timed_out.append(channel.channel_id)
            elif outcome == "failed":
                report.failed.append(channel.channel_id)
        return report

    async def _send_one(self, user_id: str, channel: Channel, payload: dict[str, Any]) -> str:
        if channel.channel_id not in self._rooms.get(user_id, {}):
            return "skipped"
        try:
            await asyncio.wait_for(channel.send(payload), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Send to channel %s for %s timed out after %.1fs",
                channel.channel_id, user_id, self._send_timeout,
            )
            return "timeout"
        except Exception as exc:
            logger.warning(
                "Send to channel %s for %s failed: %s; dropping channel",
                channel.channel_id, user_id, exc,
            )
            self.unregister(user_id, channel)
            return "failed"
        return "delivered"

    def close(self) -> None:
        self._rooms.clear()
        self._started = False
