"""Lifecycle events and the in-process bus that carries them.

The lifecycle engine emits one ``LifecycleEvent`` per committed change; the
notification fanout engine subscribes to the bus. Handlers run in
subscription order and are awaited, so emission returns once every handler
has persisted what it needs.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from bookswap.core.types import NotificationType

logger = logging.getLogger(__name__)


class LifecycleEvent(BaseModel):
    """A committed change to a request, addressed to one recipient."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: NotificationType
    request_id: str
    recipient_id: str
    actor_id: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] = Field(default_factory=dict)


EventHandler = Callable[[LifecycleEvent], Awaitable[Any]]


class LifecycleEventBus:
    """Explicit emit/subscribe contract between lifecycle and fanout."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    async def emit(self, event: LifecycleEvent) -> None:
        """Deliver ``event`` to every handler.

        The change behind the event is already committed, so a failing
        handler is logged and does not fail the emitter.
        """
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Lifecycle handler failed for %s on request %s",
                    event.type, event.request_id,
                )
