"""Notification data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from bookswap.core.types import DeferralReason, NotificationType


class Notification(BaseModel):
    """A rendered notification owned by exactly one recipient.

    ``title`` and ``message`` are rendered once at creation. Only ``read``
    changes afterwards.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    type: NotificationType
    title: str = ""
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_wire(self) -> dict[str, Any]:
        """Payload pushed to live channels."""
        return {
            "event": "notification",
            "notification": {
                "id": self.id,
                "type": str(self.type),
                "title": self.title,
                "message": self.message,
                "data": self.data,
                "read": self.read,
                "created_at": self.created_at.isoformat(),
            },
        }


class NotificationTemplate(BaseModel):
    type: NotificationType
    title: str
    message: str


class NotificationPage(BaseModel):
    """One page of a user's notification history, newest first."""

    items: list[Notification] = Field(default_factory=list)
    page: int = 1
    limit: int = 20
    total: int = 0
    unread: int = 0

    @property
    def has_more(self) -> bool:
        return self.page * self.limit < self.total


class DeliveryIntent(BaseModel):
    """Record that a notification was handed to out-of-band delivery."""

    notification_id: str
    user_id: str
    type: NotificationType
    channel: str = "push"
    reason: DeferralReason = DeferralReason.NO_LIVE_CHANNEL
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
