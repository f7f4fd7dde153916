"""Deferred (out-of-band) delivery adapters.

Used when a recipient has no live channel. The core treats these as
fire-and-forget; none of them touch the stored ``read`` flag.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from bookswap.core.types import DeferralReason
from bookswap.notifications.models import DeliveryIntent, Notification

logger = logging.getLogger(__name__)


@runtime_checkable
class DeferredDelivery(Protocol):
    """Hook invoked with ``(user_id, notification)`` for out-of-band delivery."""

    async def defer(
        self,
        user_id: str,
        notification: Notification,
        reason: DeferralReason = DeferralReason.NO_LIVE_CHANNEL,
    ) -> DeliveryIntent: ...


class RecordingDeferredDelivery:
    """Records delivery intent in memory without contacting any push service."""

    def __init__(self) -> None:
        self._intents: list[DeliveryIntent] = []

    async def defer(
        self,
        user_id: str,
        notification: Notification,
        reason: DeferralReason = DeferralReason.NO_LIVE_CHANNEL,
    ) -> DeliveryIntent:
        intent = DeliveryIntent(
            notification_id=notification.id,
            user_id=user_id,
            type=notification.type,
            reason=reason,
        )
        self._intents.append(intent)
        logger.debug(
            "Deferred notification %s for %s (%s)", notification.id, user_id, reason
        )
        return intent

    @property
    def intents(self) -> list[DeliveryIntent]:
        return list(self._intents)

    def intents_for(self, user_id: str) -> list[DeliveryIntent]:
        return [i for i in self._intents if i.user_id == user_id]

    def clear(self) -> None:
        self._intents.clear()


class WebhookPushDelivery(RecordingDeferredDelivery):
    """Records intent, then POSTs a push payload to an external push gateway.

    The body matches what a browser service worker expects:
    ``{"title", "body", "type", "user_id", "notification_id", "data"}``.
    Gateway errors are logged and never raised.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._url = webhook_url
        self._http = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def defer(
        self,
        user_id: str,
        notification: Notification,
        reason: DeferralReason = DeferralReason.NO_LIVE_CHANNEL,
    ) -> DeliveryIntent:
        intent = await super().defer(user_id, notification, reason)
        payload = {
            "user_id": user_id,
            "notification_id": notification.id,
            "type": str(notification.type),
            "title": notification.title,
            "body": notification.message,
            "data": notification.data,
        }
        try:
            resp = await self._http.post(self._url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "Push webhook failed for notification %s: %s", notification.id, exc
            )
        return intent

    async def close(self) -> None:
        await self._http.aclose()
