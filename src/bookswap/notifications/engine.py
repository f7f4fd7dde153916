"""Notification fanout engine.

``notify()`` is the single choke point for creating notifications. It renders
the message once, persists it, and hands live delivery to a background task
so the caller never waits on a transport. Delivery goes to every live channel
of the recipient, or to the deferred adapter when none is reachable.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from sqlalchemy.exc import SQLAlchemyError

from bookswap.core.config import NotificationConfig
from bookswap.core.errors import NotificationPersistenceError, ValidationError
from bookswap.core.events import LifecycleEvent
from bookswap.core.locks import KeyedLock
from bookswap.core.types import DeferralReason, NotificationType
from bookswap.notifications.deferred import DeferredDelivery, RecordingDeferredDelivery
from bookswap.notifications.models import Notification, NotificationTemplate
from bookswap.realtime.router import SessionRouter
from bookswap.repositories import resolve

if TYPE_CHECKING:
    from bookswap.repositories.protocols import NotificationRepository

logger = logging.getLogger(__name__)

_DEFAULT_TEMPLATES_PATH = Path(__file__).resolve().parents[3] / "config" / "notification_templates.yml"

_BUILTIN_TEMPLATES: dict[NotificationType, tuple[str, str]] = {
    NotificationType.REQUEST_SENT: (
        "New {request_type} request",
        '{requester_name} wants to {request_type} "{book_title}"',
    ),
    NotificationType.REQUEST_APPROVED: (
        "Request approved",
        'Your {request_type} request for "{book_title}" was approved',
    ),
    NotificationType.REQUEST_REJECTED: (
        "Request declined",
        'Your {request_type} request for "{book_title}" was declined',
    ),
    NotificationType.REQUEST_RETURNED: (
        "Book returned",
        '{requester_name} returned "{book_title}"',
    ),
    NotificationType.DUE_DATE_REMINDER: (
        "Return reminder",
        '"{book_title}" is due on {due_date}',
    ),
    NotificationType.BOOK_OVERDUE: (
        "Book overdue",
        '"{book_title}" was due on {due_date} and is now overdue',
    ),
}

_TRANSIENT_STORE_ERRORS = (SQLAlchemyError, OSError)


def render(template_str: str, context: dict[str, Any]) -> str:
    """Single-pass ``{key}`` substitution.

    Substituted values are never re-scanned, and unknown placeholders are
    preserved in the output.
    """
    str_context = {k: str(v) for k, v in context.items()}

    def _replace(m: re.Match) -> str:
        return str_context.get(m.group(1), m.group(0))

    return re.sub(r"\{(\w+)\}", _replace, template_str)


class NotificationFanoutEngine:
    """Turns lifecycle events into stored notifications and routes them."""

    def __init__(
        self,
        store: NotificationRepository,
        session_router: SessionRouter,
        deferred: DeferredDelivery | None = None,
        config: NotificationConfig | None = None,
        templates_path: str | Path | None = None,
    ) -> None:
        self._store = store
        self._router = session_router
        self._deferred = deferred or RecordingDeferredDelivery()
        self._config = config or NotificationConfig()
        self._user_locks = KeyedLock()
        self._delivery_locks = KeyedLock()
        self._pending: set[asyncio.Task] = set()
        self._recovering: set[asyncio.Task] = set()
        self._templates: dict[NotificationType, NotificationTemplate] = {
            t: NotificationTemplate(type=t, title=title, message=message)
            for t, (title, message) in _BUILTIN_TEMPLATES.items()
        }
        path = templates_path or self._config.templates_path
        self._load_templates(Path(path) if path else _DEFAULT_TEMPLATES_PATH)

    def _load_templates(self, path: Path) -> None:
        if not path.exists():
            return
        with open(path) as fh:
            data = yaml.safe_load(fh) or {}
        for type_id, tmpl_data in data.get("templates", {}).items():
            try:
                ntype = NotificationType(type_id)
            except ValueError:
                logger.warning("Ignoring template for unknown notification type %r", type_id)
                continue
            current = self._templates[ntype]
            self._templates[ntype] = NotificationTemplate(
                type=ntype,
                title=tmpl_data.get("title", current.title),
                message=tmpl_data.get("message", current.message),
            )

    @property
    def templates(self) -> dict[NotificationType, NotificationTemplate]:
        return dict(self._templates)

    @property
    def store(self) -> NotificationRepository:
        return self._store

    @property
    def deferred(self) -> DeferredDelivery:
        return self._deferred

    @property
    def user_locks(self) -> KeyedLock:
        """Per-recipient lock shared with read-state operations."""
        return self._user_locks

    @property
    def pending_deliveries(self) -> int:
        return len(self._pending)

    # -- Creation --

    async def notify(
        self,
        user_id: str,
        notification_type: NotificationType | str,
        message_template: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Create, persist and dispatch one notification.

        Persistence completes before this returns; live delivery does not.

        Args:
            user_id: Recipient.
            notification_type: One of ``NotificationType``.
            message_template: Optional override of the message template for
                this one notification.
            data: Template context, also stored for client-side rendering.

        Raises:
            ValidationError: Blank recipient or unknown type.
            NotificationPersistenceError: The store kept failing.
        """
        if not user_id:
            raise ValidationError("Notification recipient is required")
        try:
            ntype = NotificationType(notification_type)
        except ValueError:
            raise ValidationError(
                f"Unknown notification type: {notification_type!r}"
            ) from None

        data = dict(data or {})
        template = self._templates[ntype]
        notification = Notification(
            user_id=user_id,
            type=ntype,
            title=render(template.title, data),
            message=render(message_template or template.message, data),
            data=data,
        )
        await self._store_and_dispatch(notification)
        return notification

    async def handle_lifecycle_event(self, event: LifecycleEvent) -> Notification | None:
        """Event bus subscriber: exactly one notification per event.

        The transition behind the event is already committed. If the store
        still fails after the inline retries, the notification moves to a
        background task that keeps trying, with capped backoff, until it is
        stored. ``drain()`` waits for those tasks too.
        """
        try:
            return await self.notify(event.recipient_id, event.type, data=event.data)
        except NotificationPersistenceError as exc:
            notification = exc.notification
            if notification is None:
                raise
            logger.warning(
                "Notification %s for %s (request %s) not stored yet, retrying in background",
                notification.id, notification.user_id, event.request_id,
            )
            self._schedule_recovery(notification)
            return None

    async def _store_and_dispatch(self, notification: Notification) -> None:
        async with self._user_locks.hold(notification.user_id):
            await self._persist(notification)
            self._schedule_delivery(notification)

    async def _persist(self, notification: Notification) -> None:
        attempts = max(1, self._config.persist_max_retries + 1)
        for attempt in range(attempts):
            try:
                await resolve(self._store.add(notification))
                return
            except _TRANSIENT_STORE_ERRORS as exc:
                if attempt == attempts - 1:
                    raise NotificationPersistenceError(
                        f"Could not store notification for {notification.user_id}",
                        notification=notification,
                    ) from exc
                delay = self._config.persist_retry_delay_seconds * (2 ** attempt)
                logger.warning(
                    "Storing notification %s failed: %s, retrying in %.2fs (%d/%d)",
                    notification.id, exc, delay, attempt + 1, attempts,
                )
                await asyncio.sleep(delay)

    # -- Background recovery --

    def _schedule_recovery(self, notification: Notification) -> None:
        task = asyncio.create_task(self._recover(notification))
        self._recovering.add(task)
        self._pending.add(task)
        task.add_done_callback(self._recovering.discard)
        task.add_done_callback(self._pending.discard)

    def _recovery_delay(self, attempt: int) -> float:
        base = self._config.persist_retry_delay_seconds * (2 ** min(attempt, 16))
        return min(base, self._config.persist_recovery_max_delay_seconds)

    async def _recover(self, notification: Notification) -> None:
        attempt = 0
        try:
            while True:
                await asyncio.sleep(self._recovery_delay(attempt))
                try:
                    async with self._user_locks.hold(notification.user_id):
                        await resolve(self._store.add(notification))
                        self._schedule_delivery(notification)
                except _TRANSIENT_STORE_ERRORS as exc:
                    attempt += 1
                    logger.warning(
                        "Background store of notification %s failed: %s (attempt %d)",
                        notification.id, exc, attempt,
                    )
                    continue
                logger.info(
                    "Stored notification %s for %s after %d background attempt(s)",
                    notification.id, notification.user_id, attempt + 1,
                )
                return
        except asyncio.CancelledError:
            logger.error(
                "Gave up on notification %s for %s at shutdown",
                notification.id, notification.user_id,
            )
            raise

    @property
    def recovering(self) -> int:
        return len(self._recovering)

    # -- Delivery --

    def _schedule_delivery(self, notification: Notification) -> None:
        task = asyncio.create_task(self._deliver(notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, notification: Notification) -> None:
        user_id = notification.user_id
        # Tasks start in creation order and the lock is FIFO, so one user's
        # notifications go out in the order they were stored.
        async with self._delivery_locks.hold(user_id):
            report = await self._router.deliver(user_id, notification.to_wire())
            if report.reached:
                logger.debug(
                    "Delivered notification %s to %d channel(s) of %s",
                    notification.id, len(report.delivered), user_id,
                )
                return
            reason = (
                DeferralReason.LIVE_DELIVERY_FAILED
                if report.failed or report.timed_out
                else DeferralReason.NO_LIVE_CHANNEL
            )
            try:
                await self._deferred.defer(user_id, notification, reason)
            except Exception:
                logger.exception(
                    "Deferred delivery failed for notification %s", notification.id
                )

    async def drain(self) -> None:
        """Wait for every in-flight delivery and background store to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Stop background stores that are still failing, then drain."""
        for task in list(self._recovering):
            task.cancel()
        await self.drain()
