"""Query and read-state operations on stored notifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

from bookswap.core.config import NotificationConfig
from bookswap.core.errors import AuthorizationError, NotFoundError, ValidationError
from bookswap.core.locks import KeyedLock
from bookswap.notifications.models import Notification, NotificationPage
from bookswap.repositories import resolve

if TYPE_CHECKING:
    from bookswap.repositories.protocols import NotificationRepository


class NotificationService:
    """Read side of the notification store, plus read/delete actions.

    Every operation that reads or writes a user's notifications takes the
    same per-user lock as ``NotificationFanoutEngine.notify``, so a page and
    its counts always describe one state of the store.
    """

    def __init__(
        self,
        store: NotificationRepository,
        user_locks: KeyedLock | None = None,
        config: NotificationConfig | None = None,
    ) -> None:
        self._store = store
        self._user_locks = user_locks or KeyedLock()
        self._config = config or NotificationConfig()

    async def get(self, notification_id: str, actor_id: str) -> Notification:
        return await self._get_owned(notification_id, actor_id)

    async def mark_read(self, notification_id: str, actor_id: str) -> Notification:
        """Flag one notification as read. Idempotent."""
        notification = await self._get_owned(notification_id, actor_id)
        async with self._user_locks.hold(notification.user_id):
            updated = await resolve(self._store.mark_read(notification_id))
        if updated is None:
            raise NotFoundError(f"Notification {notification_id!r} not found")
        return updated

    async def mark_all_read(self, user_id: str) -> int:
        """Flag every unread notification of ``user_id``. Returns how many changed."""
        async with self._user_locks.hold(user_id):
            return await resolve(self._store.mark_all_read(user_id))

    async def unread_count(self, user_id: str) -> int:
        async with self._user_locks.hold(user_id):
            return await resolve(self._store.count_for_user(user_id, unread_only=True))

    async def list_unread(self, user_id: str) -> list[Notification]:
        async with self._user_locks.hold(user_id):
            return await resolve(self._store.list_for_user(user_id, unread_only=True))

    async def list_history(
        self,
        user_id: str,
        page: int = 1,
        limit: int | None = None,
        unread_only: bool = False,
    ) -> NotificationPage:
        """One page of the user's notifications, newest first."""
        limit = limit or self._config.default_page_size
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1 or limit > self._config.max_page_size:
            raise ValidationError(
                f"limit must be between 1 and {self._config.max_page_size}"
            )

        async with self._user_locks.hold(user_id):
            items = await resolve(
                self._store.list_for_user(
                    user_id,
                    unread_only=unread_only,
                    offset=(page - 1) * limit,
                    limit=limit,
                )
            )
            total = await resolve(self._store.count_for_user(user_id, unread_only=unread_only))
            unread = await resolve(self._store.count_for_user(user_id, unread_only=True))
        return NotificationPage(items=items, page=page, limit=limit, total=total, unread=unread)

    async def delete(self, notification_id: str, actor_id: str) -> None:
        notification = await self._get_owned(notification_id, actor_id)
        async with self._user_locks.hold(notification.user_id):
            await resolve(self._store.delete(notification_id))

    async def clear_all(self, user_id: str) -> int:
        async with self._user_locks.hold(user_id):
            return await resolve(self._store.clear_for_user(user_id))

    async def _get_owned(self, notification_id: str, actor_id: str) -> Notification:
        notification = await resolve(self._store.get(notification_id))
        if notification is None:
            raise NotFoundError(f"Notification {notification_id!r} not found")
        if notification.user_id != actor_id:
            raise AuthorizationError("You can only manage your own notifications")
        return notification
