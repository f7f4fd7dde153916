"""In-memory notification store."""

from __future__ import annotations

from bookswap.notifications.models import Notification


class NotificationStore:
    """In-memory store for notifications, keyed by id.

    Every method completes without yielding to the event loop, so each call
    is atomic with respect to concurrent coroutines.
    """

    def __init__(self) -> None:
        self._notifications: dict[str, Notification] = {}

    def add(self, notification: Notification) -> Notification:
        # Re-adding the same id (a persistence retry) is a no-op.
        if notification.id not in self._notifications:
            self._notifications[notification.id] = notification.model_copy()
        return notification

    def get(self, notification_id: str) -> Notification | None:
        n = self._notifications.get(notification_id)
        return n.model_copy() if n else None

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Notification]:
        matches = sorted(
            (
                n for n in self._notifications.values()
                if n.user_id == user_id and not (unread_only and n.read)
            ),
            key=lambda n: n.created_at,
            reverse=True,
        )
        end = None if limit is None else offset + limit
        return [n.model_copy() for n in matches[offset:end]]

    def count_for_user(self, user_id: str, unread_only: bool = False) -> int:
        return sum(
            1 for n in self._notifications.values()
            if n.user_id == user_id and not (unread_only and n.read)
        )

    def mark_read(self, notification_id: str) -> Notification | None:
        n = self._notifications.get(notification_id)
        if n is None:
            return None
        n.read = True
        return n.model_copy()

    def mark_all_read(self, user_id: str) -> int:
        changed = 0
        for n in self._notifications.values():
            if n.user_id == user_id and not n.read:
                n.read = True
                changed += 1
        return changed

    def delete(self, notification_id: str) -> bool:
        return self._notifications.pop(notification_id, None) is not None

    def clear_for_user(self, user_id: str) -> int:
        doomed = [nid for nid, n in self._notifications.items() if n.user_id == user_id]
        for nid in doomed:
            del self._notifications[nid]
        return len(doomed)

    def list_all(self) -> list[Notification]:
        return [n.model_copy() for n in self._notifications.values()]

    @property
    def count(self) -> int:
        return len(self._notifications)
