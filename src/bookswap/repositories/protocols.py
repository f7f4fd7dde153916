"""Protocol definitions for the repository interfaces.

Each protocol mirrors the public methods of the corresponding in-memory
store class exactly, enabling both sync (in-memory) and async (Postgres)
implementations to satisfy the same interface. Callers go through
``resolve()``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from bookswap.core.types import RequestStatus
from bookswap.lending.models import BookRequest
from bookswap.notifications.models import Notification


@runtime_checkable
class RequestRepository(Protocol):
    """Protocol for request storage."""

    def add(self, request: BookRequest) -> BookRequest: ...

    def get(self, request_id: str) -> BookRequest | None: ...

    def find_pending(self, book_id: str, requester_id: str) -> BookRequest | None: ...

    def update_status(
        self,
        request_id: str,
        expected: RequestStatus,
        status: RequestStatus,
        updated_at: datetime,
    ) -> BookRequest | None: ...

    def delete(self, request_id: str, expected: RequestStatus | None = None) -> bool: ...

    def list_by_requester(self, requester_id: str) -> list[BookRequest]: ...

    def list_by_owner(self, owner_id: str) -> list[BookRequest]: ...

    def list_for_book(self, book_id: str) -> list[BookRequest]: ...

    def list_all(self) -> list[BookRequest]: ...


@runtime_checkable
class NotificationRepository(Protocol):
    """Protocol for notification storage."""

    def add(self, notification: Notification) -> Notification: ...

    def get(self, notification_id: str) -> Notification | None: ...

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Notification]: ...

    def count_for_user(self, user_id: str, unread_only: bool = False) -> int: ...

    def mark_read(self, notification_id: str) -> Notification | None: ...

    def mark_all_read(self, user_id: str) -> int: ...

    def delete(self, notification_id: str) -> bool: ...

    def clear_for_user(self, user_id: str) -> int: ...

    def list_all(self) -> list[Notification]: ...
