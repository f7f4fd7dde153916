"""In-memory request store."""

from __future__ import annotations

from datetime import datetime

from bookswap.core.errors import ConflictError
from bookswap.core.types import RequestStatus
from bookswap.lending.models import BookRequest


def _newest_first(requests: list[BookRequest]) -> list[BookRequest]:
    return sorted(requests, key=lambda r: r.created_at, reverse=True)


class RequestStore:
    """In-memory dict store for borrow/swap requests.

    Pure data access. The only rule enforced here is uniqueness of a
    pending request per (book, requester). Stored objects are never handed
    out directly, so callers cannot observe partial writes.
    """

    def __init__(self) -> None:
        self._requests: dict[str, BookRequest] = {}

    def add(self, request: BookRequest) -> BookRequest:
        if request.status == RequestStatus.PENDING and self.find_pending(
            request.book_id, request.requester_id
        ):
            raise ConflictError(
                f"A pending request already exists for book {request.book_id!r}"
            )
        self._requests[request.id] = request.model_copy()
        return request

    def get(self, request_id: str) -> BookRequest | None:
        request = self._requests.get(request_id)
        return request.model_copy() if request else None

    def find_pending(self, book_id: str, requester_id: str) -> BookRequest | None:
        for request in self._requests.values():
            if (
                request.book_id == book_id
                and request.requester_id == requester_id
                and request.status == RequestStatus.PENDING
            ):
                return request.model_copy()
        return None

    def update_status(
        self,
        request_id: str,
        expected: RequestStatus,
        status: RequestStatus,
        updated_at: datetime,
    ) -> BookRequest | None:
        """Compare-and-set the status. Returns None if ``expected`` no longer holds."""
        current = self._requests.get(request_id)
        if current is None or current.status != expected:
            return None
        updated = current.model_copy(update={"status": status, "updated_at": updated_at})
        self._requests[request_id] = updated
        return updated.model_copy()

    def delete(self, request_id: str, expected: RequestStatus | None = None) -> bool:
        current = self._requests.get(request_id)
        if current is None:
            return False
        if expected is not None and current.status != expected:
            return False
        del self._requests[request_id]
        return True

    def list_by_requester(self, requester_id: str) -> list[BookRequest]:
        return _newest_first([
            r.model_copy() for r in self._requests.values()
            if r.requester_id == requester_id
        ])

    def list_by_owner(self, owner_id: str) -> list[BookRequest]:
        return _newest_first([
            r.model_copy() for r in self._requests.values()
            if r.owner_id == owner_id
        ])

    def list_for_book(self, book_id: str) -> list[BookRequest]:
        return _newest_first([
            r.model_copy() for r in self._requests.values()
            if r.book_id == book_id
        ])

    def list_all(self) -> list[BookRequest]:
        return _newest_first([r.model_copy() for r in self._requests.values()])

    @property
    def count(self) -> int:
        return len(self._requests)
