"""Request lifecycle engine: the only writer of request status.

State machine::

    pending --> approved --> returned
       \\
        `-----> rejected

Every committed creation or transition emits exactly one ``LifecycleEvent``
addressed to the counterpart of the acting user. All checks run before any
write, so a failed call leaves no trace.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from bookswap.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from bookswap.core.events import LifecycleEvent, LifecycleEventBus
from bookswap.core.locks import KeyedLock
from bookswap.core.types import NotificationType, RequestStatus, RequestType
from bookswap.lending.models import BookRequest
from bookswap.repositories import resolve

if TYPE_CHECKING:
    from bookswap.repositories.protocols import RequestRepository

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
    RequestStatus.APPROVED: frozenset({RequestStatus.RETURNED}),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.RETURNED: frozenset(),
}

_TRANSITION_EVENTS: dict[RequestStatus, NotificationType] = {
    RequestStatus.APPROVED: NotificationType.REQUEST_APPROVED,
    RequestStatus.REJECTED: NotificationType.REQUEST_REJECTED,
    RequestStatus.RETURNED: NotificationType.REQUEST_RETURNED,
}

_MIN_TICK = timedelta(microseconds=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestLifecycleEngine:
    """Validates and applies request state transitions.

    Mutations of one request are serialized with a per-request lock;
    creations are serialized per (book, requester) pair. Different requests
    proceed in parallel, except that the write and the event for one
    recipient happen under a per-recipient lock, so that recipient's events
    are emitted in commit order.
    """

    def __init__(
        self,
        store: RequestRepository,
        event_bus: LifecycleEventBus,
    ) -> None:
        self._store = store
        self._bus = event_bus
        self._request_locks = KeyedLock()
        self._pair_locks = KeyedLock()
        self._recipient_locks = KeyedLock()

    @property
    def store(self) -> RequestRepository:
        return self._store

    # -- Commands --

    async def create_request(
        self,
        book_id: str,
        book_title: str,
        owner_id: str,
        owner_name: str,
        requester_id: str,
        requester_name: str,
        request_type: RequestType | str,
        requester_email: str = "",
    ) -> BookRequest:
        """Open a pending request and notify the book owner.

        Raises:
            ValidationError: Blank ids, unknown request type, or a user
                requesting their own book.
            ConflictError: The requester already has a pending request for
                this book.
        """
        if not book_id or not owner_id or not requester_id:
            raise ValidationError("book_id, owner_id and requester_id are required")
        if requester_id == owner_id:
            raise ValidationError("You cannot request your own book")
        try:
            kind = RequestType(request_type)
        except ValueError:
            raise ValidationError(f"Unknown request type: {request_type!r}") from None

        async with self._pair_locks.hold(f"{book_id}\x00{requester_id}"):
            existing = await resolve(self._store.find_pending(book_id, requester_id))
            if existing is not None:
                raise ConflictError("You already have a pending request for this book")

            now = _utcnow()
            request = BookRequest(
                book_id=book_id,
                book_title=book_title,
                owner_id=owner_id,
                owner_name=owner_name,
                requester_id=requester_id,
                requester_name=requester_name or requester_email or requester_id,
                requester_email=requester_email,
                request_type=kind,
                created_at=now,
                updated_at=now,
            )
            async with self._recipient_locks.hold(owner_id):
                await resolve(self._store.add(request))
                logger.info(
                    "Request %s created: %s wants to %s book %s from %s",
                    request.id, requester_id, kind, book_id, owner_id,
                )
                await self._bus.emit(
                    self._event(request, NotificationType.REQUEST_SENT, owner_id, requester_id)
                )
        return request

    async def transition(
        self,
        request_id: str,
        actor_id: str,
        target_status: RequestStatus | str,
    ) -> BookRequest:
        """Move a request to ``target_status`` on behalf of ``actor_id``.

        Owners approve or reject; requesters mark as returned.

        Raises:
            ValidationError: Unknown status, or ``pending`` as a target.
            NotFoundError: No such request.
            AuthorizationError: Actor is not the party allowed to make the move.
            InvalidTransitionError: The current status does not permit it.
        """
        try:
            target = RequestStatus(target_status)
        except ValueError:
            raise ValidationError(f"Unknown request status: {target_status!r}") from None
        if target not in _TRANSITION_EVENTS:
            raise ValidationError(f"Cannot transition a request to {target!r}")

        async with self._request_locks.hold(request_id):
            request = await self._get_or_raise(request_id)
            self._authorize(request, actor_id, target)

            if target not in ALLOWED_TRANSITIONS[request.status]:
                raise InvalidTransitionError(
                    f"Request {request_id} is '{request.status}', cannot move to '{target}'"
                )

            recipient = (
                request.owner_id if target == RequestStatus.RETURNED else request.requester_id
            )
            async with self._recipient_locks.hold(recipient):
                updated = await resolve(
                    self._store.update_status(
                        request_id,
                        request.status,
                        target,
                        max(_utcnow(), request.updated_at + _MIN_TICK),
                    )
                )
                if updated is None:
                    # Another writer got there first (e.g. a second process).
                    raise InvalidTransitionError(
                        f"Request {request_id} changed state concurrently"
                    )

                logger.info(
                    "Request %s moved %s -> %s by %s", request_id, request.status, target, actor_id
                )
                await self._bus.emit(
                    self._event(updated, _TRANSITION_EVENTS[target], recipient, actor_id)
                )
        return updated

    async def withdraw(self, request_id: str, actor_id: str) -> None:
        """Delete a pending request on behalf of its requester. No notification."""
        async with self._request_locks.hold(request_id):
            request = await self._get_or_raise(request_id)
            if actor_id != request.requester_id:
                raise AuthorizationError("You can only withdraw your own requests")
            if request.status != RequestStatus.PENDING:
                raise InvalidStateError("You can only withdraw pending requests")
            deleted = await resolve(self._store.delete(request_id, RequestStatus.PENDING))
            if not deleted:
                raise InvalidStateError("You can only withdraw pending requests")
            logger.info("Request %s withdrawn by %s", request_id, actor_id)

    # -- Queries --

    async def get_request(self, request_id: str) -> BookRequest:
        return await self._get_or_raise(request_id)

    async def list_outgoing(self, user_id: str) -> list[BookRequest]:
        """Requests made by ``user_id``, newest first."""
        return await resolve(self._store.list_by_requester(user_id))

    async def list_incoming(self, user_id: str) -> list[BookRequest]:
        """Requests for books owned by ``user_id``, newest first."""
        return await resolve(self._store.list_by_owner(user_id))

    async def list_for_book(self, book_id: str) -> list[BookRequest]:
        return await resolve(self._store.list_for_book(book_id))

    async def has_pending_request(self, book_id: str, requester_id: str) -> bool:
        return await resolve(self._store.find_pending(book_id, requester_id)) is not None

    # -- Internals --

    async def _get_or_raise(self, request_id: str) -> BookRequest:
        request = await resolve(self._store.get(request_id))
        if request is None:
            raise NotFoundError(f"Request {request_id!r} not found")
        return request

    @staticmethod
    def _authorize(request: BookRequest, actor_id: str, target: RequestStatus) -> None:
        if target == RequestStatus.RETURNED:
            if actor_id != request.requester_id:
                raise AuthorizationError("Only the requester can mark as returned")
        elif actor_id != request.owner_id:
            raise AuthorizationError("Only the owner can approve or reject requests")

    @staticmethod
    def _event(
        request: BookRequest,
        event_type: NotificationType,
        recipient_id: str,
        actor_id: str,
    ) -> LifecycleEvent:
        actor_name = (
            request.owner_name if actor_id == request.owner_id else request.requester_name
        )
        data: dict[str, Any] = {
            "request_id": request.id,
            "book_id": request.book_id,
            "book_title": request.book_title,
            "request_type": str(request.request_type),
            "status": str(request.status),
            "actor_id": actor_id,
            "actor_name": actor_name,
            "owner_name": request.owner_name,
            "requester_name": request.requester_name,
        }
        return LifecycleEvent(
            type=event_type,
            request_id=request.id,
            recipient_id=recipient_id,
            actor_id=actor_id,
            occurred_at=request.updated_at,
            data=data,
        )
