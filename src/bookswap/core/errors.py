"""Error taxonomy for lifecycle and notification operations.

Every error is raised before any state is written, except
``NotificationPersistenceError`` which signals that a notification could not
be stored after retries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bookswap.notifications.models import Notification


class BookSwapError(Exception):
    """Base class for errors surfaced to callers."""

    code: str = "error"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookSwapError):
    """Malformed or self-referential input. Not retried."""

    code = "validation_error"
    status_code = 400


class ConflictError(BookSwapError):
    """A pending request already exists for the same book and requester."""

    code = "conflict"
    status_code = 409


class AuthorizationError(BookSwapError):
    """The actor lacks rights for the operation. Never retried."""

    code = "forbidden"
    status_code = 403


class NotFoundError(BookSwapError):
    code = "not_found"
    status_code = 404


class InvalidTransitionError(BookSwapError):
    """The current request status does not permit the target status."""

    code = "invalid_transition"
    status_code = 409


class InvalidStateError(BookSwapError):
    """The request is not in a state that allows the operation."""

    code = "invalid_state"
    status_code = 409


class NotificationPersistenceError(BookSwapError):
    """A notification could not be persisted after all retries.

    Carries the unsaved notification so a caller can keep trying.
    """

    code = "notification_persistence_failed"
    status_code = 503

    def __init__(self, message: str, notification: Notification | None = None) -> None:
        super().__init__(message)
        self.notification = notification
