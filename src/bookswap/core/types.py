"""Core type definitions shared across all BookSwap modules."""

from __future__ import annotations

from enum import StrEnum


class RequestType(StrEnum):
    """What the requester wants to do with the book."""

    BORROW = "borrow"
    SWAP = "swap"


class RequestStatus(StrEnum):
    """Status of a borrow/swap request.

    ``pending`` -> ``approved`` | ``rejected``; ``approved`` -> ``returned``.
    ``rejected`` and ``returned`` are terminal.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"


class NotificationType(StrEnum):
    """Closed set of notification types."""

    REQUEST_SENT = "request_sent"
    REQUEST_APPROVED = "request_approved"
    REQUEST_REJECTED = "request_rejected"
    REQUEST_RETURNED = "request_returned"
    DUE_DATE_REMINDER = "due_date_reminder"
    BOOK_OVERDUE = "book_overdue"


class DeferralReason(StrEnum):
    """Why a notification was handed to deferred delivery."""

    NO_LIVE_CHANNEL = "no_live_channel"
    LIVE_DELIVERY_FAILED = "live_delivery_failed"
