"""Borrow/swap requests: models, storage and the lifecycle engine."""

from bookswap.lending.lifecycle import RequestLifecycleEngine
from bookswap.lending.models import BookInfo, BookRequest
from bookswap.lending.store import RequestStore

__all__ = [
    "BookInfo",
    "BookRequest",
    "RequestLifecycleEngine",
    "RequestStore",
]
