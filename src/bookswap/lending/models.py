"""Request data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from bookswap.core.types import RequestStatus, RequestType


class BookRequest(BaseModel):
    """A requester's ask to borrow or swap one book from its owner.

    ``book_title`` and the party names are snapshots taken at creation time.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    book_id: str
    book_title: str
    owner_id: str
    owner_name: str = ""
    requester_id: str
    requester_name: str = ""
    requester_email: str = ""
    request_type: RequestType
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def involves(self, user_id: str) -> bool:
        return user_id in (self.owner_id, self.requester_id)


class BookInfo(BaseModel):
    """Book metadata as provided by the catalog collaborator."""

    id: str
    title: str
    owner_id: str
    owner_name: str = ""
