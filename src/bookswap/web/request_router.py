"""FastAPI router for borrow/swap request endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from bookswap.core.errors import AuthorizationError, ValidationError
from bookswap.lending.lifecycle import RequestLifecycleEngine
from bookswap.lending.models import BookRequest
from bookswap.web.identity import require_user

router = APIRouter()


class CreateRequestBody(BaseModel):
    book_id: str
    request_type: str = "borrow"
    book_title: str | None = None
    owner_id: str | None = None
    owner_name: str | None = None
    requester_name: str = ""
    requester_email: str = ""


class StatusUpdateBody(BaseModel):
    status: str


def _engine(request: Request) -> RequestLifecycleEngine:
    engine = getattr(request.app.state, "lifecycle_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Lifecycle engine not available")
    return engine


def _to_dict(r: BookRequest) -> dict[str, Any]:
    return {
        "id": r.id,
        "book_id": r.book_id,
        "book_title": r.book_title,
        "owner_id": r.owner_id,
        "owner_name": r.owner_name,
        "requester_id": r.requester_id,
        "requester_name": r.requester_name,
        "requester_email": r.requester_email,
        "request_type": r.request_type,
        "status": r.status,
        "created_at": r.created_at.isoformat(),
        "updated_at": r.updated_at.isoformat(),
    }


@router.post("/api/requests", status_code=201)
async def create_request(
    body: CreateRequestBody, request: Request, user_id: str = require_user()
) -> dict[str, Any]:
    """Ask to borrow or swap a book.

    With a catalog configured, title and owner always come from it and an
    ``owner_id`` in the body must match. Without one, the body must carry
    both.
    """
    engine = _engine(request)
    catalog = getattr(request.app.state, "book_catalog", None)
    if catalog is not None:
        book = catalog.get_book(body.book_id)
        if book is None:
            raise HTTPException(status_code=404, detail=f"Book {body.book_id!r} not found")
        if body.owner_id is not None and body.owner_id != book.owner_id:
            raise ValidationError(f"Book {body.book_id!r} is not owned by {body.owner_id!r}")
        book_title, owner_id, owner_name = book.title, book.owner_id, book.owner_name
    else:
        if not body.book_title or not body.owner_id:
            raise ValidationError("book_title and owner_id are required")
        book_title, owner_id, owner_name = body.book_title, body.owner_id, body.owner_name

    created = await engine.create_request(
        book_id=body.book_id,
        book_title=book_title,
        owner_id=owner_id,
        owner_name=owner_name or "",
        requester_id=user_id,
        requester_name=body.requester_name,
        request_type=body.request_type,
        requester_email=body.requester_email,
    )
    return _to_dict(created)


@router.get("/api/requests/outgoing")
async def list_outgoing(request: Request, user_id: str = require_user()) -> list[dict[str, Any]]:
    """Requests the caller has made, newest first."""
    return [_to_dict(r) for r in await _engine(request).list_outgoing(user_id)]


@router.get("/api/requests/incoming")
async def list_incoming(request: Request, user_id: str = require_user()) -> list[dict[str, Any]]:
    """Requests for the caller's books, newest first."""
    return [_to_dict(r) for r in await _engine(request).list_incoming(user_id)]


@router.get("/api/requests/{request_id}")
async def get_request(
    request_id: str, request: Request, user_id: str = require_user()
) -> dict[str, Any]:
    found = await _engine(request).get_request(request_id)
    if not found.involves(user_id):
        raise AuthorizationError("You are not a party to this request")
    return _to_dict(found)


@router.put("/api/requests/{request_id}/status")
async def update_status(
    request_id: str,
    body: StatusUpdateBody,
    request: Request,
    user_id: str = require_user(),
) -> dict[str, Any]:
    """Approve/reject (owner) or mark returned (requester)."""
    updated = await _engine(request).transition(request_id, user_id, body.status)
    return _to_dict(updated)


@router.delete("/api/requests/{request_id}")
async def withdraw_request(
    request_id: str, request: Request, user_id: str = require_user()
) -> dict[str, Any]:
    await _engine(request).withdraw(request_id, user_id)
    return {"id": request_id, "withdrawn": True}
