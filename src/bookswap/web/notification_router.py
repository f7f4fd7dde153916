"""FastAPI router for notification endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from bookswap.core.types import NotificationType
from bookswap.notifications.engine import NotificationFanoutEngine
from bookswap.notifications.models import Notification
from bookswap.notifications.service import NotificationService
from bookswap.web.identity import require_scheduler, require_user

router = APIRouter()


class LoanReminderBody(BaseModel):
    borrower_id: str
    book_title: str
    due_date: date
    book_id: str | None = None
    request_id: str | None = None


def _service(request: Request) -> NotificationService:
    service = getattr(request.app.state, "notification_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Notification service not available")
    return service


def _engine(request: Request) -> NotificationFanoutEngine:
    engine = getattr(request.app.state, "notification_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Notification engine not available")
    return engine


def _to_dict(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "data": n.data,
        "read": n.read,
        "created_at": n.created_at.isoformat(),
    }


@router.get("/api/notifications")
async def list_notifications(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    unread_only: bool = False,
    user_id: str = require_user(),
) -> dict[str, Any]:
    """Paginated notification history for the caller, newest first."""
    result = await _service(request).list_history(
        user_id, page=page, limit=limit, unread_only=unread_only
    )
    return {
        "notifications": [_to_dict(n) for n in result.items],
        "page": result.page,
        "limit": result.limit,
        "total": result.total,
        "unread_count": result.unread,
        "has_more": result.has_more,
    }


@router.get("/api/notifications/unread-count")
async def unread_count(request: Request, user_id: str = require_user()) -> dict[str, int]:
    return {"unread_count": await _service(request).unread_count(user_id)}


@router.put("/api/notifications/read-all")
async def mark_all_read(request: Request, user_id: str = require_user()) -> dict[str, int]:
    return {"updated": await _service(request).mark_all_read(user_id)}


@router.put("/api/notifications/{notification_id}/read")
async def mark_read(
    notification_id: str, request: Request, user_id: str = require_user()
) -> dict[str, Any]:
    return _to_dict(await _service(request).mark_read(notification_id, user_id))


@router.delete("/api/notifications/{notification_id}")
async def delete_notification(
    notification_id: str, request: Request, user_id: str = require_user()
) -> dict[str, Any]:
    await _service(request).delete(notification_id, user_id)
    return {"id": notification_id, "deleted": True}


@router.delete("/api/notifications")
async def clear_notifications(request: Request, user_id: str = require_user()) -> dict[str, int]:
    return {"deleted": await _service(request).clear_all(user_id)}


# --- Scheduler triggers ---


async def _loan_notification(
    request: Request, body: LoanReminderBody, ntype: NotificationType
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "book_title": body.book_title,
        "due_date": body.due_date.isoformat(),
    }
    if body.book_id:
        data["book_id"] = body.book_id
    if body.request_id:
        data["request_id"] = body.request_id
    notification = await _engine(request).notify(body.borrower_id, ntype, data=data)
    return _to_dict(notification)


@router.post("/api/notifications/trigger/due-date", status_code=201, dependencies=[require_scheduler()])
async def trigger_due_date(body: LoanReminderBody, request: Request) -> dict[str, Any]:
    """Remind a borrower that a book is due soon."""
    return await _loan_notification(request, body, NotificationType.DUE_DATE_REMINDER)


@router.post("/api/notifications/trigger/overdue", status_code=201, dependencies=[require_scheduler()])
async def trigger_overdue(body: LoanReminderBody, request: Request) -> dict[str, Any]:
    """Tell a borrower that a book is past its due date."""
    return await _loan_notification(request, body, NotificationType.BOOK_OVERDUE)
