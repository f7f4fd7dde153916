"""Caller identity middleware and dependencies.

Authentication happens upstream (gateway or session layer), which forwards
the authenticated user id in the ``X-User-Id`` header. This module only
carries that identity to the handlers.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

USER_ID_HEADER = "X-User-Id"
SCHEDULER_TOKEN_HEADER = "X-Scheduler-Token"


class IdentityMiddleware(BaseHTTPMiddleware):
    """Copies the forwarded caller identity onto ``request.state.user_id``."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        user_id = request.headers.get(USER_ID_HEADER, "").strip()
        request.state.user_id = user_id or None
        return await call_next(request)


def _current_user_id(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


def require_user():
    """FastAPI dependency returning the authenticated user id."""
    return Depends(_current_user_id)


def _scheduler_token(request: Request) -> None:
    settings = request.app.state.settings
    expected = settings.scheduler.token
    if not expected:
        raise HTTPException(status_code=503, detail="Scheduler not configured")
    if request.headers.get(SCHEDULER_TOKEN_HEADER) != expected:
        raise HTTPException(status_code=403, detail="Invalid scheduler token")


def require_scheduler():
    """FastAPI dependency guarding the scheduler trigger endpoints.

    The triggers stay closed until ``BOOKSWAP_SCHEDULER_TOKEN`` is set.
    """
    return Depends(_scheduler_token)
