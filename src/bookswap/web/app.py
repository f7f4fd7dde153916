"""FastAPI application for the BookSwap core.

Wires the request lifecycle engine, the notification fanout engine and the
session router together, and exposes the request, notification and live
channel endpoints.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from bookswap import __version__
from bookswap.core.config import Settings
from bookswap.core.errors import BookSwapError
from bookswap.core.events import LifecycleEventBus
from bookswap.db.engine import DatabaseManager
from bookswap.lending.catalog import BookCatalog
from bookswap.lending.lifecycle import RequestLifecycleEngine
from bookswap.lending.store import RequestStore
from bookswap.notifications.deferred import (
    DeferredDelivery,
    RecordingDeferredDelivery,
    WebhookPushDelivery,
)
from bookswap.notifications.engine import NotificationFanoutEngine
from bookswap.notifications.service import NotificationService
from bookswap.notifications.store import NotificationStore
from bookswap.realtime.router import SessionRouter
from bookswap.web.identity import IdentityMiddleware
from bookswap.web.notification_router import router as notification_router
from bookswap.web.realtime_router import router as realtime_router
from bookswap.web.request_router import router as request_router

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str = __version__
    live_channels: int = 0
    database: str = "memory"


def create_app(
    settings: Settings | None = None,
    book_catalog: BookCatalog | None = None,
    deferred_delivery: DeferredDelivery | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances
    with their own stores and fakes.

    Args:
        settings: Application settings. Defaults to Settings().
        book_catalog: Book metadata lookup. Without one, callers must send the
            book title and owner themselves and the core cannot verify them.
        deferred_delivery: Out-of-band delivery hook. Defaults to the webhook
            adapter when ``push.webhook_url`` is set, else an in-memory recorder.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("bookswap").setLevel(settings.log_level.upper())

    # Stores: Postgres when a database URL is configured, in-memory otherwise.
    db_manager: DatabaseManager | None = None
    if settings.db.database_url:
        from bookswap.repositories.postgres.notifications import PostgresNotificationRepository
        from bookswap.repositories.postgres.requests import PostgresRequestRepository

        db_manager = DatabaseManager.from_config(settings.db)
        request_store = PostgresRequestRepository(db_manager)
        notification_store = PostgresNotificationRepository(db_manager)
    else:
        request_store = RequestStore()
        notification_store = NotificationStore()

    if deferred_delivery is None:
        if settings.push.webhook_url:
            deferred_delivery = WebhookPushDelivery(
                settings.push.webhook_url, timeout_seconds=settings.push.timeout_seconds
            )
        else:
            deferred_delivery = RecordingDeferredDelivery()

    session_router = SessionRouter(send_timeout_seconds=settings.realtime.send_timeout_seconds)
    session_router.init()

    notification_engine = NotificationFanoutEngine(
        store=notification_store,
        session_router=session_router,
        deferred=deferred_delivery,
        config=settings.notification,
    )
    notification_service = NotificationService(
        store=notification_store,
        user_locks=notification_engine.user_locks,
        config=settings.notification,
    )

    event_bus = LifecycleEventBus()
    event_bus.subscribe(notification_engine.handle_lifecycle_event)
    lifecycle_engine = RequestLifecycleEngine(store=request_store, event_bus=event_bus)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if db_manager is not None and settings.db.create_schema:
            await db_manager.create_all()
        logger.info("BookSwap core started (%s)", settings.environment)
        yield
        await notification_engine.close()
        session_router.close()
        if isinstance(deferred_delivery, WebhookPushDelivery):
            await deferred_delivery.close()
        if db_manager is not None:
            await db_manager.close()

    app = FastAPI(
        title="BookSwap Core",
        description="Borrow/swap request lifecycle and real-time notifications",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(IdentityMiddleware)

    # Store on app state for access in route handlers
    app.state.settings = settings
    app.state.db_manager = db_manager
    app.state.request_store = request_store
    app.state.notification_store = notification_store
    app.state.book_catalog = book_catalog
    app.state.event_bus = event_bus
    app.state.lifecycle_engine = lifecycle_engine
    app.state.session_router = session_router
    app.state.deferred_delivery = deferred_delivery
    app.state.notification_engine = notification_engine
    app.state.notification_service = notification_service

    @app.exception_handler(BookSwapError)
    async def handle_bookswap_error(request: Request, exc: BookSwapError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": exc.code},
        )

    app.include_router(request_router)
    app.include_router(notification_router)
    app.include_router(realtime_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        database = "memory"
        if db_manager is not None:
            database = "ok" if await db_manager.ping() else "unavailable"
        return HealthResponse(
            status="healthy" if database != "unavailable" else "degraded",
            service="bookswap-core",
            live_channels=session_router.channel_count,
            database=database,
        )

    return app
