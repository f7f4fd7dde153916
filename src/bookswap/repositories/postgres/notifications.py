"""PostgreSQL notification repository."""

from __future__ import annotations

from sqlalchemy import delete, func, select, update

from bookswap.core.types import NotificationType
from bookswap.db.engine import DatabaseManager
from bookswap.db.models import NotificationRow
from bookswap.notifications.models import Notification
from bookswap.repositories.postgres import as_utc


class PostgresNotificationRepository:
    """Postgres-backed notification storage."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def add(self, notification: Notification) -> Notification:
        async with self._db.session() as db:
            # A retry after an ambiguous commit must not insert twice.
            if await db.get(NotificationRow, notification.id) is None:
                db.add(
                    NotificationRow(
                        id=notification.id,
                        user_id=notification.user_id,
                        type=notification.type.value,
                        title=notification.title,
                        message=notification.message,
                        data=notification.data,
                        read=notification.read,
                        created_at=notification.created_at,
                    )
                )
                await db.commit()
        return notification

    async def get(self, notification_id: str) -> Notification | None:
        async with self._db.session() as db:
            row = await db.get(NotificationRow, notification_id)
            if row is None:
                return None
            return self._row_to_notification(row)

    async def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Notification]:
        stmt = select(NotificationRow).where(NotificationRow.user_id == user_id)
        if unread_only:
            stmt = stmt.where(NotificationRow.read.is_(False))
        stmt = stmt.order_by(NotificationRow.created_at.desc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._db.session() as db:
            result = await db.execute(stmt)
            return [self._row_to_notification(r) for r in result.scalars().all()]

    async def count_for_user(self, user_id: str, unread_only: bool = False) -> int:
        stmt = (
            select(func.count())
            .select_from(NotificationRow)
            .where(NotificationRow.user_id == user_id)
        )
        if unread_only:
            stmt = stmt.where(NotificationRow.read.is_(False))
        async with self._db.session() as db:
            result = await db.execute(stmt)
            return result.scalar_one()

    async def mark_read(self, notification_id: str) -> Notification | None:
        async with self._db.session() as db:
            row = await db.get(NotificationRow, notification_id)
            if row is None:
                return None
            if not row.read:
                row.read = True
                await db.commit()
            return self._row_to_notification(row)

    async def mark_all_read(self, user_id: str) -> int:
        # One UPDATE statement: a row inserted concurrently is either
        # included or left unread, never lost.
        async with self._db.session() as db:
            result = await db.execute(
                update(NotificationRow)
                .where(NotificationRow.user_id == user_id, NotificationRow.read.is_(False))
                .values(read=True)
            )
            await db.commit()
            return result.rowcount

    async def delete(self, notification_id: str) -> bool:
        async with self._db.session() as db:
            result = await db.execute(
                delete(NotificationRow).where(NotificationRow.id == notification_id)
            )
            await db.commit()
            return result.rowcount > 0

    async def clear_for_user(self, user_id: str) -> int:
        async with self._db.session() as db:
            result = await db.execute(
                delete(NotificationRow).where(NotificationRow.user_id == user_id)
            )
            await db.commit()
            return result.rowcount

    async def list_all(self) -> list[Notification]:
        async with self._db.session() as db:
            result = await db.execute(select(NotificationRow))
            return [self._row_to_notification(r) for r in result.scalars().all()]

    @staticmethod
    def _row_to_notification(row: NotificationRow) -> Notification:
        return Notification(
            id=row.id,
            user_id=row.user_id,
            type=NotificationType(row.type),
            title=row.title,
            message=row.message,
            data=row.data or {},
            read=row.read,
            created_at=as_utc(row.created_at),
        )
