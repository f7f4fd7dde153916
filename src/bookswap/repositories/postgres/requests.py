"""PostgreSQL request repository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from bookswap.core.errors import ConflictError
from bookswap.core.types import RequestStatus, RequestType
from bookswap.db.engine import DatabaseManager
from bookswap.db.models import BookRequestRow
from bookswap.lending.models import BookRequest
from bookswap.repositories.postgres import as_utc


class PostgresRequestRepository:
    """Postgres-backed request storage.

    Pending uniqueness is enforced by a partial unique index; status changes
    are compare-and-set updates so concurrent writers in other processes
    cannot both win.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def add(self, request: BookRequest) -> BookRequest:
        async with self._db.session() as db:
            db.add(
                BookRequestRow(
                    id=request.id,
                    book_id=request.book_id,
                    book_title=request.book_title,
                    owner_id=request.owner_id,
                    owner_name=request.owner_name,
                    requester_id=request.requester_id,
                    requester_name=request.requester_name,
                    requester_email=request.requester_email,
                    request_type=request.request_type.value,
                    status=request.status.value,
                    created_at=request.created_at,
                    updated_at=request.updated_at,
                )
            )
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                raise ConflictError(
                    f"A pending request already exists for book {request.book_id!r}"
                ) from exc
        return request

    async def get(self, request_id: str) -> BookRequest | None:
        async with self._db.session() as db:
            row = await db.get(BookRequestRow, request_id)
            if row is None:
                return None
            return self._row_to_request(row)

    async def find_pending(self, book_id: str, requester_id: str) -> BookRequest | None:
        async with self._db.session() as db:
            result = await db.execute(
                select(BookRequestRow).where(
                    BookRequestRow.book_id == book_id,
                    BookRequestRow.requester_id == requester_id,
                    BookRequestRow.status == RequestStatus.PENDING.value,
                )
            )
            row = result.scalars().first()
            return self._row_to_request(row) if row else None

    async def update_status(
        self,
        request_id: str,
        expected: RequestStatus,
        status: RequestStatus,
        updated_at: datetime,
    ) -> BookRequest | None:
        async with self._db.session() as db:
            result = await db.execute(
                update(BookRequestRow)
                .where(
                    BookRequestRow.id == request_id,
                    BookRequestRow.status == expected.value,
                )
                .values(status=status.value, updated_at=updated_at)
            )
            await db.commit()
            if result.rowcount == 0:
                return None
        return await self.get(request_id)

    async def delete(self, request_id: str, expected: RequestStatus | None = None) -> bool:
        stmt = delete(BookRequestRow).where(BookRequestRow.id == request_id)
        if expected is not None:
            stmt = stmt.where(BookRequestRow.status == expected.value)
        async with self._db.session() as db:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount > 0

    async def list_by_requester(self, requester_id: str) -> list[BookRequest]:
        return await self._list(BookRequestRow.requester_id == requester_id)

    async def list_by_owner(self, owner_id: str) -> list[BookRequest]:
        return await self._list(BookRequestRow.owner_id == owner_id)

    async def list_for_book(self, book_id: str) -> list[BookRequest]:
        return await self._list(BookRequestRow.book_id == book_id)

    async def list_all(self) -> list[BookRequest]:
        return await self._list()

    async def _list(self, *criteria) -> list[BookRequest]:
        async with self._db.session() as db:
            result = await db.execute(
                select(BookRequestRow)
                .where(*criteria)
                .order_by(BookRequestRow.created_at.desc())
            )
            return [self._row_to_request(r) for r in result.scalars().all()]

    @staticmethod
    def _row_to_request(row: BookRequestRow) -> BookRequest:
        return BookRequest(
            id=row.id,
            book_id=row.book_id,
            book_title=row.book_title,
            owner_id=row.owner_id,
            owner_name=row.owner_name,
            requester_id=row.requester_id,
            requester_name=row.requester_name,
            requester_email=row.requester_email,
            request_type=RequestType(row.request_type),
            status=RequestStatus(row.status),
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )
