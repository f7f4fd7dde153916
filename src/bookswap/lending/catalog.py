"""Book metadata lookup collaborator."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from bookswap.lending.models import BookInfo


@runtime_checkable
class BookCatalog(Protocol):
    """Resolves a book id to its title and owner."""

    def get_book(self, book_id: str) -> BookInfo | None: ...


class InMemoryBookCatalog:
    """Catalog backed by a dict; the real catalog lives outside the core."""

    def __init__(self, books: list[BookInfo] | None = None) -> None:
        self._books: dict[str, BookInfo] = {b.id: b for b in books or []}

    def add_book(self, book: BookInfo) -> None:
        self._books[book.id] = book

    def get_book(self, book_id: str) -> BookInfo | None:
        return self._books.get(book_id)

    @property
    def count(self) -> int:
        return len(self._books)
