"""Database layer for BookSwap: SQLAlchemy 2.0 async."""

from __future__ import annotations

from bookswap.db.base import Base
from bookswap.db.engine import DatabaseManager

__all__ = ["Base", "DatabaseManager"]
