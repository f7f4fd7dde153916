"""Initial schema: book requests and notifications.

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- Book Requests --
    op.create_table(
        "book_requests",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("book_id", sa.String(128), nullable=False),
        sa.Column("book_title", sa.String(512), server_default=""),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("owner_name", sa.String(256), server_default=""),
        sa.Column("requester_id", sa.String(128), nullable=False),
        sa.Column("requester_name", sa.String(256), server_default=""),
        sa.Column("requester_email", sa.String(256), server_default=""),
        sa.Column("request_type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_book_requests_owner_id", "book_requests", ["owner_id"])
    op.create_index("ix_book_requests_requester_id", "book_requests", ["requester_id"])
    op.create_index("ix_book_requests_book_id", "book_requests", ["book_id"])
    # At most one pending request per (book, requester).
    op.create_index(
        "uq_book_requests_pending_pair",
        "book_requests",
        ["book_id", "requester_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # -- Notifications --
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(512), server_default=""),
        sa.Column("message", sa.Text, server_default=""),
        sa.Column("data", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("read", sa.Boolean, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("book_requests")
