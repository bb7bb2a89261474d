"""Initial schema: cached_sleep_entries

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- cached_sleep_entries (local copy of source samples) ---
    op.create_table(
        "cached_sleep_entries",
        sa.Column("pk", sa.Integer, primary_key=True, autoincrement=True),
        # Logical identity; uniqueness is enforced by the repository, not the table
        sa.Column("uuid", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("sync_identifier", sa.Text, nullable=True),
        sa.Column("sync_version", sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("value", sa.Integer, nullable=False),
    )
    op.create_index("idx_cached_sleep_entries_uuid", "cached_sleep_entries", ["uuid"])
    op.create_index(
        "idx_cached_sleep_entries_start_date", "cached_sleep_entries", ["start_date"]
    )


def downgrade() -> None:
    op.drop_index("idx_cached_sleep_entries_start_date", table_name="cached_sleep_entries")
    op.drop_index("idx_cached_sleep_entries_uuid", table_name="cached_sleep_entries")
    op.drop_table("cached_sleep_entries")
