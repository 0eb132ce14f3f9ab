# pylint: skip-file
# ruff: noqa
"""Initial schema - backups, media files and backup jobs

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00

Tables created:
- backups: One saved copy of an account (archive or snapshot), JSONB data
- media_files: Every stored object of a backup (FK cascade on backup delete)
- backup_jobs: Asynchronous work items with a flat JSONB payload

Status and type columns are TEXT; allowed values live in
socialvault.shared.models.enums.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "backups",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("backup_type", sa.Text(), nullable=False),
        sa.Column("data", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("archive_file_path", sa.Text(), nullable=True),
        sa.Column(
            "uploaded_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_index("backups_user_created_at_idx", "backups", ["user_id", "created_at"])

    op.create_table(
        "media_files",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "backup_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("backups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("mime_type", sa.Text(), nullable=True),
        sa.Column("media_type", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_media_files_backup_id", "media_files", ["backup_id"])
    op.create_index("ix_media_files_user_id", "media_files", ["user_id"])
    op.create_index("ix_media_files_file_path", "media_files", ["file_path"])

    op.create_table(
        "backup_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("job_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'queued'")),
        sa.Column("progress", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column(
            "result_backup_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("backups.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("backup_jobs_user_created_idx", "backup_jobs", ["user_id", "created_at"])
    op.create_index("backup_jobs_user_status_idx", "backup_jobs", ["user_id", "status"])


def downgrade() -> None:
    """Downgrade database schema."""
    # Reverse order (respect foreign keys)
    op.drop_table("backup_jobs")
    op.drop_table("media_files")
    op.drop_table("backups")
