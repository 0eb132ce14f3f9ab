"""
BackupJob Entity Model

One row per ingestion attempt (archive upload or snapshot scrape).

Jobs are never deleted: a finished job stays as the audit trail and is
superseded by newer jobs. Progress is recorded by merging keys into the
flat ``payload`` map; the row columns hold only what is queried or
indexed.

SAMPLE BACKUP_JOB RECORD:
┌──────────────────────────────────────────────────────────────────────────────┐
│ id               │ 550e8400-e29b-41d4-a716-446655440000                      │
│ user_id          │ 660e8400-e29b-41d4-a716-446655440000                      │
│ job_type         │ "snapshot_scrape"                                         │
│ status           │ "processing"                                              │
│ progress         │ 42                                                        │
│ message          │ "Fetching timeline..."                                    │
│ payload          │ {"username": "jack", "lifecycle_state": "processing",     │
│                  │  "scrape_phase": "scraping", "api_cost_usd": 0.21, ...}   │
│ result_backup_id │ null                                                      │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from datetime import datetime
from typing import Any, Optional
import uuid

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from socialvault.shared.models.base import Base, TimestampMixin
from socialvault.shared.models.enums import JobStatus


class BackupJob(Base, TimestampMixin):
    """
    BackupJob model - tracks one asynchronous ingestion attempt.

    Attributes:
        id: Unique identifier (UUID v4)
        user_id: Owner (opaque actor id)
        job_type: archive_upload | snapshot_scrape
        status: queued | processing | completed | failed
        progress: 0..100
        message: Human-readable status line
        payload: Flat string-keyed map of scalar progress fields
        result_backup_id: Backup produced by a completed job
        error_message: Error text for failed jobs
        started_at: When processing started
        completed_at: When the job reached a terminal status
    """

    __tablename__ = "backup_jobs"
    __table_args__ = (
        Index("backup_jobs_user_created_idx", "user_id", "created_at"),
        Index("backup_jobs_user_status_idx", "user_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )

    job_type: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.QUEUED.value,
    )

    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )

    result_backup_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("backups.id", ondelete="SET NULL"),
        nullable=True,
    )

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_active(self) -> bool:
        return JobStatus(self.status).is_active

    def __repr__(self) -> str:
        return f"<BackupJob(id={self.id}, type={self.job_type}, status={self.status})>"
