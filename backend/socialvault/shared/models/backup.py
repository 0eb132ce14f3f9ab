"""
Backup Entity Model

A completed export produced by a backup job.

``data`` is nested JSON (profile, stats, timeline, scrape cost, retention).
The retention class lives in ``data["retention"]``: a guest marker with an
expiry instant, or nothing for owned/permanent backups.

``archive_file_path`` may be missing on older rows; readers fall back to
``data["archive_file_path"]`` and then to the canonical
``{user_id}/archives/{backup_id}.zip`` path.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional
import uuid

from sqlalchemy import DateTime, Index, Text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from socialvault.shared.models.base import Base, TimestampMixin, utc_now


if TYPE_CHECKING:
    from socialvault.shared.models.media_file import MediaFile


class Backup(Base, TimestampMixin):
    """
    Backup model - the durable result of a job.

    Attributes:
        id: Unique identifier (UUID v4)
        user_id: Owner; every read path checks it against the caller
        backup_type: archive | snapshot
        data: Nested backup content
        archive_file_path: Object key of the original archive, if stored
        uploaded_at: When the backup was produced

    Relationships:
        media_files: Stored objects belonging to this backup
    """

    __tablename__ = "backups"
    __table_args__ = (Index("backups_user_created_at_idx", "user_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )

    backup_type: Mapped[str] = mapped_column(Text, nullable=False)

    data: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )

    archive_file_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    media_files: Mapped[List["MediaFile"]] = relationship(
        "MediaFile",
        back_populates="backup",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Backup(id={self.id}, type={self.backup_type}, user_id={self.user_id})>"
