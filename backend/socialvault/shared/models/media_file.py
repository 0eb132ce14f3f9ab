"""
MediaFile Entity Model

One stored object belonging to a backup (profile image, tweet media, or
the original archive). Deleting a backup must delete the underlying
objects before the rows disappear with the cascade.
"""

from typing import TYPE_CHECKING, Optional
import uuid

from sqlalchemy import BigInteger, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from socialvault.shared.models.base import Base, TimestampMixin


if TYPE_CHECKING:
    from socialvault.shared.models.backup import Backup


class MediaFile(Base, TimestampMixin):
    """MediaFile model - an object-storage key owned by a backup."""

    __tablename__ = "media_files"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    backup_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("backups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )

    file_path: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    mime_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # profile_media | tweet_media | archive_file
    media_type: Mapped[str] = mapped_column(Text, nullable=False)

    backup: Mapped["Backup"] = relationship("Backup", back_populates="media_files")

    def __repr__(self) -> str:
        return f"<MediaFile(id={self.id}, path={self.file_path}, type={self.media_type})>"
