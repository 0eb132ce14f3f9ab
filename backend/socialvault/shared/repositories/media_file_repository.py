"""
MediaFile Repository

Database operations for stored objects belonging to backups.
"""

from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from socialvault.shared.models.media_file import MediaFile
from socialvault.shared.repositories.base import BaseRepository, RecordId, as_uuid


class MediaFileRepository(BaseRepository[MediaFile]):
    """Repository for MediaFile database operations."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(MediaFile, session)

    async def list_for_backup(self, backup_id: RecordId) -> List[MediaFile]:
        backup_uuid = as_uuid(backup_id)
        if backup_uuid is None:
            return []

        result = await self.session.execute(
            select(MediaFile)
            .where(MediaFile.backup_id == backup_uuid)
            .order_by(MediaFile.created_at.asc())
        )
        return list(result.scalars().all())

    async def create_media_file(
        self,
        backup_id: RecordId,
        user_id: RecordId,
        file_path: str,
        file_name: str,
        file_size: int,
        media_type: str,
        mime_type: Optional[str] = None,
    ) -> MediaFile:
        return await self.create(
            backup_id=as_uuid(backup_id),
            user_id=as_uuid(user_id),
            file_path=file_path,
            file_name=file_name,
            file_size=max(0, int(file_size or 0)),
            mime_type=mime_type,
            media_type=media_type,
        )

    async def total_bytes_for_user(self, user_id: RecordId) -> int:
        """
        Sum of stored bytes for the user.

        A path shared by several rows (re-used archive object) is counted once.

        SQL Generated:
            SELECT SUM(size) FROM (
                SELECT file_path, MAX(file_size) AS size FROM media_files
                WHERE user_id = '...' GROUP BY file_path
            )
        """
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            return 0

        per_path = (
            select(func.max(MediaFile.file_size).label("size"))
            .where(MediaFile.user_id == user_uuid)
            .group_by(MediaFile.file_path)
            .subquery()
        )
        result = await self.session.execute(select(func.coalesce(func.sum(per_path.c.size), 0)))
        return int(result.scalar() or 0)

    async def reassign_owner(self, from_user_id: RecordId, to_user_id: RecordId) -> int:
        """Move every media row of one user to another; returns the row count."""
        result = await self.session.execute(
            update(MediaFile)
            .where(MediaFile.user_id == as_uuid(from_user_id))
            .values(user_id=as_uuid(to_user_id))
        )
        return result.rowcount or 0
