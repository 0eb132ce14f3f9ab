"""
Backup Repository

Database operations for backups.

Common Operations:
==================
- list_for_user()              → Newest backups first
- create_backup()              → New backup row
- update_data()                → Replace data / archive path after processing
- list_guest_backups()         → Guest-mode backups, keyset paged (sweep)
- list_snapshot_backups_since()→ Scrape cost accounting
- find_referenced_paths()      → Storage keys still used by other backups
- reassign_backup()            → New owner and data for a claimed guest backup
"""

import uuid
from datetime import datetime
from typing import Any, Iterable, List, Optional, Set, Tuple

from sqlalchemy import select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from socialvault.shared.models.backup import Backup
from socialvault.shared.models.base import utc_now
from socialvault.shared.models.enums import BackupType, RetentionMode
from socialvault.shared.models.media_file import MediaFile
from socialvault.shared.repositories.base import BaseRepository, RecordId, as_uuid


class BackupRepository(BaseRepository[Backup]):
    """
    Repository for Backup database operations.

    Ownership checks are done by the services; ``list_for_user`` is the
    only query here that filters by owner.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(Backup, session)

    # ═══════════════════════════════════════════════════════════════════════════
    # READ OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def list_for_user(self, user_id: RecordId, limit: int = 100) -> List[Backup]:
        """Get the user's backups, newest first."""
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            return []

        result = await self.session.execute(
            select(Backup)
            .where(Backup.user_id == user_uuid)
            .order_by(Backup.created_at.desc())
            .limit(max(1, limit))
        )
        return list(result.scalars().all())

    async def list_guest_backups(
        self,
        limit: int,
        after: Optional[Tuple[datetime, uuid.UUID]] = None,
    ) -> List[Backup]:
        """
        Get one page of guest-mode backups, oldest first.

        Expiry fields are free-form JSON (floats, legacy ISO strings, junk),
        so nothing is cast in SQL; callers apply ``is_guest_backup_expired``.
        Pages are keyed on ``(created_at, id)`` so deleting rows between
        pages never skips or repeats one.

        SQL Generated:
            SELECT * FROM backups
            WHERE data->'retention'->>'mode' = 'guest_30d'
              AND (created_at, id) > (:after_created_at, :after_id)
            ORDER BY created_at, id
            LIMIT :limit
        """
        query = select(Backup).where(Backup.data["retention"]["mode"].astext == RetentionMode.GUEST_30D.value)
        if after is not None:
            query = query.where(tuple_(Backup.created_at, Backup.id) > tuple_(*after))

        result = await self.session.execute(
            query.order_by(Backup.created_at.asc(), Backup.id.asc()).limit(max(1, limit))
        )
        return list(result.scalars().all())

    async def list_snapshot_backups_since(self, user_id: RecordId, since: datetime) -> List[Backup]:
        """Get snapshot backups of the user created at or after ``since``."""
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            return []

        result = await self.session.execute(
            select(Backup).where(
                Backup.user_id == user_uuid,
                Backup.backup_type == BackupType.SNAPSHOT.value,
                Backup.created_at >= since,
            )
        )
        return list(result.scalars().all())

    async def find_referenced_paths(
        self,
        paths: Iterable[str],
        exclude_backup_id: RecordId,
    ) -> Set[str]:
        """
        Get the subset of ``paths`` still referenced by another backup.

        Checks both media file rows and backup archive columns.
        """
        candidates = sorted({path for path in paths if path})
        if not candidates:
            return set()
        exclude_uuid = as_uuid(exclude_backup_id)

        media_result = await self.session.execute(
            select(MediaFile.file_path).where(
                MediaFile.file_path.in_(candidates),
                MediaFile.backup_id != exclude_uuid,
            )
        )
        archive_result = await self.session.execute(
            select(Backup.archive_file_path).where(
                Backup.archive_file_path.in_(candidates),
                Backup.id != exclude_uuid,
            )
        )
        return set(media_result.scalars().all()) | set(archive_result.scalars().all())

    # ═══════════════════════════════════════════════════════════════════════════
    # WRITE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def create_backup(
        self,
        user_id: RecordId,
        backup_type: str,
        data: dict[str, Any],
        archive_file_path: Optional[str] = None,
    ) -> Backup:
        return await self.create(
            user_id=as_uuid(user_id),
            backup_type=backup_type,
            data=data,
            archive_file_path=archive_file_path,
            uploaded_at=utc_now(),
        )

    async def update_data(
        self,
        backup_id: RecordId,
        data: dict[str, Any],
        archive_file_path: Optional[str] = None,
    ) -> Optional[Backup]:
        """
        Replace a backup's data (and archive path when given).

        Returns:
            Updated backup, or None if not found
        """
        backup = await self.get(backup_id)
        if not backup:
            return None

        backup.data = data
        # Callers may pass the same dict they mutated in place
        flag_modified(backup, "data")
        if archive_file_path is not None:
            backup.archive_file_path = archive_file_path

        await self.session.flush()
        await self.session.refresh(backup)
        return backup

    async def reassign_backup(self, backup: Backup, user_id: RecordId, data: dict[str, Any]) -> Backup:
        """Give a backup a new owner and data (guest backups claimed by an account)."""
        backup.user_id = as_uuid(user_id)
        backup.data = data
        flag_modified(backup, "data")
        await self.session.flush()
        return backup
