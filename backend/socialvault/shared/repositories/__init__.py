"""
Repository Pattern Implementations

Repositories encapsulate database queries and provide a clean API for data access.

Repository Hierarchy:
=====================
    BaseRepository[ModelType]           ← Generic CRUD operations
         │
         ├── BackupJobRepository        ← Job status and payload merges
         ├── BackupRepository           ← Backups, guest expiry, shared paths
         └── MediaFileRepository        ← Stored objects and usage totals

Usage Example:
==============
    from socialvault.shared.repositories import BackupJobRepository

    async def latest_jobs(db: AsyncSession, user_id: str):
        return await BackupJobRepository(db).list_for_user(user_id, limit=5)
"""

from socialvault.shared.repositories.base import BaseRepository, as_uuid
from socialvault.shared.repositories.backup_job_repository import UNSET, BackupJobRepository
from socialvault.shared.repositories.backup_repository import BackupRepository
from socialvault.shared.repositories.media_file_repository import MediaFileRepository

__all__ = [
    # Base class
    "BaseRepository",
    "as_uuid",
    # Entity-specific repositories
    "BackupJobRepository",
    "BackupRepository",
    "MediaFileRepository",
    "UNSET",
]
