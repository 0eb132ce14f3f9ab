"""
Backup-related Pydantic schemas.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from socialvault.shared.models.backup import Backup
from socialvault.shared.schemas.common import BaseSchema, SuccessResponse
from socialvault.shared.utils.retention import get_guest_retention, guest_backup_days_left


class BackupResponse(BaseSchema):
    """
    Response for a backup.

    retention_mode/expires_at_ms/days_left are derived from
    ``data.retention``; owned backups report ``account`` and no expiry.
    """

    id: str
    backup_type: str
    data: dict[str, Any] = Field(default_factory=dict)
    archive_file_path: Optional[str] = None
    retention_mode: str = "account"
    expires_at_ms: Optional[int] = None
    days_left: Optional[int] = None
    uploaded_at: datetime
    created_at: datetime

    @classmethod
    def from_backup(cls, backup: Backup, now_ms: int) -> "BackupResponse":
        retention = get_guest_retention(backup.data)
        return cls(
            id=str(backup.id),
            backup_type=backup.backup_type,
            data=dict(backup.data or {}),
            archive_file_path=backup.archive_file_path,
            retention_mode=retention.mode if retention else "account",
            expires_at_ms=retention.expires_at_ms if retention else None,
            days_left=guest_backup_days_left(backup.data, now_ms),
            uploaded_at=backup.uploaded_at,
            created_at=backup.created_at,
        )


class BackupEnvelope(SuccessResponse):
    backup: BackupResponse


class BackupListResponse(SuccessResponse):
    backups: List[BackupResponse]


class BackupDeleteResponse(SuccessResponse):
    media_files_checked: int
    candidate_paths_checked: int
    storage_files_deleted: int
    storage_files_delete_failed: int
    backup_deleted: bool


class ShareLinkResponse(SuccessResponse):
    share_url: str
    expires_at: datetime


class ClaimBackupsRequest(BaseSchema):
    guest_token: str = Field(min_length=1, description="Caller JWT of the guest session being claimed")


class ClaimBackupsResponse(SuccessResponse):
    moved: bool
    moved_backups: int = 0
