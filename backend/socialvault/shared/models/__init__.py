"""
SocialVault SQLAlchemy Models

Model Hierarchy:
================
    BackupJob ──(result_backup_id)──► Backup
                                        └── media_files (MediaFile[])

Models Overview:
================
- Base: Base class and timestamp mixin
- BackupJob: One ingestion attempt with a flat progress payload
- Backup: The durable result of a completed job
- MediaFile: Object-storage keys owned by a backup

Usage:
======
    from socialvault.shared.models import BackupJob, Backup, MediaFile
"""

from socialvault.shared.models.base import Base, TimestampMixin, utc_now
from socialvault.shared.models.enums import (
    ACTIVE_JOB_STATUSES,
    BackupType,
    JobEventName,
    JobStatus,
    JobType,
    LifecycleState,
    MediaType,
    ReminderDeliveryStatus,
    RetentionMode,
    ScrapePhase,
)
from socialvault.shared.models.backup import Backup
from socialvault.shared.models.media_file import MediaFile
from socialvault.shared.models.backup_job import BackupJob

__all__ = [
    # Base classes and mixins
    "Base",
    "TimestampMixin",
    "utc_now",
    # Enums
    "ACTIVE_JOB_STATUSES",
    "BackupType",
    "JobEventName",
    "JobStatus",
    "JobType",
    "LifecycleState",
    "MediaType",
    "ReminderDeliveryStatus",
    "RetentionMode",
    "ScrapePhase",
    # Models
    "Backup",
    "MediaFile",
    "BackupJob",
]
