"""
Enums used across the application.
"""

from enum import Enum


class JobType(str, Enum):
    """Kind of ingestion a backup job performs."""

    ARCHIVE_UPLOAD = "archive_upload"
    SNAPSHOT_SCRAPE = "snapshot_scrape"


class JobStatus(str, Enum):
    """
    Job status stored on the row.

    queued → processing → completed | failed. A user may start a new job
    only once the previous one is terminal.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.QUEUED, JobStatus.PROCESSING)


ACTIVE_JOB_STATUSES = (JobStatus.QUEUED.value, JobStatus.PROCESSING.value)


class LifecycleState(str, Enum):
    """Finer-grained state kept in the job payload under ``lifecycle_state``."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReminderDeliveryStatus(str, Enum):
    """Reminder email state machine: requested → sent | failed."""

    REQUESTED = "requested"
    SENT = "sent"
    FAILED = "failed"


class ScrapePhase(str, Enum):
    """Snapshot scrape phases reported through ``scrape_phase``."""

    QUEUED = "queued"
    PREPARING = "preparing"
    SCRAPING = "scraping"
    SAVING = "saving"
    MEDIA = "media"
    FINALIZING = "finalizing"


class BackupType(str, Enum):
    """How a backup was produced."""

    ARCHIVE = "archive"
    SNAPSHOT = "snapshot"


class RetentionMode(str, Enum):
    """Retention class of a backup (stored in ``data.retention.mode``)."""

    ACCOUNT = "account"
    GUEST_30D = "guest_30d"


class MediaType(str, Enum):
    """Classification of stored objects in media_files."""

    PROFILE_MEDIA = "profile_media"
    TWEET_MEDIA = "tweet_media"
    ARCHIVE_FILE = "archive_file"


class JobEventName(str, Enum):
    """Names of queue events consumed by the worker."""

    ARCHIVE_UPLOAD_REQUESTED = "archive-upload.requested"
    SNAPSHOT_SCRAPE_REQUESTED = "snapshot-scrape.requested"
    GUEST_RETENTION_CLEANUP = "guest-retention-cleanup"
    ARCHIVE_REMINDER_DISPATCH = "archive-reminder-dispatch"
