"""
Event processors.

One processor class per queue event; PROCESSORS maps event names to them.
"""

from socialvault.shared.models.enums import JobEventName
from socialvault.worker.processors.archive_upload_processor import ArchiveUploadProcessor
from socialvault.worker.processors.base_processor import BaseProcessor, JobAttempt, JobProcessor
from socialvault.worker.processors.maintenance_processor import (
    GuestRetentionCleanupProcessor,
    ReminderDispatchProcessor,
)
from socialvault.worker.processors.snapshot_scrape_processor import SnapshotScrapeProcessor

PROCESSORS: dict[str, type[BaseProcessor]] = {
    JobEventName.ARCHIVE_UPLOAD_REQUESTED.value: ArchiveUploadProcessor,
    JobEventName.SNAPSHOT_SCRAPE_REQUESTED.value: SnapshotScrapeProcessor,
    JobEventName.GUEST_RETENTION_CLEANUP.value: GuestRetentionCleanupProcessor,
    JobEventName.ARCHIVE_REMINDER_DISPATCH.value: ReminderDispatchProcessor,
}

__all__ = [
    "PROCESSORS",
    "ArchiveUploadProcessor",
    "BaseProcessor",
    "GuestRetentionCleanupProcessor",
    "JobAttempt",
    "JobProcessor",
    "ReminderDispatchProcessor",
    "SnapshotScrapeProcessor",
]
