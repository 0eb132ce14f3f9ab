"""
Business Logic Services

Services encapsulate business logic and coordinate between repositories,
adapters, and domain rules.

Service Pattern:
================
    Handler / Processor → Service → Repository → Database
                               ↘ Adapters (S3, SQS, SES)

Services receive their repositories and adapters through the
constructor; they never build their own collaborators, so tests pass
in-memory fakes and the API/worker pass real ones.

Available Services:
===================
- JobService: Active-job gate, reconciliation, status transitions
- StorageIntakeGateway: Upload presign/complete/discard, archive downloads
- ScrapeRequestService: Budgeted snapshot scrape requests
- NotificationService: At-most-once emails and reminder delivery
- RetentionService: Backup deletion, guest expiry, visible listing
- BackupService: Owner reads, deletes, share links and guest claims

Usage:
======
    from socialvault.shared.services import JobService

    service = JobService(BackupJobRepository(db))
    active = await service.find_active_backup_job_for_user(user_id)
"""

from socialvault.shared.services.job_service import JobService
from socialvault.shared.services.storage_usage_service import StorageUsageService
from socialvault.shared.services.intake_service import StorageIntakeGateway
from socialvault.shared.services.budget_service import ScrapeUsageService
from socialvault.shared.services.scrape_service import ScrapeRequestService
from socialvault.shared.services.notification_service import NotificationService
from socialvault.shared.services.retention_service import RetentionService
from socialvault.shared.services.backup_service import BackupService

__all__ = [
    "JobService",
    "StorageUsageService",
    "StorageIntakeGateway",
    "ScrapeUsageService",
    "ScrapeRequestService",
    "NotificationService",
    "RetentionService",
    "BackupService",
]
