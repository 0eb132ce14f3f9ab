"""
Service Dependencies

Services are created per request on top of the request's session.
Network adapters (S3, SQS, SES) are process-wide singletons returned by
their ``get_*_adapter()`` factories; tests replace them through
``app.dependency_overrides``.

Usage:
======
    from socialvault.api.dependencies.services import get_job_service

    @router.get("/jobs/active")
    async def active_job(
        current_user: CurrentUser,
        job_service: JobService = Depends(get_job_service),
    ):
        ...
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from socialvault.api.dependencies.database import get_db
from socialvault.config.settings import settings
from socialvault.shared.adapters.email_adapter import SESEmailAdapter, get_email_adapter
from socialvault.shared.adapters.sqs_adapter import SQSAdapter, get_sqs_adapter
from socialvault.shared.adapters.storage_adapter import ObjectStorageAdapter, get_storage_adapter
from socialvault.shared.repositories.backup_job_repository import BackupJobRepository
from socialvault.shared.repositories.backup_repository import BackupRepository
from socialvault.shared.repositories.media_file_repository import MediaFileRepository
from socialvault.shared.services.backup_service import BackupService
from socialvault.shared.services.budget_service import ScrapeUsageService
from socialvault.shared.services.intake_service import StorageIntakeGateway
from socialvault.shared.services.job_service import JobService
from socialvault.shared.services.notification_service import NotificationService
from socialvault.shared.services.retention_service import RetentionService
from socialvault.shared.services.scrape_service import ScrapeRequestService
from socialvault.shared.services.storage_usage_service import StorageUsageService


# ═══════════════════════════════════════════════════════════════════════════════
# ADAPTERS
# ═══════════════════════════════════════════════════════════════════════════════


def get_storage() -> ObjectStorageAdapter:
    return get_storage_adapter()


def get_queue() -> SQSAdapter:
    return get_sqs_adapter()


def get_email() -> SESEmailAdapter:
    return get_email_adapter()


# ═══════════════════════════════════════════════════════════════════════════════
# SERVICES
# ═══════════════════════════════════════════════════════════════════════════════


async def get_job_service(
    db: AsyncSession = Depends(get_db),
) -> JobService:
    """
    Dependency to get JobService instance.

    Creates a new service instance per request with the request's db session.
    """
    return JobService(BackupJobRepository(db), settings)


async def get_intake_gateway(
    db: AsyncSession = Depends(get_db),
    job_service: JobService = Depends(get_job_service),
    storage: ObjectStorageAdapter = Depends(get_storage),
    queue: SQSAdapter = Depends(get_queue),
) -> StorageIntakeGateway:
    return StorageIntakeGateway(
        job_service,
        storage,
        queue,
        StorageUsageService(MediaFileRepository(db)),
        backup_repo=BackupRepository(db),
        settings=settings,
    )


async def get_scrape_request_service(
    db: AsyncSession = Depends(get_db),
    job_service: JobService = Depends(get_job_service),
    queue: SQSAdapter = Depends(get_queue),
) -> ScrapeRequestService:
    return ScrapeRequestService(
        job_service,
        StorageUsageService(MediaFileRepository(db)),
        ScrapeUsageService(BackupJobRepository(db), BackupRepository(db), settings),
        queue,
        settings=settings,
    )


async def get_notification_service(
    job_service: JobService = Depends(get_job_service),
    email: SESEmailAdapter = Depends(get_email),
) -> NotificationService:
    return NotificationService(job_service, email, settings)


async def get_retention_service(
    db: AsyncSession = Depends(get_db),
    job_service: JobService = Depends(get_job_service),
    storage: ObjectStorageAdapter = Depends(get_storage),
) -> RetentionService:
    """
    Dependency to get RetentionService instance.
    """
    return RetentionService(
        BackupRepository(db),
        MediaFileRepository(db),
        job_service,
        storage,
        settings,
    )


async def get_backup_service(
    db: AsyncSession = Depends(get_db),
    retention: RetentionService = Depends(get_retention_service),
) -> BackupService:
    """
    Dependency to get BackupService instance.
    """
    return BackupService(BackupRepository(db), retention, settings)
