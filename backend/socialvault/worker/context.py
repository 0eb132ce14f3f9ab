"""
Worker dependency wiring.

Each queue message gets its own AsyncSession; repositories and services
are built on top of it here, the same way the API's service dependencies
build them per request. Network adapters are process-wide and shared.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.adapters.email_adapter import SESEmailAdapter, get_email_adapter
from socialvault.shared.adapters.storage_adapter import ObjectStorageAdapter, get_storage_adapter
from socialvault.shared.repositories.backup_job_repository import BackupJobRepository
from socialvault.shared.repositories.backup_repository import BackupRepository
from socialvault.shared.repositories.media_file_repository import MediaFileRepository
from socialvault.shared.services.job_service import JobService
from socialvault.shared.services.notification_service import NotificationService
from socialvault.shared.services.retention_service import RetentionService
from socialvault.worker.scrapers.apify_scraper import ApifyScraper
from socialvault.worker.scrapers.base_scraper import BaseScraper
from socialvault.worker.scrapers.media_fetcher import MediaFetcher


@dataclass
class WorkerAdapters:
    """Process-wide clients shared by every message."""

    storage: ObjectStorageAdapter
    email: SESEmailAdapter
    scraper: BaseScraper
    media_fetcher: MediaFetcher

    @classmethod
    def default(cls, settings: Optional[Settings] = None) -> "WorkerAdapters":
        settings = settings or default_settings
        return cls(
            storage=get_storage_adapter(),
            email=get_email_adapter(),
            scraper=ApifyScraper(settings),
            media_fetcher=MediaFetcher(timeout_seconds=settings.SCRAPER_TIMEOUT_SECONDS),
        )

    async def aclose(self) -> None:
        await self.scraper.aclose()
        await self.media_fetcher.aclose()


@dataclass
class WorkerContext:
    """Everything a processor needs for one message."""

    session: AsyncSession
    settings: Settings
    adapters: WorkerAdapters
    jobs: JobService
    backup_repo: BackupRepository
    media_repo: MediaFileRepository
    retention: RetentionService
    notifications: NotificationService

    @property
    def storage(self) -> ObjectStorageAdapter:
        return self.adapters.storage

    @classmethod
    def build(
        cls,
        session: AsyncSession,
        adapters: WorkerAdapters,
        settings: Optional[Settings] = None,
    ) -> "WorkerContext":
        settings = settings or default_settings
        jobs = JobService(BackupJobRepository(session), settings)
        backup_repo = BackupRepository(session)
        media_repo = MediaFileRepository(session)
        return cls(
            session=session,
            settings=settings,
            adapters=adapters,
            jobs=jobs,
            backup_repo=backup_repo,
            media_repo=media_repo,
            retention=RetentionService(backup_repo, media_repo, jobs, adapters.storage, settings),
            notifications=NotificationService(jobs, adapters.email, settings),
        )
