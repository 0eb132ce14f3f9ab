"""
Shared fixtures.

Services are wired by hand on top of the in-memory fakes in tests/fakes.py;
HTTP tests swap the same objects in through app.dependency_overrides.
"""

import uuid
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from socialvault.config.settings import Settings, settings as app_settings
from socialvault.shared.models.enums import JobStatus
from socialvault.shared.services.backup_service import BackupService
from socialvault.shared.services.budget_service import ScrapeUsageService
from socialvault.shared.services.intake_service import StorageIntakeGateway
from socialvault.shared.services.job_service import JobService
from socialvault.shared.services.notification_service import NotificationService
from socialvault.shared.services.retention_service import RetentionService
from socialvault.shared.services.scrape_service import ScrapeRequestService
from socialvault.shared.services.storage_usage_service import StorageUsageService
from socialvault.shared.utils.security import SecurityUtils
from socialvault.worker.context import WorkerAdapters, WorkerContext
from tests.fakes import (
    InMemoryBackupJobRepository,
    InMemoryBackupRepository,
    InMemoryMediaFileRepository,
    InMemoryQueue,
    InMemorySession,
    InMemoryStorage,
    MemoryStore,
    RecordingEmail,
    StubMediaFetcher,
    StubScraper,
)

USER_ID = "11111111-1111-4111-8111-111111111111"
OTHER_USER_ID = "22222222-2222-4222-8222-222222222222"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        APP_BASE_URL="https://socialvault.test",
        SHARE_LINK_SECRET="share-secret-for-tests",
        ADMIN_NOTIFICATION_EMAIL="admin@socialvault.test",
        APIFY_API_TOKEN="apify-test-token",
        SCRAPE_MONTHLY_LIMIT_USD=50.0,
        SCRAPE_MAX_COST_PER_RUN_USD=10.0,
        STALE_QUEUED_JOB_SECONDS=300,
        STALE_PROCESSING_JOB_SECONDS=7200,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def session(store) -> InMemorySession:
    return InMemorySession(store)


@pytest.fixture
def job_repo(session) -> InMemoryBackupJobRepository:
    return InMemoryBackupJobRepository(session)


@pytest.fixture
def backup_repo(session) -> InMemoryBackupRepository:
    return InMemoryBackupRepository(session)


@pytest.fixture
def media_repo(session) -> InMemoryMediaFileRepository:
    return InMemoryMediaFileRepository(session)


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def queue() -> InMemoryQueue:
    return InMemoryQueue()


@pytest.fixture
def email() -> RecordingEmail:
    return RecordingEmail()


@pytest.fixture
def job_service(job_repo, test_settings) -> JobService:
    return JobService(job_repo, test_settings)


@pytest.fixture
def notification_service(job_service, email, test_settings) -> NotificationService:
    return NotificationService(job_service, email, test_settings)


@pytest.fixture
def retention_service(backup_repo, media_repo, job_service, storage, test_settings) -> RetentionService:
    return RetentionService(backup_repo, media_repo, job_service, storage, test_settings)


@pytest.fixture
def backup_service(backup_repo, retention_service, test_settings) -> BackupService:
    return BackupService(backup_repo, retention_service, test_settings)


@pytest.fixture
def intake_gateway(job_service, storage, queue, media_repo, backup_repo, test_settings) -> StorageIntakeGateway:
    return StorageIntakeGateway(
        job_service,
        storage,
        queue,
        StorageUsageService(media_repo),
        backup_repo=backup_repo,
        settings=test_settings,
    )


@pytest.fixture
def scrape_request_service(job_service, media_repo, job_repo, backup_repo, queue, test_settings) -> ScrapeRequestService:
    return ScrapeRequestService(
        job_service,
        StorageUsageService(media_repo),
        ScrapeUsageService(job_repo, backup_repo, test_settings),
        queue,
        settings=test_settings,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# WORKER
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def scraper() -> StubScraper:
    return StubScraper(
        tweets=[
            {
                "id": "1001",
                "text": "hello world",
                "media": [{"type": "photo", "media_url": "https://pbs.twimg.com/media/a1.jpg"}],
            },
            {"id": "1002", "text": "second tweet", "media": []},
        ],
        replies=[{"id": "2001", "text": "@friend thanks", "in_reply_to_status_id": "900"}],
        profile={
            "username": "vaultfan",
            "displayName": "Vault Fan",
            "profileImageUrl": "https://pbs.twimg.com/profile_images/1/avatar_400x400.jpg",
            "followersCount": 3,
            "followingCount": 2,
        },
        followers=[{"user_id": f"f{i}", "username": f"follower{i}"} for i in range(3)],
        following=[{"user_id": f"g{i}", "username": f"followed{i}"} for i in range(2)],
    )


@pytest.fixture
def media_fetcher() -> StubMediaFetcher:
    return StubMediaFetcher({
        "https://pbs.twimg.com/media/a1.jpg": b"tweet-image-bytes",
        "https://pbs.twimg.com/profile_images/1/avatar_400x400.jpg": b"avatar-bytes",
    })


@pytest.fixture
def worker_adapters(storage, email, scraper, media_fetcher) -> WorkerAdapters:
    return WorkerAdapters(storage=storage, email=email, scraper=scraper, media_fetcher=media_fetcher)


@pytest.fixture
def worker_context(
    session,
    test_settings,
    worker_adapters,
    job_service,
    backup_repo,
    media_repo,
    retention_service,
    notification_service,
) -> WorkerContext:
    return WorkerContext(
        session=session,
        settings=test_settings,
        adapters=worker_adapters,
        jobs=job_service,
        backup_repo=backup_repo,
        media_repo=media_repo,
        retention=retention_service,
        notifications=notification_service,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def make_job(job_service):
    async def _make_job(
        user_id: str = USER_ID,
        job_type: str = "snapshot_scrape",
        status: JobStatus = JobStatus.QUEUED,
        payload: Optional[Dict[str, Any]] = None,
        result_backup_id: Optional[str] = None,
    ):
        job = await job_service.create_job(user_id, job_type, "Queued", payload=payload)
        if status != JobStatus.QUEUED or result_backup_id:
            job = await job_service.job_repo.update_job(
                job.id,
                status=status,
                result_backup_id=result_backup_id,
            )
        return job

    return _make_job


@pytest.fixture
def make_backup(backup_repo, media_repo):
    async def _make_backup(
        user_id: str = USER_ID,
        data: Optional[Dict[str, Any]] = None,
        backup_type: str = "snapshot",
        archive_file_path: Optional[str] = None,
        media_paths: tuple = (),
    ):
        backup = await backup_repo.create_backup(
            user_id=user_id,
            backup_type=backup_type,
            data=data if data is not None else {"tweets": []},
            archive_file_path=archive_file_path,
        )
        for path in media_paths:
            await media_repo.create_media_file(
                backup_id=backup.id,
                user_id=user_id,
                file_path=path,
                file_name=path.rsplit("/", 1)[-1],
                file_size=10,
                media_type="tweet_media",
            )
        return backup

    return _make_backup


def auth_headers(user_id: str = USER_ID, is_guest: bool = False) -> Dict[str, str]:
    token = SecurityUtils.create_access_token(
        {"user_id": user_id, "is_guest": is_guest},
        app_settings.SECRET_KEY,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(
    job_service,
    intake_gateway,
    scrape_request_service,
    notification_service,
    retention_service,
    backup_service,
):
    """TestClient without lifespan (no database); services come from the fakes."""
    from socialvault.api.dependencies import services as deps
    from socialvault.api.main import create_application

    app = create_application()
    app.dependency_overrides[deps.get_job_service] = lambda: job_service
    app.dependency_overrides[deps.get_intake_gateway] = lambda: intake_gateway
    app.dependency_overrides[deps.get_scrape_request_service] = lambda: scrape_request_service
    app.dependency_overrides[deps.get_notification_service] = lambda: notification_service
    app.dependency_overrides[deps.get_retention_service] = lambda: retention_service
    app.dependency_overrides[deps.get_backup_service] = lambda: backup_service
    return TestClient(app, raise_server_exceptions=False)


def new_id() -> str:
    return str(uuid.uuid4())
