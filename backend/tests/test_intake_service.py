import pytest

from socialvault.shared.core.exceptions import (
    ActiveJobConflictError,
    AuthorizationError,
    InvalidPathError,
    NotFoundError,
    PayloadTooLargeError,
    UpstreamServiceError,
    ValidationError,
)
from socialvault.shared.models.enums import JobStatus
from socialvault.shared.services.intake_service import ensure_user_scoped_staged_path, is_zip_upload
from tests.conftest import OTHER_USER_ID, USER_ID

EVENT = "archive-upload.requested"


def test_zip_detection():
    assert is_zip_upload("twitter.ZIP", "application/zip")
    assert is_zip_upload("twitter.zip", "")
    assert not is_zip_upload("twitter.tar", "application/zip")
    assert not is_zip_upload("twitter.zip", "text/plain")


def test_staged_path_must_be_in_callers_namespace():
    own = f"/{USER_ID}/job-inputs/abc-twitter.zip"

    assert ensure_user_scoped_staged_path(own, USER_ID) == own.lstrip("/")
    with pytest.raises(InvalidPathError):
        ensure_user_scoped_staged_path(f"{OTHER_USER_ID}/job-inputs/abc.zip", USER_ID)
    with pytest.raises(InvalidPathError):
        ensure_user_scoped_staged_path(f"{USER_ID}/archives/abc.zip", USER_ID)


async def test_presign_issues_staged_path(intake_gateway):
    upload = await intake_gateway.presign_upload(USER_ID, "twitter.zip", 1024, "application/zip")

    assert upload.staged_path.startswith(f"{USER_ID}/job-inputs/")
    assert upload.staged_path.endswith("-twitter.zip")
    assert upload.upload_url.startswith("https://storage.test/put/")


async def test_presign_rejected_while_job_active(intake_gateway, make_job):
    job = await make_job()

    with pytest.raises(ActiveJobConflictError) as exc_info:
        await intake_gateway.presign_upload(USER_ID, "twitter.zip", 1024)

    assert exc_info.value.details["active_job_id"] == str(job.id)


async def test_presign_validation(intake_gateway, test_settings):
    with pytest.raises(ValidationError):
        await intake_gateway.presign_upload(USER_ID, "twitter.rar", 1024)
    with pytest.raises(ValidationError):
        await intake_gateway.presign_upload(USER_ID, "twitter.zip", 0)
    with pytest.raises(PayloadTooLargeError):
        await intake_gateway.presign_upload(USER_ID, "twitter.zip", test_settings.MAX_ARCHIVE_BYTES + 1)


async def test_storage_quota(intake_gateway, make_backup, media_repo, test_settings):
    backup = await make_backup()
    await media_repo.create_media_file(
        backup_id=backup.id,
        user_id=USER_ID,
        file_path="big.bin",
        file_name="big.bin",
        file_size=test_settings.MAX_USER_STORAGE_BYTES - 10,
        media_type="archive_file",
    )

    with pytest.raises(PayloadTooLargeError) as exc_info:
        await intake_gateway.presign_upload(USER_ID, "twitter.zip", 100)

    assert exc_info.value.details["limit_bytes"] == test_settings.MAX_USER_STORAGE_BYTES


async def test_complete_upload_queues_archive_job(intake_gateway, storage, queue, session):
    staged = f"{USER_ID}/job-inputs/abc-twitter.zip"
    storage.put(staged, b"PK" + b"\0" * 98, "application/zip")

    job = await intake_gateway.complete_upload(
        USER_ID, staged, "twitter.zip", "application/zip", file_size=5, username="vaultfan", is_guest=True
    )

    assert job.status == JobStatus.QUEUED.value
    assert job.job_type == "archive_upload"
    assert job.payload["upload_file_size"] == 100
    assert job.payload["staged_input_path"] == staged
    assert job.payload["preserve_archive_file"] is True
    [event] = queue.events(EVENT)
    assert event == {
        "job_id": str(job.id),
        "user_id": USER_ID,
        "username": "vaultfan",
        "input_storage_path": staged,
        "retention_mode": "guest_30d",
    }
    assert session.commits == 1


async def test_complete_upload_requires_staged_object(intake_gateway):
    with pytest.raises(NotFoundError):
        await intake_gateway.complete_upload(USER_ID, f"{USER_ID}/job-inputs/missing.zip", "twitter.zip")


async def test_complete_upload_rejects_foreign_path(intake_gateway, storage, queue):
    foreign = f"{OTHER_USER_ID}/job-inputs/abc-twitter.zip"
    storage.put(foreign, b"PK")

    with pytest.raises(InvalidPathError):
        await intake_gateway.complete_upload(USER_ID, foreign, "twitter.zip")

    assert queue.published == []
    assert foreign in storage.objects


async def test_publish_failure_fails_job_and_cleans_up(intake_gateway, storage, queue, job_service, session):
    staged = f"{USER_ID}/job-inputs/abc-twitter.zip"
    storage.put(staged, b"PK")
    queue.fail_publish = True

    with pytest.raises(UpstreamServiceError):
        await intake_gateway.complete_upload(USER_ID, staged, "twitter.zip")

    [job] = await job_service.list_jobs_for_user(USER_ID)
    assert job.status == JobStatus.FAILED.value
    assert job.error_message.startswith("Failed to queue background processing")
    assert staged not in storage.objects
    assert session.commits == 2


async def test_discard_is_idempotent(intake_gateway, storage):
    staged = f"{USER_ID}/job-inputs/abc-twitter.zip"
    storage.put(staged, b"PK")

    assert await intake_gateway.discard_staged_upload(staged, USER_ID) == staged
    assert await intake_gateway.discard_staged_upload(staged, USER_ID) == staged
    assert staged not in storage.objects


async def test_discard_foreign_path_rejected(intake_gateway, storage):
    foreign = f"{OTHER_USER_ID}/job-inputs/abc-twitter.zip"
    storage.put(foreign, b"PK")

    with pytest.raises(InvalidPathError):
        await intake_gateway.discard_staged_upload(foreign, USER_ID)
    assert foreign in storage.objects


async def test_download_url_prefers_embedded_archive_path(intake_gateway, make_backup):
    backup = await make_backup(
        backup_type="archive",
        data={"archive_file_path": "/u/archives/embedded.zip"},
        archive_file_path="u/archives/column.zip",
    )

    download = await intake_gateway.resolve_download_url(str(backup.id), USER_ID)

    assert download.download_url.startswith("https://storage.test/get/u/archives/embedded.zip")
    assert download.file_name == f"{backup.id}.zip"


async def test_download_url_falls_back_to_canonical_path(intake_gateway, make_backup, storage):
    backup = await make_backup(backup_type="archive")

    with pytest.raises(NotFoundError):
        await intake_gateway.resolve_download_url(str(backup.id), USER_ID)

    storage.put(f"{USER_ID}/archives/{backup.id}.zip", b"PK")
    download = await intake_gateway.resolve_download_url(str(backup.id), USER_ID)

    assert f"/archives/{backup.id}.zip" in download.download_url


async def test_download_url_checks_owner(intake_gateway, make_backup):
    backup = await make_backup(user_id=OTHER_USER_ID, archive_file_path="x/archives/a.zip")

    with pytest.raises(AuthorizationError):
        await intake_gateway.resolve_download_url(str(backup.id), USER_ID)
