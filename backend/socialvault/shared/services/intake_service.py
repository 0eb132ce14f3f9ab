"""
Storage Intake Gateway

Everything between "the browser wants to upload an archive" and "a
queued archive job exists":

    presign_upload()         validate → staged path → signed PUT URL
    complete_upload()        guard path → HEAD staged object → validate → job → event
    discard_staged_upload()  guard path → delete (idempotent)
    resolve_download_url()   owner check → archive path → signed GET URL

Staged objects live under ``{user_id}/job-inputs/`` and every endpoint
that accepts a path from the client passes it through
ensure_user_scoped_staged_path() first, so one user can never complete,
read or delete another user's staged object.

Usage:
======
    gateway = StorageIntakeGateway(job_service, storage, queue, usage)
    upload = await gateway.presign_upload(user_id, "twitter.zip", 1024, "application/zip")
"""

from dataclasses import dataclass
from typing import Any, Optional

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.adapters.sqs_adapter import SQSAdapter
from socialvault.shared.adapters.storage_adapter import ObjectStorageAdapter
from socialvault.shared.core.exceptions import (
    ActiveJobConflictError,
    AuthorizationError,
    BackupNotFoundError,
    InvalidPathError,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
)
from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.enums import JobEventName, JobType, RetentionMode
from socialvault.shared.repositories.backup_repository import BackupRepository
from socialvault.shared.services.job_service import JobService
from socialvault.shared.services.storage_usage_service import StorageUsageService
from socialvault.shared.utils.storage_paths import (
    build_archive_path,
    build_staged_input_path,
    normalize_storage_path,
    staged_input_prefix,
)

logger = get_logger(__name__)

ZIP_MIME_TYPES = ("application/zip", "application/x-zip-compressed", "multipart/x-zip")


@dataclass
class PresignedUpload:
    upload_url: str
    staged_path: str
    expires_in_seconds: int


@dataclass
class PresignedDownload:
    download_url: str
    file_name: str
    expires_in_seconds: int


def is_zip_upload(file_name: str, mime_type: Optional[str]) -> bool:
    """
    Accept ``.zip`` files with a zip MIME type.

    Browsers send an empty type for drag-and-drop on some platforms, so an
    empty MIME type is accepted as long as the extension matches.
    """
    if not (file_name or "").lower().endswith(".zip"):
        return False
    normalized_type = (mime_type or "").strip().lower()
    return not normalized_type or normalized_type in ZIP_MIME_TYPES


def ensure_user_scoped_staged_path(path: str, user_id: str) -> str:
    """
    Normalize a client-supplied staged path and check it belongs to the user.

    Returns:
        The normalized path

    Raises:
        InvalidPathError: If the path is outside ``{user_id}/job-inputs/``
    """
    normalized = normalize_storage_path(path)
    if not user_id or not normalized.startswith(staged_input_prefix(str(user_id))):
        raise InvalidPathError()
    return normalized


class StorageIntakeGateway:
    """
    Service for archive upload intake and archive downloads.

    Handles:
    - Upload validation (active job, type, size, quota)
    - Presigned upload URLs for staged inputs
    - Turning a finished upload into a queued archive job
    - Discarding unconsumed uploads
    - Presigned download URLs for stored archives
    """

    def __init__(
        self,
        job_service: JobService,
        storage: ObjectStorageAdapter,
        queue: SQSAdapter,
        usage_service: StorageUsageService,
        backup_repo: Optional[BackupRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.job_service = job_service
        self.storage = storage
        self.queue = queue
        self.usage_service = usage_service
        self.backup_repo = backup_repo
        self.settings = settings or default_settings

    # ═══════════════════════════════════════════════════════════════════════════
    # VALIDATION
    # ═══════════════════════════════════════════════════════════════════════════

    async def validate_upload_request(
        self,
        user_id: str,
        file_name: str,
        file_type: Optional[str],
        file_size: int,
    ) -> None:
        """
        Check that an archive upload may proceed.

        Raises:
            ActiveJobConflictError: A job is already queued or processing
            ValidationError: Not a zip archive, or empty
            PayloadTooLargeError: Archive or projected storage over the limit
        """
        active = await self.job_service.find_active_backup_job_for_user(user_id)
        if active:
            raise ActiveJobConflictError(str(active.id))

        if not is_zip_upload(file_name, file_type):
            raise ValidationError("Invalid upload type. Please upload a .zip archive file.")

        if file_size is None or file_size <= 0:
            raise ValidationError("Uploaded file is empty.")

        max_bytes = self.settings.MAX_ARCHIVE_BYTES
        if file_size > max_bytes:
            raise PayloadTooLargeError(
                f"Archive exceeds size limit ({max_bytes} bytes).",
                details={"max_bytes": max_bytes},
            )

        current, projected = await self.usage_service.projected_total_bytes(user_id, file_size)
        limit = self.settings.MAX_USER_STORAGE_BYTES
        if projected > limit:
            raise PayloadTooLargeError(
                "Storage limit exceeded.",
                details={"current_bytes": current, "projected_bytes": projected, "limit_bytes": limit},
            )

    # ═══════════════════════════════════════════════════════════════════════════
    # UPLOAD
    # ═══════════════════════════════════════════════════════════════════════════

    async def presign_upload(
        self,
        user_id: str,
        file_name: str,
        file_size: int,
        file_type: Optional[str] = None,
    ) -> PresignedUpload:
        """
        Validate an upload and issue a signed PUT URL for the staged object.

        Returns:
            PresignedUpload with the URL, staged path and URL lifetime
        """
        await self.validate_upload_request(user_id, file_name, file_type, file_size)

        staged_path = build_staged_input_path(str(user_id), file_name)
        expires_in = self.settings.UPLOAD_URL_TTL_SECONDS
        upload_url = await self.storage.create_signed_put_url(
            staged_path,
            expires_in_seconds=expires_in,
            content_type=file_type or "application/zip",
        )

        logger.info("Upload presigned", user_id=str(user_id), staged_path=staged_path, file_size=file_size)
        return PresignedUpload(upload_url=upload_url, staged_path=staged_path, expires_in_seconds=expires_in)

    async def complete_upload(
        self,
        user_id: str,
        staged_path: str,
        file_name: str,
        file_type: Optional[str] = None,
        file_size: int = 0,
        username: Optional[str] = None,
        is_guest: bool = False,
        preserve_archive_file: bool = True,
    ) -> BackupJob:
        """
        Turn an uploaded staged object into a queued archive job.

        The staged object's real size (from HEAD) wins over the size the
        client reported.

        Raises:
            InvalidPathError: Path outside the caller's namespace
            NotFoundError: Staged object is missing
            UpstreamServiceError: The job event could not be queued
        """
        if not (file_name or "").strip():
            raise ValidationError("fileName is required")

        staged_path = ensure_user_scoped_staged_path(staged_path, user_id)
        metadata = await self.storage.get_object_metadata(staged_path)
        if metadata is None:
            raise NotFoundError("Uploaded file")

        resolved_size = metadata.content_length if (metadata.content_length or 0) > 0 else file_size
        await self.validate_upload_request(user_id, file_name, file_type, resolved_size)

        resolved_username = (username or "").strip() or "twitter-user"
        job = await self.job_service.create_job(
            user_id=user_id,
            job_type=JobType.ARCHIVE_UPLOAD.value,
            message="Archive uploaded. Waiting to process...",
            payload={
                "username": resolved_username,
                "upload_file_name": file_name.strip(),
                "upload_file_size": resolved_size,
            },
        )
        await self.job_service.merge_payload(
            job.id,
            {
                "staged_input_path": staged_path,
                "preserve_archive_file": bool(preserve_archive_file),
            },
        )

        retention_mode = RetentionMode.GUEST_30D if is_guest else RetentionMode.ACCOUNT
        await self._enqueue_or_fail(
            job,
            JobEventName.ARCHIVE_UPLOAD_REQUESTED.value,
            {
                "job_id": str(job.id),
                "user_id": str(user_id),
                "username": resolved_username,
                "input_storage_path": staged_path,
                "retention_mode": retention_mode.value,
            },
            cleanup_paths=[staged_path],
        )
        return await self.job_service.get_job(job.id)

    async def discard_staged_upload(self, staged_path: str, user_id: str) -> str:
        """
        Delete an unconsumed staged upload.

        Deleting an object that no longer exists is not an error.

        Returns:
            The normalized path that was discarded
        """
        staged_path = ensure_user_scoped_staged_path(staged_path, user_id)
        await self.storage.delete_objects([staged_path])
        logger.info("Staged upload discarded", user_id=str(user_id), staged_path=staged_path)
        return staged_path

    async def _enqueue_or_fail(
        self,
        job: BackupJob,
        event_name: str,
        data: dict[str, Any],
        cleanup_paths: Optional[list[str]] = None,
    ) -> None:
        # The worker must be able to load the row when the event arrives
        await self.job_service.commit()
        try:
            await self.queue.publish_event(event_name, data)
        except Exception as e:
            logger.error("Failed to queue backup job", job_id=str(job.id), event_name=event_name, error=str(e))
            await self.job_service.mark_failed(job.id, f"Failed to queue background processing: {e}")
            await self.job_service.commit()
            if cleanup_paths:
                try:
                    await self.storage.delete_objects(cleanup_paths)
                except Exception as cleanup_error:
                    logger.warning("Failed to delete staged input", job_id=str(job.id), error=str(cleanup_error))
            raise

    # ═══════════════════════════════════════════════════════════════════════════
    # DOWNLOAD
    # ═══════════════════════════════════════════════════════════════════════════

    async def resolve_archive_path(self, backup: Any) -> Optional[str]:
        """
        Find the archive object of a backup.

        Order: ``data.archive_file_path``, then the column, then the
        canonical path if a HEAD finds the object there.
        """
        data = backup.data if isinstance(backup.data, dict) else {}
        embedded = data.get("archive_file_path")
        if isinstance(embedded, str) and embedded.strip():
            return normalize_storage_path(embedded)
        if backup.archive_file_path:
            return normalize_storage_path(backup.archive_file_path)

        canonical = build_archive_path(str(backup.user_id), str(backup.id))
        if await self.storage.object_exists(canonical):
            return canonical
        return None

    async def resolve_download_url(self, backup_id: str, user_id: str) -> PresignedDownload:
        """
        Issue a signed GET URL for a backup's original archive.

        Raises:
            BackupNotFoundError: Backup missing
            AuthorizationError: Caller does not own the backup
            NotFoundError: Backup has no stored archive
        """
        if self.backup_repo is None:
            raise RuntimeError("resolve_download_url requires a backup repository")

        backup = await self.backup_repo.get(backup_id)
        if not backup:
            raise BackupNotFoundError(str(backup_id))
        if str(backup.user_id) != str(user_id):
            raise AuthorizationError()

        archive_path = await self.resolve_archive_path(backup)
        if not archive_path:
            raise NotFoundError("Archive file")

        file_name = f"{backup.id}.zip"
        expires_in = self.settings.DOWNLOAD_URL_TTL_SECONDS
        url = await self.storage.create_signed_get_url(
            archive_path,
            expires_in_seconds=expires_in,
            download_file_name=file_name,
        )
        return PresignedDownload(download_url=url, file_name=file_name, expires_in_seconds=expires_in)
