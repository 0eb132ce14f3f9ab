"""
Retention Service

Backup deletion, guest expiry, guest claims and the user-visible backup listing.

DELETION ORDER:
===============
1. Load the backup; a missing row is a no-op (already deleted)
2. Verify ownership; a mismatch deletes nothing (403)
3. Collect candidate paths: media file rows + archive path
4. Drop paths still referenced by another backup
5. Delete objects in batches; failures are logged and counted
6. Delete the row (media rows go with it by FK cascade)

A missing object is not fatal: the row is still removed, so a retry of
the whole operation is never needed to get rid of an expired backup.

ABANDONED PARTIALS:
===================
A job failed by reconciliation keeps its ``partial_backup_id``; the
half-written backup stays hidden and is deleted on the owner's next listing
or by the daily sweep, after which the key is cleared.

CLAIM:
======
A guest who signs in can move their backups to the account; the
backups become permanent (guest retention removed) and their media rows
and jobs follow.

EXPIRY:
=======
Guest backups are removed two ways:
- lazily, whenever the owner lists or opens backups
- by the daily ``guest-retention-cleanup`` sweep, bounded per run

The sweep pages through guest-mode rows and applies the same expiry rule
as the readers, so malformed expiry values are skipped rather than
failing the query.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.adapters.storage_adapter import ObjectStorageAdapter
from socialvault.shared.core.exceptions import ActiveJobConflictError, AuthorizationError
from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.backup import Backup
from socialvault.shared.repositories.backup_repository import BackupRepository
from socialvault.shared.repositories.base import RecordId
from socialvault.shared.repositories.media_file_repository import MediaFileRepository
from socialvault.shared.services.job_service import JobService
from socialvault.shared.utils.job_payload import payload_str, referenced_backup_ids
from socialvault.shared.utils.retention import clear_guest_retention, epoch_ms, is_guest_backup_expired
from socialvault.shared.utils.storage_paths import build_archive_path, media_prefix, normalize_storage_path

logger = get_logger(__name__)

MAX_SWEEP_LIMIT = 1000
GUEST_SCAN_PAGE_SIZE = 200
CLAIM_BATCH_SIZE = 100


@dataclass
class BackupDeleteResult:
    media_files_checked: int = 0
    candidate_paths_checked: int = 0
    storage_files_deleted: int = 0
    storage_files_delete_failed: int = 0
    backup_deleted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "media_files_checked": self.media_files_checked,
            "candidate_paths_checked": self.candidate_paths_checked,
            "storage_files_deleted": self.storage_files_deleted,
            "storage_files_delete_failed": self.storage_files_delete_failed,
            "backup_deleted": self.backup_deleted,
        }


def archive_paths_of(backup: Backup) -> List[str]:
    """Archive object paths recorded on a backup (embedded and column)."""
    paths = []
    data = backup.data if isinstance(backup.data, dict) else {}
    embedded = data.get("archive_file_path")
    if isinstance(embedded, str) and embedded.strip():
        paths.append(normalize_storage_path(embedded))
    if backup.archive_file_path and backup.archive_file_path.strip():
        paths.append(normalize_storage_path(backup.archive_file_path))
    return paths


class RetentionService:
    """
    Service for backup deletion and retention.

    Handles:
    - Backup + storage deletion with ownership check
    - Lazy expiry and hidden in-flight backups in listings
    - Scheduled guest sweep
    - Guest backups claimed by an account
    """

    def __init__(
        self,
        backup_repo: BackupRepository,
        media_repo: MediaFileRepository,
        job_service: JobService,
        storage: ObjectStorageAdapter,
        settings: Optional[Settings] = None,
    ) -> None:
        self.backup_repo = backup_repo
        self.media_repo = media_repo
        self.job_service = job_service
        self.storage = storage
        self.settings = settings or default_settings

    # ═══════════════════════════════════════════════════════════════════════════
    # DELETE
    # ═══════════════════════════════════════════════════════════════════════════

    async def delete_backup_and_storage(
        self,
        backup_id: RecordId,
        expected_user_id: Optional[RecordId] = None,
    ) -> BackupDeleteResult:
        """
        Delete a backup with all of its stored objects.

        Args:
            backup_id: Backup to delete
            expected_user_id: Owner the caller believes the backup has

        Returns:
            BackupDeleteResult (backup_deleted False when the row was already gone)

        Raises:
            AuthorizationError: Ownership does not match; nothing is deleted
        """
        backup = await self.backup_repo.get(backup_id)
        if not backup:
            return BackupDeleteResult()

        if expected_user_id is not None and str(backup.user_id) != str(expected_user_id):
            logger.warning(
                "Backup ownership mismatch on delete",
                backup_id=str(backup_id),
                expected_user_id=str(expected_user_id),
            )
            raise AuthorizationError("Forbidden - backup ownership mismatch")

        media_files = await self.media_repo.list_for_backup(backup.id)
        candidates: List[str] = []
        for path in [media.file_path for media in media_files] + archive_paths_of(backup):
            normalized = normalize_storage_path(path or "")
            if normalized and normalized not in candidates:
                candidates.append(normalized)

        shared = await self.backup_repo.find_referenced_paths(candidates, exclude_backup_id=backup.id)
        to_delete = [path for path in candidates if path not in shared]

        result = BackupDeleteResult(
            media_files_checked=len(media_files),
            candidate_paths_checked=len(candidates),
        )

        batch_size = max(1, self.settings.STORAGE_DELETE_BATCH_SIZE)
        for start in range(0, len(to_delete), batch_size):
            chunk = to_delete[start:start + batch_size]
            try:
                outcome = await self.storage.delete_objects(chunk)
            except Exception as e:
                logger.warning(
                    "Storage delete failed",
                    backup_id=str(backup.id),
                    paths=len(chunk),
                    error=str(e),
                )
                result.storage_files_delete_failed += len(chunk)
                continue
            result.storage_files_deleted += outcome.deleted
            result.storage_files_delete_failed += outcome.failed

        result.backup_deleted = await self.backup_repo.delete(backup.id)
        logger.info("Backup deleted", backup_id=str(backup.id), **result.to_dict())
        return result

    async def discard_partial_backup(self, backup_id: RecordId, user_id: RecordId) -> BackupDeleteResult:
        """
        Delete a half-written backup left by an interrupted job.

        Objects can reach storage before their media rows are committed, so
        after the row-driven delete the backup's own keys (its media prefix
        and canonical archive path) are swept too. Runs again safely when
        the row is already gone.

        Raises:
            AuthorizationError: The backup belongs to someone else
            UpstreamServiceError: The media prefix could not be listed
        """
        result = await self.delete_backup_and_storage(backup_id, expected_user_id=user_id)

        owner, partial = str(user_id), str(backup_id)
        orphans = await self.storage.list_object_keys(media_prefix(owner, partial))
        orphans.append(build_archive_path(owner, partial))
        shared = await self.backup_repo.find_referenced_paths(orphans, exclude_backup_id=partial)
        outcome = await self.storage.delete_objects([path for path in orphans if path not in shared])
        result.storage_files_deleted += outcome.deleted
        result.storage_files_delete_failed += outcome.failed

        logger.info("Partial backup discarded", backup_id=partial, **result.to_dict())
        return result

    # ═══════════════════════════════════════════════════════════════════════════
    # LISTING
    # ═══════════════════════════════════════════════════════════════════════════

    async def hidden_backup_ids(self, user_id: RecordId) -> set[str]:
        """Backup ids referenced by in-flight jobs, plus partials of failed ones."""
        job_repo = self.job_service.job_repo
        hidden: set[str] = set()
        for job in await job_repo.list_active_for_user(user_id):
            hidden |= referenced_backup_ids(job.payload)
            if job.result_backup_id:
                hidden.add(str(job.result_backup_id))
        for job in await job_repo.list_failed_with_partial_backup(user_id=user_id):
            hidden.add(payload_str(job.payload, "partial_backup_id"))
        return hidden

    async def list_visible_backups(
        self,
        user_id: RecordId,
        now_ms: Optional[int] = None,
        limit: int = 100,
    ) -> List[Backup]:
        """
        The user's backups as shown in the UI.

        Expired guest backups are deleted on the way (and hidden even if
        deletion fails); backups still being written by an active job, or
        left half-written by a failed one, are hidden.
        """
        now_ms = epoch_ms() if now_ms is None else now_ms
        await self.job_service.find_active_backup_job_for_user(user_id)
        await self.discard_abandoned_partials(user_id=user_id)
        hidden = await self.hidden_backup_ids(user_id)

        visible = []
        for backup in await self.backup_repo.list_for_user(user_id, limit=limit):
            if is_guest_backup_expired(backup.data, now_ms):
                await self.expire_backup(backup)
                continue
            if str(backup.id) in hidden:
                continue
            visible.append(backup)
        return visible

    async def expire_backup(self, backup: Backup) -> bool:
        """Delete an expired backup; failures are logged, not raised."""
        try:
            result = await self.delete_backup_and_storage(backup.id, expected_user_id=backup.user_id)
        except Exception as e:
            logger.error("Failed to delete expired guest backup", backup_id=str(backup.id), error=str(e))
            return False
        return result.backup_deleted

    async def discard_abandoned_partials(
        self,
        user_id: Optional[RecordId] = None,
        limit: int = 100,
    ) -> int:
        """
        Delete half-written backups left behind by failed jobs.

        The job keeps its ``partial_backup_id`` when deletion fails, so the
        backup stays hidden and is retried on the next pass.

        Returns:
            Number of jobs cleaned up
        """
        jobs = await self.job_service.job_repo.list_failed_with_partial_backup(user_id=user_id, limit=limit)
        discarded = 0
        for job in jobs:
            partial_id = payload_str(job.payload, "partial_backup_id")
            try:
                await self.discard_partial_backup(partial_id, job.user_id)
            except Exception as e:
                logger.error(
                    "Failed to discard partial backup of failed job",
                    job_id=str(job.id),
                    backup_id=partial_id,
                    error=str(e),
                )
                continue
            await self.job_service.merge_payload(job.id, {"partial_backup_id": None})
            discarded += 1

        if discarded:
            logger.info("Partial backups of failed jobs discarded", count=discarded)
        return discarded

    # ═══════════════════════════════════════════════════════════════════════════
    # CLAIM
    # ═══════════════════════════════════════════════════════════════════════════

    async def claim_guest_backups(
        self,
        guest_user_id: RecordId,
        user_id: RecordId,
        now_ms: Optional[int] = None,
    ) -> int:
        """
        Move a guest's backups, media rows and jobs to a signed-in account.

        Claimed backups lose their guest retention. Backups that already
        expired are deleted instead of claimed. A guest job still in flight
        blocks the claim: its queued event names the guest as owner.

        Returns:
            Number of backups moved

        Raises:
            ActiveJobConflictError: The guest has a queued or processing job
        """
        active = await self.job_service.find_active_backup_job_for_user(guest_user_id)
        if active is not None:
            raise ActiveJobConflictError(str(active.id))
        await self.discard_abandoned_partials(user_id=guest_user_id)

        now_ms = epoch_ms() if now_ms is None else now_ms
        moved = 0
        seen: set[Any] = set()
        while True:
            batch = [
                backup for backup in await self.backup_repo.list_for_user(guest_user_id, limit=CLAIM_BATCH_SIZE)
                if backup.id not in seen
            ]
            if not batch:
                break
            for backup in batch:
                seen.add(backup.id)
                if is_guest_backup_expired(backup.data, now_ms):
                    await self.expire_backup(backup)
                    continue
                await self.backup_repo.reassign_backup(backup, user_id, clear_guest_retention(backup.data))
                moved += 1

        media_files = await self.media_repo.reassign_owner(guest_user_id, user_id)
        jobs = await self.job_service.job_repo.reassign_owner(guest_user_id, user_id)
        logger.info(
            "Guest backups claimed",
            guest_user_id=str(guest_user_id),
            user_id=str(user_id),
            backups=moved,
            media_files=media_files,
            jobs=jobs,
        )
        return moved

    # ═══════════════════════════════════════════════════════════════════════════
    # SWEEP
    # ═══════════════════════════════════════════════════════════════════════════

    async def sweep_expired_guest_backups(
        self,
        limit: Optional[int] = None,
        now_ms: Optional[int] = None,
    ) -> int:
        """
        Delete up to ``limit`` expired guest backups system-wide.

        Returns:
            Number of backups deleted
        """
        requested = self.settings.GUEST_CLEANUP_BATCH_LIMIT if limit is None else limit
        bounded = max(1, min(MAX_SWEEP_LIMIT, int(requested)))
        now_ms = epoch_ms() if now_ms is None else now_ms

        deleted = 0
        scanned = 0
        after = None
        while deleted < bounded:
            page = await self.backup_repo.list_guest_backups(limit=GUEST_SCAN_PAGE_SIZE, after=after)
            for backup in page:
                if deleted >= bounded:
                    break
                scanned += 1
                if is_guest_backup_expired(backup.data, now_ms) and await self.expire_backup(backup):
                    deleted += 1
            if len(page) < GUEST_SCAN_PAGE_SIZE:
                break
            after = (page[-1].created_at, page[-1].id)

        logger.info("Guest retention sweep finished", scanned=scanned, deleted=deleted)
        return deleted
