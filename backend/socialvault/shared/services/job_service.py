"""
Job Service

Business logic for backup jobs: the one-active-job gate, status
transitions and payload merges.

ONE ACTIVE JOB PER USER:
- There is no database constraint; the gate is enforced by calling
  find_active_backup_job_for_user() before accepting new work.
- A queued job that never started within STALE_QUEUED_JOB_SECONDS, or a
  processing job that stopped reporting progress for
  STALE_PROCESSING_JOB_SECONDS, is marked failed so the user is not
  blocked forever by a lost queue message or a crashed worker.
- Reconciliation only touches active rows and always moves them to a
  terminal state, so concurrent callers may race without doing harm.

Usage:
======
    from socialvault.shared.services.job_service import JobService

    service = JobService(BackupJobRepository(db))
    active = await service.find_active_backup_job_for_user(user_id)
"""

from datetime import datetime, timedelta
from typing import List, Mapping, Optional

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.core.exceptions import JobNotFoundError
from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.base import utc_now
from socialvault.shared.models.enums import JobStatus, LifecycleState
from socialvault.shared.repositories.backup_job_repository import UNSET, BackupJobRepository
from socialvault.shared.repositories.base import RecordId
from socialvault.shared.utils.job_payload import PayloadValue, now_iso

logger = get_logger(__name__)

QUEUE_TIMEOUT_MESSAGE = "Backup job did not start within 5 minutes. Please retry."
PROCESSING_TIMEOUT_MESSAGE = "Backup job stopped responding. Please retry."

# Upper bound on stale rows drained by a single lookup
MAX_RECONCILE_ROUNDS = 10


class JobService:
    """
    Service for backup job lifecycle.

    Handles:
    - Active job lookup with stale-row reconciliation
    - Job creation and owner-scoped reads
    - Status transitions (processing, progress, completed, failed)
    - Payload merges with not-found signalling
    """

    def __init__(
        self,
        job_repo: BackupJobRepository,
        settings: Optional[Settings] = None,
    ) -> None:
        self.job_repo = job_repo
        self.settings = settings or default_settings

    # ═══════════════════════════════════════════════════════════════════════════
    # RECONCILIATION
    # ═══════════════════════════════════════════════════════════════════════════

    async def find_active_backup_job_for_user(
        self,
        user_id: RecordId,
        now: Optional[datetime] = None,
    ) -> Optional[BackupJob]:
        """
        Find the user's active job, failing stale ones on the way.

        Args:
            user_id: Owner
            now: Clock reading (defaults to the current time)

        Returns:
            The oldest non-stale queued/processing job, or None
        """
        now = now or utc_now()

        for _ in range(MAX_RECONCILE_ROUNDS):
            job = await self.job_repo.get_oldest_active_for_user(user_id)
            if job is None:
                return None
            if not await self._reconcile_if_stale(job, now):
                return job

        # Still draining stale rows; report whatever is left as active
        return await self.job_repo.get_oldest_active_for_user(user_id)

    def is_stale(self, job: BackupJob, now: datetime) -> bool:
        """Whether an active job has exceeded its staleness threshold."""
        if job.status == JobStatus.QUEUED.value:
            threshold = self.settings.STALE_QUEUED_JOB_SECONDS
            reference = job.started_at or job.created_at
        elif job.status == JobStatus.PROCESSING.value:
            threshold = self.settings.STALE_PROCESSING_JOB_SECONDS
            reference = job.updated_at or job.started_at or job.created_at
        else:
            return False

        if threshold <= 0 or reference is None:
            return False
        return now - reference > timedelta(seconds=threshold)

    async def _reconcile_if_stale(self, job: BackupJob, now: datetime) -> bool:
        if not self.is_stale(job, now):
            return False

        previous_status = job.status
        if previous_status == JobStatus.QUEUED.value:
            message = QUEUE_TIMEOUT_MESSAGE
            patch = {
                "lifecycle_state": LifecycleState.FAILED.value,
                "queue_timeout": True,
                "queued_timed_out_at": now_iso(now),
            }
        else:
            message = PROCESSING_TIMEOUT_MESSAGE
            patch = {
                "lifecycle_state": LifecycleState.FAILED.value,
                "processing_timeout": True,
                "processing_timed_out_at": now_iso(now),
            }

        await self.job_repo.update_job(
            job.id,
            status=JobStatus.FAILED,
            message=message,
            error_message=message,
            payload_patch=patch,
        )
        logger.warning(
            "Stale backup job failed by reconciliation",
            job_id=str(job.id),
            user_id=str(job.user_id),
            previous_status=previous_status,
            partial_backup_id=(job.payload or {}).get("partial_backup_id"),
        )
        return True

    # ═══════════════════════════════════════════════════════════════════════════
    # READ
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_job(self, job_id: RecordId) -> BackupJob:
        """
        Get a job by id.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = await self.job_repo.get(job_id)
        if not job:
            raise JobNotFoundError(str(job_id))
        return job

    async def get_job_for_user(self, job_id: RecordId, user_id: RecordId) -> BackupJob:
        """
        Get a job owned by the user.

        A job owned by someone else is reported as missing so job ids
        cannot be enumerated.

        Raises:
            JobNotFoundError: If absent or owned by another user
        """
        job = await self.job_repo.get_for_user(job_id, user_id)
        if not job:
            raise JobNotFoundError(str(job_id))
        return job

    async def list_jobs_for_user(self, user_id: RecordId, limit: int = 20) -> List[BackupJob]:
        """List recent jobs after reconciling the active one."""
        await self.find_active_backup_job_for_user(user_id)
        return await self.job_repo.list_for_user(user_id, limit=max(1, min(limit, 100)))

    async def list_pending_reminders(self, limit: int) -> List[BackupJob]:
        """Completed jobs with a reminder still to deliver."""
        return await self.job_repo.list_pending_reminders(
            limit=max(1, limit),
            max_attempts=self.settings.REMINDER_MAX_ATTEMPTS,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # WRITE
    # ═══════════════════════════════════════════════════════════════════════════

    async def create_job(
        self,
        user_id: RecordId,
        job_type: str,
        message: str,
        payload: Optional[Mapping[str, PayloadValue]] = None,
    ) -> BackupJob:
        initial = {"lifecycle_state": LifecycleState.QUEUED.value}
        initial.update(payload or {})
        job = await self.job_repo.create_job(
            user_id=user_id,
            job_type=job_type,
            message=message,
            payload=initial,
        )
        logger.info("Backup job created", job_id=str(job.id), user_id=str(user_id), job_type=job_type)
        return job

    async def merge_payload(
        self,
        job_id: RecordId,
        patch: Mapping[str, PayloadValue],
    ) -> BackupJob:
        """
        Merge a patch into the job payload.

        Raises:
            JobNotFoundError: If the job does not exist
            ValidationError: If the patch is not a flat scalar map
        """
        job = await self.job_repo.merge_payload(job_id, patch)
        if not job:
            raise JobNotFoundError(str(job_id))
        return job

    async def mark_processing(
        self,
        job_id: RecordId,
        message: str,
        progress: int = 5,
        payload_patch: Optional[Mapping[str, PayloadValue]] = None,
    ) -> BackupJob:
        patch = {"lifecycle_state": LifecycleState.PROCESSING.value, "last_error": None}
        patch.update(payload_patch or {})
        return await self._update(
            job_id,
            status=JobStatus.PROCESSING,
            progress=progress,
            message=message,
            error_message=None,
            payload_patch=patch,
        )

    async def mark_progress(
        self,
        job_id: RecordId,
        progress: int,
        message: Optional[str] = None,
        payload_patch: Optional[Mapping[str, PayloadValue]] = None,
    ) -> BackupJob:
        return await self._update(
            job_id,
            progress=progress,
            message=message if message is not None else UNSET,
            payload_patch=payload_patch,
        )

    async def mark_completed(
        self,
        job_id: RecordId,
        result_backup_id: RecordId,
        message: str = "Backup completed.",
        payload_patch: Optional[Mapping[str, PayloadValue]] = None,
    ) -> BackupJob:
        patch = {
            "lifecycle_state": LifecycleState.COMPLETED.value,
            "result_backup_id": str(result_backup_id),
            "completed_at": now_iso(),
        }
        patch.update(payload_patch or {})
        job = await self._update(
            job_id,
            status=JobStatus.COMPLETED,
            progress=100,
            message=message,
            error_message=None,
            result_backup_id=result_backup_id,
            payload_patch=patch,
        )
        logger.info("Backup job completed", job_id=str(job_id), backup_id=str(result_backup_id))
        return job

    async def mark_failed(
        self,
        job_id: RecordId,
        error: str,
        payload_patch: Optional[Mapping[str, PayloadValue]] = None,
    ) -> BackupJob:
        patch = {
            "lifecycle_state": LifecycleState.FAILED.value,
            "last_error": error,
            "failed_at": now_iso(),
        }
        patch.update(payload_patch or {})
        job = await self._update(
            job_id,
            status=JobStatus.FAILED,
            message=error,
            error_message=error,
            payload_patch=patch,
        )
        logger.warning("Backup job failed", job_id=str(job_id), error=error)
        return job

    async def _update(self, job_id: RecordId, **changes) -> BackupJob:
        job = await self.job_repo.update_job(job_id, **changes)
        if not job:
            raise JobNotFoundError(str(job_id))
        return job

    async def commit(self) -> None:
        """Commit the job's session before handing the job id to another process."""
        await self.job_repo.session.commit()
