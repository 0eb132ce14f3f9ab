"""
Base processor classes.

A processor handles one event type. Job processors share one lifecycle:

    1. Load the job; skip missing, foreign or already-terminal jobs
    2. Remove the partial backup a previous attempt left behind
    3. run()
    4. success: deliver a parked reminder, release inputs
       failure: rollback, then record the error (non-final attempt) or
                clean up and mark the job failed (final attempt), re-raise

Everything here is safe to re-run: a redelivered message either finds a
terminal job (no-op) or starts again from a clean slate.
"""

from dataclasses import dataclass
from typing import Any, Optional

from socialvault.config.settings import Settings
from socialvault.shared.core.exceptions import JobNotFoundError
from socialvault.shared.core.logging import get_logger, log_context
from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.enums import RetentionMode
from socialvault.shared.utils.job_payload import now_iso, payload_str
from socialvault.shared.utils.retention import build_guest_retention, epoch_ms
from socialvault.worker.context import WorkerContext

logger = get_logger(__name__)


@dataclass(frozen=True)
class JobAttempt:
    """Which delivery of a message is being processed (1-based)."""

    number: int
    max_attempts: int

    @property
    def is_final(self) -> bool:
        return self.number >= self.max_attempts


def error_message(error: BaseException) -> str:
    return getattr(error, "message", None) or str(error) or error.__class__.__name__


def retention_for_event(data: dict[str, Any], settings: Settings) -> Optional[dict[str, Any]]:
    """Guest retention block for a new backup, or None for account backups."""
    if data.get("retention_mode") != RetentionMode.GUEST_30D.value:
        return None
    return build_guest_retention(epoch_ms(), settings.GUEST_RETENTION_DAYS)


class BaseProcessor:
    """Base class for event processors."""

    event_name: str = ""

    def __init__(self, context: WorkerContext) -> None:
        self.context = context
        self.settings = context.settings
        self.jobs = context.jobs

    async def process(self, data: dict[str, Any], attempt: JobAttempt) -> Any:
        """Handle one event's data."""
        raise NotImplementedError

    async def checkpoint(self) -> None:
        """Commit so progress and partial ids are visible to pollers."""
        await self.context.session.commit()


class JobProcessor(BaseProcessor):
    """Base class for processors that drive a backup job to completion."""

    async def process(self, data: dict[str, Any], attempt: JobAttempt) -> Optional[str]:
        job_id = data.get("job_id")
        user_id = data.get("user_id")
        if not job_id or not user_id:
            logger.error("Job event missing job_id or user_id", event_name=self.event_name)
            return None

        try:
            job = await self.jobs.get_job(job_id)
        except JobNotFoundError:
            logger.error("Job not found for event", job_id=str(job_id), event_name=self.event_name)
            return None

        if str(job.user_id) != str(user_id):
            logger.error("Job owner does not match event", job_id=str(job_id))
            return None
        if not job.is_active:
            logger.info("Job already finished, skipping", job_id=str(job_id), status=job.status)
            return None

        job_id = str(job.id)
        log_context(job_id=job_id)
        try:
            await self.discard_partial_backup(job)
            backup_id = await self.run(job, data, attempt)
        except Exception as e:
            await self.context.session.rollback()
            await self.handle_failure(job_id, data, attempt, e)
            raise

        await self.checkpoint()
        await self.after_success(job_id, data)
        return backup_id

    async def run(self, job: BackupJob, data: dict[str, Any], attempt: JobAttempt) -> str:
        """Do the work; return the id of the completed backup."""
        raise NotImplementedError

    # ═══════════════════════════════════════════════════════════════════════════
    # HOOKS
    # ═══════════════════════════════════════════════════════════════════════════

    async def discard_partial_backup(self, job: BackupJob) -> None:
        partial_id = payload_str(job.payload, "partial_backup_id")
        if not partial_id:
            return
        logger.info("Removing partial backup from previous attempt", backup_id=partial_id)
        await self.context.retention.discard_partial_backup(partial_id, job.user_id)
        await self.jobs.merge_payload(job.id, {"partial_backup_id": None})
        await self.checkpoint()

    async def after_success(self, job_id: str, data: dict[str, Any]) -> None:
        await self.context.notifications.deliver_reminder_if_ready(job_id)
        await self.checkpoint()
        await self.release_inputs(job_id, data)

    async def release_inputs(self, job_id: str, data: dict[str, Any]) -> None:
        """Delete inputs owned by the job (e.g. staged uploads)."""

    async def handle_failure(
        self,
        job_id: str,
        data: dict[str, Any],
        attempt: JobAttempt,
        error: BaseException,
    ) -> None:
        """
        Record a failed attempt.

        Errors raised while recording are logged; the original error is
        what the dispatcher sees.
        """
        message = error_message(error)
        logger.warning(
            "Job attempt failed",
            job_id=job_id,
            attempt=attempt.number,
            max_attempts=attempt.max_attempts,
            error=message,
        )
        try:
            if attempt.is_final:
                job = await self.jobs.get_job(job_id)
                await self.discard_partial_backup(job)
                await self.jobs.mark_failed(job_id, message, payload_patch={"partial_backup_id": None})
                await self.checkpoint()
                await self.release_inputs(job_id, data)
            else:
                await self.jobs.merge_payload(job_id, {
                    "last_error": message,
                    "last_failed_attempt": attempt.number,
                    "last_failed_at": now_iso(),
                })
                await self.checkpoint()
        except Exception as cleanup_error:
            logger.error("Failed to record job failure", job_id=job_id, error=str(cleanup_error), exc_info=True)
            await self.context.session.rollback()
