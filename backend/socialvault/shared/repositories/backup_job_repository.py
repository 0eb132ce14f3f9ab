"""
BackupJob Repository

Database operations for backup jobs.

Common Operations:
==================
- get_for_user()              → Job scoped to its owner
- list_for_user()             → Newest jobs first
- get_oldest_active_for_user()→ Candidate for the one-active-job gate
- create_job()                → New queued job
- update_job()                → Status / progress / message transitions
- merge_payload()             → Read-modify-write merge of the flat payload
- list_pending_reminders()    → Completed jobs with undelivered reminders
- list_failed_with_partial_backup() → Failed jobs still pointing at a half-written backup
- list_created_since()        → Jobs of the current billing month
- reassign_owner()           → Hand a guest's jobs to the account that claimed them

Status and payload semantics (staleness, reminder states) live in the
services; this repository only stores what it is told.
"""

from datetime import datetime
from typing import Any, List, Mapping, Optional

from sqlalchemy import Integer, and_, cast, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.base import utc_now
from socialvault.shared.models.enums import ACTIVE_JOB_STATUSES, JobStatus, ReminderDeliveryStatus
from socialvault.shared.repositories.base import BaseRepository, RecordId, as_uuid
from socialvault.shared.utils.job_payload import PayloadValue, merge_job_payload


class _Unset:
    """Marker for "leave this column alone" in update_job."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class BackupJobRepository(BaseRepository[BackupJob]):
    """
    Repository for BackupJob database operations.

    Handles job status tracking and payload merges.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(BackupJob, session)

    # ═══════════════════════════════════════════════════════════════════════════
    # READ OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_for_user(self, job_id: RecordId, user_id: RecordId) -> Optional[BackupJob]:
        """
        Get a job only if it belongs to the user.

        Returns:
            The job, or None when absent or owned by someone else
        """
        job_uuid = as_uuid(job_id)
        user_uuid = as_uuid(user_id)
        if job_uuid is None or user_uuid is None:
            return None

        result = await self.session.execute(
            select(BackupJob).where(BackupJob.id == job_uuid, BackupJob.user_id == user_uuid)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: RecordId, limit: int = 20) -> List[BackupJob]:
        """
        Get the user's most recent jobs, newest first.

        SQL Generated:
            SELECT * FROM backup_jobs WHERE user_id = '...'
            ORDER BY created_at DESC LIMIT 20
        """
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            return []

        result = await self.session.execute(
            select(BackupJob)
            .where(BackupJob.user_id == user_uuid)
            .order_by(BackupJob.created_at.desc())
            .limit(max(1, limit))
        )
        return list(result.scalars().all())

    async def list_active_for_user(self, user_id: RecordId) -> List[BackupJob]:
        """Get every queued or processing job of the user, oldest first."""
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            return []

        result = await self.session.execute(
            select(BackupJob)
            .where(
                BackupJob.user_id == user_uuid,
                BackupJob.status.in_(ACTIVE_JOB_STATUSES),
            )
            .order_by(BackupJob.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_oldest_active_for_user(self, user_id: RecordId) -> Optional[BackupJob]:
        """Get the user's oldest queued or processing job."""
        active = await self.list_active_for_user(user_id)
        return active[0] if active else None

    async def list_pending_reminders(self, limit: int, max_attempts: int) -> List[BackupJob]:
        """
        Get completed jobs whose reminder still has to be delivered.

        A reminder is pending when its delivery status is ``requested``, or
        ``failed`` with fewer than ``max_attempts`` attempts recorded.
        """
        status = BackupJob.payload["reminder_delivery_status"].astext
        attempts = cast(BackupJob.payload["reminder_attempts"].astext, Integer)

        result = await self.session.execute(
            select(BackupJob)
            .where(
                BackupJob.status == JobStatus.COMPLETED.value,
                BackupJob.result_backup_id.is_not(None),
                or_(
                    status == ReminderDeliveryStatus.REQUESTED.value,
                    and_(
                        status == ReminderDeliveryStatus.FAILED.value,
                        or_(attempts.is_(None), attempts < max_attempts),
                    ),
                ),
            )
            .order_by(BackupJob.completed_at.asc())
            .limit(max(1, limit))
        )
        return list(result.scalars().all())

    async def list_failed_with_partial_backup(
        self,
        user_id: Optional[RecordId] = None,
        limit: int = 100,
    ) -> List[BackupJob]:
        """
        Get failed jobs whose payload still holds a ``partial_backup_id``.

        Reconciliation fails a stale job without touching the backup it was
        writing; retention removes those backups from this list.

        SQL Generated:
            SELECT * FROM backup_jobs
            WHERE status = 'failed' AND coalesce(payload->>'partial_backup_id', '') <> ''
            ORDER BY updated_at LIMIT 100
        """
        partial = BackupJob.payload["partial_backup_id"].astext
        query = select(BackupJob).where(
            BackupJob.status == JobStatus.FAILED.value,
            func.coalesce(partial, "") != "",
        )
        if user_id is not None:
            user_uuid = as_uuid(user_id)
            if user_uuid is None:
                return []
            query = query.where(BackupJob.user_id == user_uuid)

        result = await self.session.execute(
            query.order_by(BackupJob.updated_at.asc()).limit(max(1, limit))
        )
        return list(result.scalars().all())

    async def list_created_since(self, user_id: RecordId, since: datetime) -> List[BackupJob]:
        """Get the user's jobs created at or after ``since``."""
        user_uuid = as_uuid(user_id)
        if user_uuid is None:
            return []

        result = await self.session.execute(
            select(BackupJob).where(
                BackupJob.user_id == user_uuid,
                BackupJob.created_at >= since,
            )
        )
        return list(result.scalars().all())

    # ═══════════════════════════════════════════════════════════════════════════
    # WRITE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def create_job(
        self,
        user_id: RecordId,
        job_type: str,
        message: Optional[str] = None,
        payload: Optional[Mapping[str, PayloadValue]] = None,
    ) -> BackupJob:
        """
        Create a new queued job.

        Args:
            user_id: Owner
            job_type: archive_upload | snapshot_scrape
            message: Initial status line
            payload: Initial flat payload

        Returns:
            Created BackupJob
        """
        return await self.create(
            user_id=as_uuid(user_id),
            job_type=job_type,
            status=JobStatus.QUEUED.value,
            progress=0,
            message=message,
            payload=merge_job_payload({}, payload or {}),
        )

    async def update_job(
        self,
        job_id: RecordId,
        *,
        status: Any = UNSET,
        progress: Any = UNSET,
        message: Any = UNSET,
        error_message: Any = UNSET,
        result_backup_id: Any = UNSET,
        payload_patch: Optional[Mapping[str, PayloadValue]] = None,
    ) -> Optional[BackupJob]:
        """
        Apply a status transition and optional payload patch in one UPDATE.

        Unlike BaseRepository-style partial updates, ``None`` is a real value
        here (clears the column); omit an argument to leave it unchanged.

        Side effects:
        - moving to processing sets ``started_at`` (first time only)
        - moving to completed/failed sets ``completed_at``
        - progress is rounded and clamped to 0..100

        Returns:
            Updated job, or None if not found
        """
        job = await self.get(job_id)
        if not job:
            return None

        if status is not UNSET:
            status_value = JobStatus(status).value
            job.status = status_value
            if status_value == JobStatus.PROCESSING.value and job.started_at is None:
                job.started_at = utc_now()
            if status_value in (JobStatus.COMPLETED.value, JobStatus.FAILED.value):
                job.completed_at = utc_now()

        if progress is not UNSET:
            job.progress = max(0, min(100, int(round(progress))))

        if message is not UNSET:
            job.message = message

        if error_message is not UNSET:
            job.error_message = error_message

        if result_backup_id is not UNSET:
            job.result_backup_id = as_uuid(result_backup_id)

        if payload_patch:
            job.payload = merge_job_payload(job.payload, payload_patch)

        # Bump updated_at even when only the JSON payload changed
        job.updated_at = utc_now()

        await self.session.flush()
        await self.session.refresh(job)
        return job

    async def merge_payload(
        self,
        job_id: RecordId,
        patch: Mapping[str, PayloadValue],
    ) -> Optional[BackupJob]:
        """
        Merge a patch into the job payload.

        Reads the row with FOR UPDATE so merges issued from concurrent
        sessions serialize instead of losing each other's keys.

        Returns:
            Updated job, or None if not found
        """
        job_uuid = as_uuid(job_id)
        if job_uuid is None:
            return None

        result = await self.session.execute(
            select(BackupJob).where(BackupJob.id == job_uuid).with_for_update()
        )
        job = result.scalar_one_or_none()
        if not job:
            return None

        job.payload = merge_job_payload(job.payload, patch)
        job.updated_at = utc_now()

        await self.session.flush()
        await self.session.refresh(job)
        return job

    async def reassign_owner(self, from_user_id: RecordId, to_user_id: RecordId) -> int:
        """
        Move every job of one user to another.

        SQL Generated:
            UPDATE backup_jobs SET user_id = :to, updated_at = now()
            WHERE user_id = :from
        """
        result = await self.session.execute(
            update(BackupJob)
            .where(BackupJob.user_id == as_uuid(from_user_id))
            .values(user_id=as_uuid(to_user_id), updated_at=utc_now())
        )
        return result.rowcount or 0
