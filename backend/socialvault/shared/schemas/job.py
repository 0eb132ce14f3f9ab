"""
Job-related Pydantic schemas.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.schemas.common import BaseSchema, SuccessResponse


class JobResponse(BaseSchema):
    """A backup job as shown to its owner (progress bar, status line)."""

    id: str
    job_type: str
    status: str
    progress: int
    message: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    result_backup_id: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: BackupJob) -> "JobResponse":
        return cls(
            id=str(job.id),
            job_type=job.job_type,
            status=job.status,
            progress=job.progress,
            message=job.message,
            payload=dict(job.payload or {}),
            result_backup_id=str(job.result_backup_id) if job.result_backup_id else None,
            error_message=job.error_message,
            started_at=job.started_at,
            completed_at=job.completed_at,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class JobEnvelope(SuccessResponse):
    job: JobResponse


class ActiveJobResponse(SuccessResponse):
    job: Optional[JobResponse] = None


class JobListResponse(SuccessResponse):
    jobs: List[JobResponse]


class ReminderRequest(BaseSchema):
    email: str = Field(description="Address to notify when the backup is ready")


class ReminderResponse(SuccessResponse):
    sent: bool
    message: str
    job: JobResponse
