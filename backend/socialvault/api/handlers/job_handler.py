"""
Job Handler

Job status endpoints polled by the frontend.

    GET  /jobs                  recent jobs
    GET  /jobs/active           the caller's in-flight job, if any
    GET  /jobs/{id}             one job
    POST /jobs/{id}/reminder    email me when this backup is ready
"""

from fastapi import APIRouter, Depends, Query

from socialvault.api.dependencies import CurrentUser
from socialvault.api.dependencies.services import get_job_service, get_notification_service
from socialvault.shared.schemas.job import (
    ActiveJobResponse,
    JobEnvelope,
    JobListResponse,
    JobResponse,
    ReminderRequest,
    ReminderResponse,
)
from socialvault.shared.services.job_service import JobService
from socialvault.shared.services.notification_service import NotificationService


router = APIRouter()


@router.get("", response_model=JobListResponse)
async def list_jobs(
    current_user: CurrentUser,
    limit: int = Query(20, ge=1, le=100),
    job_service: JobService = Depends(get_job_service),
):
    jobs = await job_service.list_jobs_for_user(current_user["user_id"], limit=limit)
    return JobListResponse(jobs=[JobResponse.from_job(job) for job in jobs])


@router.get("/active", response_model=ActiveJobResponse)
async def get_active_job(
    current_user: CurrentUser,
    job_service: JobService = Depends(get_job_service),
):
    """
    Return the caller's active job.

    Stale queued or processing jobs are failed on the way, so a lost
    message or a dead worker never blocks the user for good.
    """
    job = await job_service.find_active_backup_job_for_user(current_user["user_id"])
    return ActiveJobResponse(job=JobResponse.from_job(job) if job else None)


@router.get("/{job_id}", response_model=JobEnvelope)
async def get_job(
    job_id: str,
    current_user: CurrentUser,
    job_service: JobService = Depends(get_job_service),
):
    job = await job_service.get_job_for_user(job_id, current_user["user_id"])
    return JobEnvelope(job=JobResponse.from_job(job))


@router.post("/{job_id}/reminder", response_model=ReminderResponse)
async def register_reminder(
    job_id: str,
    request: ReminderRequest,
    current_user: CurrentUser,
    notification_service: NotificationService = Depends(get_notification_service),
):
    """
    Register an email to notify when the job's backup is ready.

    If the job already finished, the email is sent right away.
    """
    registration = await notification_service.register_reminder(
        job_id=job_id,
        user_id=current_user["user_id"],
        email=request.email,
    )
    return ReminderResponse(
        sent=registration.sent,
        message=registration.message,
        job=JobResponse.from_job(registration.job),
    )
