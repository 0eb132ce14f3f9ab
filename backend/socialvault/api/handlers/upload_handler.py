"""
Upload Handler

Archive uploads go straight from the browser to object storage:

    POST /uploads/presign    → signed PUT URL + staged path
    (browser PUTs the zip)
    POST /uploads/complete   → archive job queued
    POST /uploads/discard    → staged object removed (abandoned upload)

All paths a client sends back are checked against the caller's own
``{user_id}/job-inputs/`` prefix by the gateway.
"""

from fastapi import APIRouter, Depends, status

from socialvault.api.dependencies import CurrentUser
from socialvault.api.dependencies.services import get_intake_gateway
from socialvault.shared.schemas.job import JobResponse
from socialvault.shared.schemas.upload import (
    CompleteUploadRequest,
    CompleteUploadResponse,
    DiscardUploadRequest,
    DiscardUploadResponse,
    PresignUploadRequest,
    PresignUploadResponse,
)
from socialvault.shared.services.intake_service import StorageIntakeGateway


router = APIRouter()


@router.post("/presign", response_model=PresignUploadResponse)
async def presign_upload(
    request: PresignUploadRequest,
    current_user: CurrentUser,
    gateway: StorageIntakeGateway = Depends(get_intake_gateway),
):
    """
    Issue a signed upload URL for a Twitter/X archive.

    Rejects non-zip files, oversized archives, exhausted storage quota and
    callers that already have a job in progress.
    """
    upload = await gateway.presign_upload(
        user_id=current_user["user_id"],
        file_name=request.file_name,
        file_size=request.file_size,
        file_type=request.file_type,
    )
    return PresignUploadResponse(
        upload_url=upload.upload_url,
        staged_path=upload.staged_path,
        expires_in_seconds=upload.expires_in_seconds,
    )


@router.post(
    "/complete",
    response_model=CompleteUploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def complete_upload(
    request: CompleteUploadRequest,
    current_user: CurrentUser,
    gateway: StorageIntakeGateway = Depends(get_intake_gateway),
):
    """Queue processing of an archive the browser finished uploading."""
    job = await gateway.complete_upload(
        user_id=current_user["user_id"],
        staged_path=request.staged_path,
        file_name=request.file_name,
        file_type=request.file_type,
        file_size=request.file_size,
        username=request.username,
        is_guest=current_user["is_guest"],
        preserve_archive_file=request.preserve_archive_file,
    )
    return CompleteUploadResponse(job=JobResponse.from_job(job))


@router.post("/discard", response_model=DiscardUploadResponse)
async def discard_upload(
    request: DiscardUploadRequest,
    current_user: CurrentUser,
    gateway: StorageIntakeGateway = Depends(get_intake_gateway),
):
    staged_path = await gateway.discard_staged_upload(request.staged_path, current_user["user_id"])
    return DiscardUploadResponse(staged_path=staged_path)
