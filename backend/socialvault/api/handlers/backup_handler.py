"""
Backup Handler

Owner-scoped backup endpoints.

    GET    /backups                     visible backups (expired/in-flight hidden)
    POST   /backups/claim               move a guest session's backups to the caller
    GET    /backups/{id}
    DELETE /backups/{id}                row, media rows and stored objects
    GET    /backups/{id}/download       signed URL for the original archive
    POST   /backups/{id}/share-link     signed public link
"""

from fastapi import APIRouter, Depends

from socialvault.api.dependencies import CurrentUser
from socialvault.api.dependencies.services import get_backup_service, get_intake_gateway
from socialvault.shared.schemas.backup import (
    BackupDeleteResponse,
    BackupEnvelope,
    BackupListResponse,
    BackupResponse,
    ClaimBackupsRequest,
    ClaimBackupsResponse,
    ShareLinkResponse,
)
from socialvault.shared.schemas.upload import DownloadResponse
from socialvault.shared.services.backup_service import BackupService
from socialvault.shared.services.intake_service import StorageIntakeGateway
from socialvault.shared.utils.retention import epoch_ms


router = APIRouter()


@router.get("", response_model=BackupListResponse)
async def list_backups(
    current_user: CurrentUser,
    backup_service: BackupService = Depends(get_backup_service),
):
    now_ms = epoch_ms()
    backups = await backup_service.list_backups(current_user["user_id"], now_ms=now_ms)
    return BackupListResponse(backups=[BackupResponse.from_backup(b, now_ms) for b in backups])


@router.post("/claim", response_model=ClaimBackupsResponse)
async def claim_guest_backups(
    request: ClaimBackupsRequest,
    current_user: CurrentUser,
    backup_service: BackupService = Depends(get_backup_service),
):
    """
    Keep the backups made as a guest after signing in.

    The caller must be signed in; the body carries the token of the guest
    session. Claimed backups no longer expire.
    """
    result = await backup_service.claim_guest_backups(
        current_user["user_id"],
        request.guest_token,
        caller_is_guest=current_user["is_guest"],
    )
    return ClaimBackupsResponse(moved=result.moved, moved_backups=result.moved_backups)


@router.get("/{backup_id}", response_model=BackupEnvelope)
async def get_backup(
    backup_id: str,
    current_user: CurrentUser,
    backup_service: BackupService = Depends(get_backup_service),
):
    now_ms = epoch_ms()
    backup = await backup_service.get_backup(backup_id, current_user["user_id"], now_ms=now_ms)
    return BackupEnvelope(backup=BackupResponse.from_backup(backup, now_ms))


@router.delete("/{backup_id}", response_model=BackupDeleteResponse)
async def delete_backup(
    backup_id: str,
    current_user: CurrentUser,
    backup_service: BackupService = Depends(get_backup_service),
):
    """
    Delete a backup with everything it stored.

    Storage failures are counted in the response rather than aborting the
    delete; the row goes either way.
    """
    result = await backup_service.delete_backup(backup_id, current_user["user_id"])
    return BackupDeleteResponse(**result.to_dict())


@router.get("/{backup_id}/download", response_model=DownloadResponse)
async def download_archive(
    backup_id: str,
    current_user: CurrentUser,
    gateway: StorageIntakeGateway = Depends(get_intake_gateway),
):
    download = await gateway.resolve_download_url(backup_id, current_user["user_id"])
    return DownloadResponse(
        download_url=download.download_url,
        file_name=download.file_name,
        expires_in_seconds=download.expires_in_seconds,
    )


@router.post("/{backup_id}/share-link", response_model=ShareLinkResponse)
async def create_share_link(
    backup_id: str,
    current_user: CurrentUser,
    backup_service: BackupService = Depends(get_backup_service),
):
    link = await backup_service.create_share_link(backup_id, current_user["user_id"])
    return ShareLinkResponse(share_url=link.share_url, expires_at=link.expires_at)
