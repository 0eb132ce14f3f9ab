"""
Shared Backup Handler

GET /shared/{token} is public: the signed token is the only credential.
"""

from fastapi import APIRouter, Depends

from socialvault.api.dependencies.services import get_backup_service
from socialvault.shared.schemas.backup import BackupEnvelope, BackupResponse
from socialvault.shared.services.backup_service import BackupService
from socialvault.shared.utils.retention import epoch_ms


router = APIRouter()


@router.get("/{token}", response_model=BackupEnvelope)
async def get_shared_backup(
    token: str,
    backup_service: BackupService = Depends(get_backup_service),
):
    now_ms = epoch_ms()
    backup = await backup_service.get_shared_backup(token, now_ms=now_ms)
    return BackupEnvelope(backup=BackupResponse.from_backup(backup, now_ms))
