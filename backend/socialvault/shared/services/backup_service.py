"""
Backup Service

Owner-facing reads and deletes of backups, plus share links and guest claims.

Every read re-applies the retention rule: an expired guest backup is
deleted on sight and reported as missing, so a stale link or tab never
shows data past its expiry even if the daily sweep has not run yet.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.core.exceptions import (
    AuthorizationError,
    BackupNotFoundError,
    NotFoundError,
    SocialVaultException,
)
from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.backup import Backup
from socialvault.shared.repositories.backup_repository import BackupRepository
from socialvault.shared.repositories.base import RecordId
from socialvault.shared.services.retention_service import BackupDeleteResult, RetentionService
from socialvault.shared.utils.retention import epoch_ms, is_guest_backup_expired
from socialvault.shared.utils.security import SecurityUtils, build_share_url

logger = get_logger(__name__)


@dataclass
class ShareLink:
    share_url: str
    expires_at: datetime


@dataclass
class ClaimResult:
    moved: bool
    moved_backups: int = 0


class BackupService:
    """
    Service for backup reads, deletes and sharing.

    Handles:
    - Visible listing (expired and in-flight backups removed)
    - Owner-scoped get and delete
    - Signed share links and the public shared read
    - Claiming guest backups after sign-in
    """

    def __init__(
        self,
        backup_repo: BackupRepository,
        retention: RetentionService,
        settings: Optional[Settings] = None,
    ) -> None:
        self.backup_repo = backup_repo
        self.retention = retention
        self.settings = settings or default_settings

    async def list_backups(self, user_id: RecordId, now_ms: Optional[int] = None) -> List[Backup]:
        return await self.retention.list_visible_backups(user_id, now_ms=now_ms)

    async def get_backup(
        self,
        backup_id: RecordId,
        user_id: RecordId,
        now_ms: Optional[int] = None,
    ) -> Backup:
        """
        Get a backup owned by the user.

        Raises:
            BackupNotFoundError: Missing, or expired (and now deleted)
            AuthorizationError: Owned by someone else
        """
        backup = await self.backup_repo.get(backup_id)
        if not backup:
            raise BackupNotFoundError(str(backup_id))
        if str(backup.user_id) != str(user_id):
            raise AuthorizationError()
        return await self._unexpired(backup, now_ms)

    async def delete_backup(self, backup_id: RecordId, user_id: RecordId) -> BackupDeleteResult:
        """
        Delete a backup and its stored objects.

        Raises:
            BackupNotFoundError: Nothing to delete
            AuthorizationError: Owned by someone else
        """
        result = await self.retention.delete_backup_and_storage(backup_id, expected_user_id=user_id)
        if not result.backup_deleted:
            raise BackupNotFoundError(str(backup_id))
        return result

    # ═══════════════════════════════════════════════════════════════════════════
    # SHARING
    # ═══════════════════════════════════════════════════════════════════════════

    async def create_share_link(
        self,
        backup_id: RecordId,
        user_id: RecordId,
        now: Optional[datetime] = None,
    ) -> ShareLink:
        """Signed public URL for a backup the user owns."""
        backup = await self.get_backup(backup_id, user_id)
        try:
            share_url, expires_at = build_share_url(
                str(backup.id),
                self.settings.APP_BASE_URL,
                self.settings.SHARE_LINK_SECRET,
                ttl_days=self.settings.SHARE_LINK_TTL_DAYS,
                now=now,
            )
        except ValueError as e:
            logger.error("Share link configuration invalid", error=str(e))
            raise SocialVaultException("Failed to create share link") from e

        logger.info("Share link created", backup_id=str(backup.id), user_id=str(user_id))
        return ShareLink(share_url=share_url, expires_at=expires_at)

    async def get_shared_backup(self, token: str, now_ms: Optional[int] = None) -> Backup:
        """
        Resolve a share token to its backup.

        Raises:
            AuthorizationError: Token invalid, expired or of the wrong scope
            BackupNotFoundError: Backup gone or expired
        """
        grant = SecurityUtils.verify_share_token(token, self.settings.SHARE_LINK_SECRET)
        if grant is None:
            raise AuthorizationError("Invalid or expired share link")

        backup = await self.backup_repo.get(grant.backup_id)
        if not backup:
            raise BackupNotFoundError(grant.backup_id)
        return await self._unexpired(backup, now_ms)

    # ═══════════════════════════════════════════════════════════════════════════
    # CLAIM
    # ═══════════════════════════════════════════════════════════════════════════

    async def claim_guest_backups(
        self,
        user_id: RecordId,
        guest_token: str,
        caller_is_guest: bool = False,
    ) -> ClaimResult:
        """
        Move the backups of a guest session to the signed-in caller.

        ``guest_token`` is the caller JWT the browser held while anonymous.
        Claiming your own session is a no-op.

        Raises:
            AuthorizationError: Caller is a guest, or the token is not a valid guest session
            ActiveJobConflictError: The guest still has a job in flight
        """
        if caller_is_guest:
            raise AuthorizationError("Sign in to keep guest backups")

        try:
            claims = SecurityUtils.decode_access_token(guest_token, self.settings.SECRET_KEY)
        except ValueError as e:
            raise AuthorizationError("Invalid guest session") from e

        guest_user_id = claims.get("user_id") or claims.get("sub")
        if claims.get("is_guest") is not True or not guest_user_id:
            raise AuthorizationError("Invalid guest session")
        if str(guest_user_id) == str(user_id):
            return ClaimResult(moved=False)

        moved = await self.retention.claim_guest_backups(guest_user_id, user_id)
        return ClaimResult(moved=True, moved_backups=moved)

    async def _unexpired(self, backup: Backup, now_ms: Optional[int]) -> Backup:
        now_ms = epoch_ms() if now_ms is None else now_ms
        if is_guest_backup_expired(backup.data, now_ms):
            await self.retention.expire_backup(backup)
            # Stored objects are already gone; the 404 below must not roll the row back
            await self.backup_repo.session.commit()
            raise NotFoundError("Backup", str(backup.id), details={"reason": "expired"})
        return backup
