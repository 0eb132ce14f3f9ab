"""
Storage Usage Service

Per-account storage accounting used by the upload and scrape quotas.
"""

from socialvault.shared.repositories.base import RecordId
from socialvault.shared.repositories.media_file_repository import MediaFileRepository


class StorageUsageService:
    """Sums stored object sizes for a user."""

    def __init__(self, media_repo: MediaFileRepository) -> None:
        self.media_repo = media_repo

    async def user_total_bytes(self, user_id: RecordId) -> int:
        return await self.media_repo.total_bytes_for_user(user_id)

    async def projected_total_bytes(self, user_id: RecordId, additional_bytes: int) -> tuple[int, int]:
        """
        Current usage and usage after adding ``additional_bytes``.

        Returns:
            Tuple of (current_bytes, projected_bytes)
        """
        current = await self.user_total_bytes(user_id)
        return current, current + max(0, int(additional_bytes or 0))
