"""
API Dependencies

FastAPI dependencies for injection into route handlers.

Dependencies:
=============
- Database: get_db(), DbSession
- Authentication: get_current_user(), CurrentUser
- Adapters and services: socialvault.api.dependencies.services

Usage:
======
    from socialvault.api.dependencies import CurrentUser

    @router.get("/backups")
    async def list_backups(
        current_user: CurrentUser,
        service: BackupService = Depends(get_backup_service),
    ):
        ...
"""

from socialvault.api.dependencies.database import (
    get_db,
    DbSession,
)
from socialvault.api.dependencies.auth import (
    get_current_user,
    get_current_user_token,
    CurrentUser,
)

__all__ = [
    # Database
    "get_db",
    "DbSession",
    # Authentication
    "get_current_user",
    "get_current_user_token",
    "CurrentUser",
]
