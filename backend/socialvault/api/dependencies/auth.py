"""
Authentication Dependencies

Callers authenticate with a Bearer JWT signed with ``SECRET_KEY``. The
token carries ``user_id`` and, for anonymous sessions, ``is_guest: true``.
Guest callers get backups that expire after the guest retention window.

Dependency Hierarchy:
=====================
    get_current_user_token()  ← Extract and validate JWT from header
           │
           ▼
    get_current_user()        ← {"user_id", "email", "is_guest"}

Usage:
======
    from socialvault.api.dependencies import CurrentUser

    @router.get("/jobs/active")
    async def active_job(current_user: CurrentUser):
        user_id = current_user["user_id"]
"""

from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from socialvault.config.settings import settings
from socialvault.shared.core.exceptions import AuthenticationError
from socialvault.shared.utils.security import SecurityUtils


# auto_error=False so a missing header produces our own 401 envelope
security = HTTPBearer(auto_error=False)


async def get_current_user_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)] = None,
) -> dict:
    """
    Extract and validate the JWT from the Authorization header.

    Raises:
        AuthenticationError: If token is missing or invalid
    """
    if not credentials:
        raise AuthenticationError("Authorization header required")

    try:
        return SecurityUtils.decode_access_token(credentials.credentials, settings.SECRET_KEY)
    except ValueError as e:
        raise AuthenticationError(str(e)) from e


async def get_current_user(
    token: Annotated[dict, Depends(get_current_user_token)],
) -> dict:
    """
    Get the current caller from the decoded token.

    Raises:
        AuthenticationError: If user_id not in token
    """
    user_id = token.get("user_id") or token.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    return {
        "user_id": str(user_id),
        "email": token.get("email"),
        "is_guest": token.get("is_guest") is True,
    }


# ═══════════════════════════════════════════════════════════════════════════════
# TYPE ALIASES
# ═══════════════════════════════════════════════════════════════════════════════

CurrentUser = Annotated[dict, Depends(get_current_user)]
