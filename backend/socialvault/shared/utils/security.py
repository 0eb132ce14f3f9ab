"""
Security Utilities

JWT handling for caller authentication and for backup share links.

JWT Tokens:
===========
Uses PyJWT. Caller tokens are issued by the identity layer in front of
this service and carry ``user_id`` (and ``is_guest`` for guest sessions).
Share tokens are issued here and grant read access to one backup.

Usage:
======
    from socialvault.shared.utils.security import SecurityUtils

    payload = SecurityUtils.decode_access_token(token, settings.SECRET_KEY)

    token, expires_at = SecurityUtils.create_share_token(backup_id, secret, ttl_days=30)
    grant = SecurityUtils.verify_share_token(token, secret)
    if grant:
        print(grant.backup_id)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt


SHARE_TOKEN_SCOPE = "backup_share"


@dataclass(frozen=True)
class ShareGrant:
    """Capability to read one backup until ``expires_at``."""

    backup_id: str
    expires_at: datetime


class SecurityUtils:
    """
    Security utilities.

    Provides:
    - Caller JWT creation (tests, tooling) and validation
    - Share token creation and verification
    """

    # ═══════════════════════════════════════════════════════════════════════════
    # CALLER TOKENS
    # ═══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def create_access_token(
        data: dict,
        secret_key: str,
        expires_delta: Optional[timedelta] = None,
        algorithm: str = "HS256",
    ) -> str:
        """
        Create JWT access token.

        Args:
            data: Payload data to encode (e.g., user_id, is_guest)
            secret_key: Secret key for signing
            expires_delta: Token expiration time (default: 1 day)
            algorithm: JWT algorithm (default: HS256)

        Returns:
            Encoded JWT token string
        """
        now = datetime.now(timezone.utc)
        to_encode = data.copy()
        to_encode.update({
            "exp": now + (expires_delta or timedelta(days=1)),
            "iat": now,
        })
        return jwt.encode(to_encode, secret_key, algorithm=algorithm)

    @staticmethod
    def decode_access_token(
        token: str,
        secret_key: str,
        algorithm: str = "HS256",
    ) -> dict:
        """
        Decode and verify a caller JWT.

        Raises:
            ValueError: If token is expired or invalid
        """
        try:
            return jwt.decode(token, secret_key, algorithms=[algorithm])
        except jwt.ExpiredSignatureError:
            raise ValueError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise ValueError(f"Invalid token: {str(e)}")

    # ═══════════════════════════════════════════════════════════════════════════
    # SHARE TOKENS
    # ═══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def create_share_token(
        backup_id: str,
        secret_key: str,
        ttl_days: int = 30,
        now: Optional[datetime] = None,
    ) -> tuple[str, datetime]:
        """
        Sign a share token for one backup.

        Returns:
            Tuple of (token, expires_at)
        """
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(days=max(1, ttl_days))
        token = jwt.encode(
            {
                "sub": str(backup_id),
                "scope": SHARE_TOKEN_SCOPE,
                "iat": issued_at,
                "exp": expires_at,
            },
            secret_key,
            algorithm="HS256",
        )
        return token, expires_at

    @staticmethod
    def verify_share_token(token: str, secret_key: str) -> Optional[ShareGrant]:
        """
        Verify a share token.

        Returns:
            The grant, or None if the token is invalid, expired or not a share token
        """
        if not token:
            return None
        try:
            claims = jwt.decode(
                token,
                secret_key,
                algorithms=["HS256"],
                options={"require": ["exp", "sub"]},
            )
        except jwt.InvalidTokenError:
            return None

        if claims.get("scope") != SHARE_TOKEN_SCOPE or not claims.get("sub"):
            return None

        return ShareGrant(
            backup_id=str(claims["sub"]),
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
        )


def build_share_url(
    backup_id: str,
    app_base_url: str,
    secret_key: str,
    ttl_days: int = 30,
    now: Optional[datetime] = None,
) -> tuple[str, datetime]:
    """
    Public share URL for a backup: ``{app_base_url}/shared/{token}``.

    Returns:
        Tuple of (url, expires_at)

    Raises:
        ValueError: If the base URL is not http(s)
    """
    base = (app_base_url or "").strip().rstrip("/")
    if not base.lower().startswith(("http://", "https://")):
        raise ValueError("A valid app base URL is required to create share links.")
    token, expires_at = SecurityUtils.create_share_token(backup_id, secret_key, ttl_days=ttl_days, now=now)
    return f"{base}/shared/{token}", expires_at
