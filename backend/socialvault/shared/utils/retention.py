"""
Backup retention rules.

Pure functions over a backup's ``data`` and a caller-supplied clock
reading in epoch milliseconds. Nothing here reads the clock.

Guest retention metadata:

    {"retention": {"mode": "guest_30d",
                   "expires_at": "2025-02-14T10:00:00+00:00",
                   "expires_at_ms": 1739527200000}}

``expires_at_ms`` wins when both fields are present; rows written before
it existed only carry ``expires_at``.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from socialvault.shared.models.enums import RetentionMode


DAY_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class GuestRetention:
    mode: str
    expires_at_ms: int


def _parse_iso_ms(value: str) -> Optional[int]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def get_guest_retention(data: Any) -> Optional[GuestRetention]:
    """Return guest retention metadata, or None for owned backups."""
    if not isinstance(data, Mapping):
        return None
    retention = data.get("retention")
    if not isinstance(retention, Mapping):
        return None
    if retention.get("mode") != RetentionMode.GUEST_30D.value:
        return None

    expires_at_ms = retention.get("expires_at_ms")
    if isinstance(expires_at_ms, (int, float)) and not isinstance(expires_at_ms, bool):
        if math.isfinite(expires_at_ms):
            return GuestRetention(mode=RetentionMode.GUEST_30D.value, expires_at_ms=int(expires_at_ms))

    expires_at = retention.get("expires_at")
    if isinstance(expires_at, str):
        parsed = _parse_iso_ms(expires_at)
        if parsed is not None:
            return GuestRetention(mode=RetentionMode.GUEST_30D.value, expires_at_ms=parsed)

    return None


def is_guest_backup_expired(data: Any, now_ms: int) -> bool:
    """True once ``now_ms`` reaches the expiry instant of a guest backup."""
    retention = get_guest_retention(data)
    if retention is None:
        return False
    return retention.expires_at_ms <= now_ms


def guest_backup_days_left(data: Any, now_ms: int) -> Optional[int]:
    """Whole days (rounded up) before a guest backup expires; None if owned."""
    retention = get_guest_retention(data)
    if retention is None:
        return None
    remaining = retention.expires_at_ms - now_ms
    if remaining <= 0:
        return 0
    return math.ceil(remaining / DAY_MS)


def build_guest_retention(now_ms: int, days: int) -> dict[str, Any]:
    """Retention block stored on a new guest backup."""
    expires_at_ms = now_ms + days * DAY_MS
    expires_at = datetime.fromtimestamp(expires_at_ms / 1000, tz=timezone.utc)
    return {
        "mode": RetentionMode.GUEST_30D.value,
        "expires_at": expires_at.isoformat(),
        "expires_at_ms": expires_at_ms,
    }


def clear_guest_retention(data: Any) -> dict[str, Any]:
    """Copy of ``data`` without guest retention (backup claimed by an account)."""
    if not isinstance(data, Mapping):
        return {}
    cleared = dict(data)
    retention = cleared.get("retention")
    if isinstance(retention, Mapping) and retention.get("mode") == RetentionMode.GUEST_30D.value:
        cleared.pop("retention")
    return cleared


def epoch_ms(now: Optional[datetime] = None) -> int:
    """Epoch milliseconds for a datetime (or the current time)."""
    return int((now or datetime.now(timezone.utc)).timestamp() * 1000)
