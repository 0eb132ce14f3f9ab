"""
Job Payload Helpers

The job payload is a flat, string-keyed map of scalar values that every
processing stage writes into without clobbering the others.

    existing  {"username": "jack", "scrape_phase": "queued", "api_cost_usd": 0}
    patch     {"scrape_phase": "scraping", "partial_backup_id": None}
    merged    {"username": "jack", "scrape_phase": "scraping", "api_cost_usd": 0}

Rules:
======
- Keys in the patch overwrite; a ``None`` value removes the key.
- Keys absent from the patch are preserved exactly.
- Values must be str, int, float or bool. Nested structures are flattened
  by the caller (``budget_*``, ``target_*``, ``metric_*`` prefixes).

Code outside this module reads the payload through the accessors below
rather than indexing it with string literals.
"""

import math
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from socialvault.shared.core.exceptions import ValidationError
from socialvault.shared.models.base import utc_now
from socialvault.shared.models.enums import LifecycleState, ReminderDeliveryStatus


PayloadValue = Union[str, int, float, bool, None]
JobPayload = dict[str, Any]

# Payload keys that may point at a backup row while the job is in flight
BACKUP_REFERENCE_KEYS = ("partial_backup_id", "created_backup_id", "result_backup_id")


def merge_job_payload(
    existing: Optional[Mapping[str, Any]],
    patch: Mapping[str, PayloadValue],
) -> JobPayload:
    """
    Apply a patch to a payload and return the merged copy.

    Args:
        existing: Current payload (None is treated as empty)
        patch: Keys to set, or to remove when the value is None

    Returns:
        New dict; the inputs are not modified

    Raises:
        ValidationError: If a key is not a string or a value is not a scalar
    """
    merged: JobPayload = dict(existing or {})

    for key, value in patch.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(
                "Job payload keys must be non-empty strings",
                details={"key": repr(key)},
            )

        if value is None:
            merged.pop(key, None)
            continue

        if not isinstance(value, (str, int, float, bool)):
            raise ValidationError(
                f"Job payload value for '{key}' must be a scalar",
                details={"key": key, "type": type(value).__name__},
            )

        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(
                f"Job payload value for '{key}' must be finite",
                details={"key": key},
            )

        merged[key] = value

    return merged


def now_iso(now: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp stored in payload markers."""
    return (now or utc_now()).isoformat()


# ═══════════════════════════════════════════════════════════════════════════════
# ACCESSORS
# ═══════════════════════════════════════════════════════════════════════════════


def payload_str(payload: Optional[Mapping[str, Any]], key: str) -> Optional[str]:
    """Return a non-empty stripped string value, or None."""
    value = (payload or {}).get(key)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def payload_float(payload: Optional[Mapping[str, Any]], key: str, default: float = 0.0) -> float:
    """Return a finite numeric value as float, or the default."""
    value = (payload or {}).get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return default
        return parsed if math.isfinite(parsed) else default
    return default


def payload_int(payload: Optional[Mapping[str, Any]], key: str, default: int = 0) -> int:
    return int(payload_float(payload, key, float(default)))


def payload_flag(payload: Optional[Mapping[str, Any]], key: str) -> bool:
    return (payload or {}).get(key) is True


def get_reminder_state(payload: Optional[Mapping[str, Any]]) -> Optional[ReminderDeliveryStatus]:
    """
    Current reminder delivery state.

    Returns:
        The state, or None when no reminder was ever requested
    """
    raw = payload_str(payload, "reminder_delivery_status")
    if raw is None:
        return None
    try:
        return ReminderDeliveryStatus(raw)
    except ValueError:
        return None


def get_lifecycle_state(payload: Optional[Mapping[str, Any]]) -> Optional[LifecycleState]:
    raw = payload_str(payload, "lifecycle_state")
    if raw is None:
        return None
    try:
        return LifecycleState(raw)
    except ValueError:
        return None


def referenced_backup_ids(payload: Optional[Mapping[str, Any]]) -> set[str]:
    """Backup ids a job payload points at (partial, created or result)."""
    ids = set()
    for key in BACKUP_REFERENCE_KEYS:
        value = payload_str(payload, key)
        if value:
            ids.add(value)
    return ids
