"""
Scheduled maintenance processors.

    guest-retention-cleanup     daily   delete expired guest backups and
                                        partials of failed jobs
    archive-reminder-dispatch   hourly  deliver parked reminder emails

Both take an optional ``limit`` and are safe to run concurrently with
user traffic: every deletion and delivery re-checks its own precondition.
"""

from typing import Any, Optional

from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.enums import JobEventName
from socialvault.worker.processors.base_processor import BaseProcessor, JobAttempt

logger = get_logger(__name__)


def event_limit(data: dict[str, Any]) -> Optional[int]:
    value = data.get("limit")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value) if value > 0 else None


class GuestRetentionCleanupProcessor(BaseProcessor):
    event_name = JobEventName.GUEST_RETENTION_CLEANUP.value

    async def process(self, data: dict[str, Any], attempt: JobAttempt) -> dict[str, int]:
        limit = event_limit(data)
        deleted = await self.context.retention.sweep_expired_guest_backups(limit=limit)
        await self.checkpoint()
        partials = await self.context.retention.discard_abandoned_partials(limit=limit or 100)
        await self.checkpoint()
        return {"deleted": deleted, "partials_discarded": partials}


class ReminderDispatchProcessor(BaseProcessor):
    event_name = JobEventName.ARCHIVE_REMINDER_DISPATCH.value

    async def process(self, data: dict[str, Any], attempt: JobAttempt) -> dict[str, int]:
        summary = await self.context.notifications.dispatch_pending_reminders(limit=event_limit(data))
        await self.checkpoint()
        return summary
