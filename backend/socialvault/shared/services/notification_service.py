"""
Notification Service

At-most-once notifications on top of retried job execution.

IDEMPOTENCY MARKERS:
====================
Each logical notification owns a marker key in the job payload
(e.g. ``reminder_admin_notified_at``). notify_once() sends only when the
marker is absent and sets it after a successful send. A failed send
leaves the marker unset so the next invocation retries, and never fails
the operation that triggered it.

REMINDER STATE MACHINE:
=======================
    (none) ──register──► requested ──deliver ok──► sent
                            │
                            └──deliver error──► failed ──(cron, attempts < max)──► sent | failed

Payload keys: reminder_email, reminder_requested_at,
reminder_delivery_status, reminder_sent_at, reminder_share_url,
reminder_error, reminder_attempts.

A reminder is delivered right away when the job is already completed
with a result backup; otherwise it is parked as ``requested`` and the
hourly ``archive-reminder-dispatch`` cycle (or the processor that
completes the job) delivers it.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.adapters.email_adapter import SESEmailAdapter
from socialvault.shared.core.exceptions import ConflictError, UpstreamServiceError, ValidationError
from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.enums import JobStatus, ReminderDeliveryStatus
from socialvault.shared.services.email_templates import admin_event_email, backup_ready_email
from socialvault.shared.services.job_service import JobService
from socialvault.shared.utils.job_payload import get_reminder_state, now_iso, payload_int, payload_str
from socialvault.shared.utils.security import build_share_url

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REMINDER_ADMIN_MARKER = "reminder_admin_notified_at"


def normalize_email(value: Optional[str]) -> Optional[str]:
    """Lower-cased address, or None when it does not look like an email."""
    email = (value or "").strip().lower() if isinstance(value, str) else ""
    return email if EMAIL_PATTERN.match(email) else None


@dataclass
class ReminderRegistration:
    sent: bool
    message: str
    job: BackupJob


@dataclass
class ReminderDispatchSummary:
    scanned: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"scanned": self.scanned, "sent": self.sent, "failed": self.failed, "skipped": self.skipped}


class NotificationService:
    """
    Service for job notifications.

    Handles:
    - Admin event emails guarded by payload markers
    - Reminder registration and delivery
    - The scheduled reminder dispatch cycle
    """

    def __init__(
        self,
        job_service: JobService,
        email: SESEmailAdapter,
        settings: Optional[Settings] = None,
    ) -> None:
        self.job_service = job_service
        self.email = email
        self.settings = settings or default_settings

    # ═══════════════════════════════════════════════════════════════════════════
    # IDEMPOTENT SEND
    # ═══════════════════════════════════════════════════════════════════════════

    async def notify_once(
        self,
        job_id: str,
        marker_key: str,
        send: Callable[[], Awaitable[object]],
    ) -> bool:
        """
        Run ``send`` unless the job already carries ``marker_key``.

        Returns:
            True if the notification was sent by this call
        """
        job = await self.job_service.get_job(job_id)
        if payload_str(job.payload, marker_key):
            return False

        try:
            await send()
        except Exception as e:
            logger.warning("Notification send failed", job_id=str(job_id), marker=marker_key, error=str(e))
            return False

        await self.job_service.merge_payload(job_id, {marker_key: now_iso()})
        return True

    async def send_admin_event(self, subject: str, title: str, details: list[tuple[str, str]]) -> None:
        """Email the admin address; a no-op when none is configured."""
        recipient = (self.settings.ADMIN_NOTIFICATION_EMAIL or "").strip()
        if not recipient:
            return
        content = admin_event_email(subject, title, details)
        await self.email.send(recipient, content.subject, content.text, content.html)

    # ═══════════════════════════════════════════════════════════════════════════
    # REMINDERS
    # ═══════════════════════════════════════════════════════════════════════════

    async def register_reminder(self, job_id: str, user_id: str, email: str) -> ReminderRegistration:
        """
        Save a "tell me when it's ready" email on a job.

        Raises:
            ValidationError: Email missing or malformed
            JobNotFoundError: Job missing or owned by someone else
            ConflictError: Job already failed
            UpstreamServiceError: Immediate delivery failed
        """
        normalized = normalize_email(email)
        if not normalized:
            raise ValidationError("Valid email is required.")

        job = await self.job_service.get_job_for_user(job_id, user_id)
        if job.status == JobStatus.FAILED.value:
            raise ConflictError("This job is no longer active.")

        if (
            get_reminder_state(job.payload) == ReminderDeliveryStatus.SENT
            and payload_str(job.payload, "reminder_email") == normalized
        ):
            return ReminderRegistration(sent=True, message="Reminder email already sent.", job=job)

        job = await self.job_service.merge_payload(job.id, {
            "reminder_email": normalized,
            "reminder_requested_at": now_iso(),
            "reminder_delivery_status": ReminderDeliveryStatus.REQUESTED.value,
            "reminder_error": None,
            "reminder_attempts": None,
        })

        status = job.status
        await self.notify_once(
            str(job.id),
            REMINDER_ADMIN_MARKER,
            lambda: self.send_admin_event(
                "Backup reminder requested",
                "User requested reminder email",
                [
                    ("Actor ID", str(user_id)),
                    ("Job ID", str(job.id)),
                    ("Reminder email", normalized),
                    ("Job status", status),
                ],
            ),
        )

        job = await self.job_service.get_job(job.id)
        if self.is_ready_to_deliver(job):
            try:
                await self.deliver_reminder(job)
            except UpstreamServiceError:
                # Keep the registration and the failure record for the dispatch cycle
                await self.job_service.commit()
                raise
            job = await self.job_service.get_job(job.id)
            return ReminderRegistration(sent=True, message="Reminder email sent.", job=job)

        return ReminderRegistration(
            sent=False,
            message="Reminder saved. We will email you when the backup is ready.",
            job=job,
        )

    @staticmethod
    def is_ready_to_deliver(job: BackupJob) -> bool:
        return (
            job.status == JobStatus.COMPLETED.value
            and job.result_backup_id is not None
            and normalize_email(payload_str(job.payload, "reminder_email")) is not None
        )

    async def deliver_reminder(self, job: BackupJob, now: Optional[datetime] = None) -> bool:
        """
        Send the "backup ready" email for a job.

        Returns:
            True if sent, False if there was nothing to send (already sent,
            no reminder, or job not ready)

        Raises:
            UpstreamServiceError: Delivery failed; the failure is recorded first
        """
        state = get_reminder_state(job.payload)
        if state is None or state == ReminderDeliveryStatus.SENT:
            return False
        if not self.is_ready_to_deliver(job):
            return False

        email = normalize_email(payload_str(job.payload, "reminder_email"))
        try:
            share_url, expires_at = build_share_url(
                str(job.result_backup_id),
                self.settings.APP_BASE_URL,
                self.settings.SHARE_LINK_SECRET,
                ttl_days=self.settings.SHARE_LINK_TTL_DAYS,
                now=now,
            )
            content = backup_ready_email(share_url, expires_at)
            await self.email.send(email, content.subject, content.text, content.html)
        except Exception as e:
            error = getattr(e, "message", None) or str(e) or "Failed to send reminder email."
            await self.job_service.merge_payload(job.id, {
                "reminder_delivery_status": ReminderDeliveryStatus.FAILED.value,
                "reminder_error": error,
                "reminder_attempts": payload_int(job.payload, "reminder_attempts") + 1,
            })
            logger.error("Reminder delivery failed", job_id=str(job.id), error=error)
            raise UpstreamServiceError("email", "Failed to send reminder email.") from e

        await self.job_service.merge_payload(job.id, {
            "reminder_delivery_status": ReminderDeliveryStatus.SENT.value,
            "reminder_sent_at": now_iso(now),
            "reminder_share_url": share_url,
            "reminder_error": None,
        })
        logger.info("Reminder delivered", job_id=str(job.id), backup_id=str(job.result_backup_id))
        return True

    async def deliver_reminder_if_ready(self, job_id: str) -> bool:
        """
        Deliver a parked reminder after a job completes.

        Failures are logged and recorded on the job, never raised.
        """
        try:
            job = await self.job_service.get_job(job_id)
            return await self.deliver_reminder(job)
        except UpstreamServiceError:
            logger.warning("Reminder left for the dispatch cycle", job_id=str(job_id))
            return False

    async def dispatch_pending_reminders(self, limit: Optional[int] = None) -> dict[str, int]:
        """
        Deliver every pending reminder (scheduled cycle).

        Returns:
            Counts: scanned, sent, failed, skipped
        """
        summary = ReminderDispatchSummary()
        batch_limit = limit or self.settings.REMINDER_DISPATCH_BATCH_LIMIT
        jobs = await self.job_service.list_pending_reminders(batch_limit)

        for job in jobs:
            summary.scanned += 1
            if not self.is_ready_to_deliver(job):
                summary.skipped += 1
                continue
            try:
                if await self.deliver_reminder(job):
                    summary.sent += 1
                else:
                    summary.skipped += 1
            except UpstreamServiceError:
                summary.failed += 1

        logger.info("Reminder dispatch finished", **summary.to_dict())
        return summary.to_dict()
