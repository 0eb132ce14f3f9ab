import pytest

from socialvault.shared.core.exceptions import (
    ConflictError,
    JobNotFoundError,
    UpstreamServiceError,
    ValidationError,
)
from socialvault.shared.models.enums import JobStatus
from socialvault.shared.services.notification_service import REMINDER_ADMIN_MARKER, normalize_email
from tests.conftest import OTHER_USER_ID, USER_ID

ADMIN = "admin@socialvault.test"


@pytest.fixture
def completed_job(make_job, make_backup):
    async def _completed_job():
        backup = await make_backup()
        return await make_job(status=JobStatus.COMPLETED, result_backup_id=backup.id)

    return _completed_job


def test_normalize_email():
    assert normalize_email("  Fan@Example.COM ") == "fan@example.com"
    assert normalize_email("not-an-email") is None
    assert normalize_email(None) is None


async def test_reminder_on_queued_job_is_parked(notification_service, make_job, email):
    job = await make_job()

    registration = await notification_service.register_reminder(str(job.id), USER_ID, "Fan@Example.com")

    assert registration.sent is False
    assert registration.message == "Reminder saved. We will email you when the backup is ready."
    assert job.payload["reminder_email"] == "fan@example.com"
    assert job.payload["reminder_delivery_status"] == "requested"
    assert email.sent_to("fan@example.com") == []


async def test_admin_notified_at_most_once(notification_service, make_job, email):
    job = await make_job()

    for address in ("one@example.com", "two@example.com", "one@example.com"):
        await notification_service.register_reminder(str(job.id), USER_ID, address)

    assert len(email.sent_to(ADMIN)) == 1
    assert job.payload[REMINDER_ADMIN_MARKER]
    assert job.payload["reminder_email"] == "one@example.com"


async def test_failed_admin_send_is_retried_on_next_registration(notification_service, make_job, email):
    job = await make_job()
    email.fail = True

    await notification_service.register_reminder(str(job.id), USER_ID, "fan@example.com")
    assert REMINDER_ADMIN_MARKER not in job.payload

    email.fail = False
    await notification_service.register_reminder(str(job.id), USER_ID, "fan@example.com")

    assert len(email.sent_to(ADMIN)) == 1
    assert job.payload[REMINDER_ADMIN_MARKER]


async def test_completed_job_delivers_immediately(notification_service, completed_job, email):
    job = await completed_job()

    registration = await notification_service.register_reminder(str(job.id), USER_ID, "fan@example.com")

    assert registration.sent is True
    assert registration.message == "Reminder email sent."
    assert job.payload["reminder_delivery_status"] == "sent"
    assert job.payload["reminder_share_url"].startswith("https://socialvault.test/shared/")
    assert len(email.sent_to("fan@example.com")) == 1

    again = await notification_service.register_reminder(str(job.id), USER_ID, "fan@example.com")

    assert again.message == "Reminder email already sent."
    assert len(email.sent_to("fan@example.com")) == 1


async def test_parked_reminder_delivered_when_job_completes(notification_service, job_service, make_job, make_backup, email):
    job = await make_job(status=JobStatus.PROCESSING)
    await notification_service.register_reminder(str(job.id), USER_ID, "fan@example.com")
    backup = await make_backup()

    await job_service.mark_completed(job.id, backup.id)
    delivered = await notification_service.deliver_reminder_if_ready(str(job.id))

    assert delivered is True
    assert job.payload["reminder_delivery_status"] == "sent"
    assert job.payload["reminder_sent_at"]
    assert len(email.sent_to("fan@example.com")) == 1


async def test_immediate_delivery_failure_is_recorded(notification_service, completed_job, email, session):
    job = await completed_job()
    email.fail = True

    with pytest.raises(UpstreamServiceError):
        await notification_service.register_reminder(str(job.id), USER_ID, "fan@example.com")

    assert job.payload["reminder_delivery_status"] == "failed"
    assert job.payload["reminder_attempts"] == 1
    assert job.payload["reminder_error"]
    assert session.commits >= 1


async def test_dispatch_retries_failed_reminders_until_max_attempts(notification_service, job_service, completed_job, email, test_settings):
    retried = await completed_job()
    given_up = await completed_job()
    email.fail = True
    for job in (retried, given_up):
        with pytest.raises(UpstreamServiceError):
            await notification_service.register_reminder(str(job.id), USER_ID, "fan@example.com")
    await job_service.merge_payload(given_up.id, {"reminder_attempts": test_settings.REMINDER_MAX_ATTEMPTS})

    email.fail = False
    summary = await notification_service.dispatch_pending_reminders()

    assert summary == {"scanned": 1, "sent": 1, "failed": 0, "skipped": 0}
    assert retried.payload["reminder_delivery_status"] == "sent"
    assert given_up.payload["reminder_delivery_status"] == "failed"


async def test_dispatch_counts_failures(notification_service, make_job, make_backup, job_service, email):
    job = await make_job(status=JobStatus.PROCESSING)
    await notification_service.register_reminder(str(job.id), USER_ID, "fan@example.com")
    await job_service.mark_completed(job.id, (await make_backup()).id)
    email.fail = True

    summary = await notification_service.dispatch_pending_reminders()

    assert summary["failed"] == 1
    assert job.payload["reminder_attempts"] == 1


async def test_register_rejects_bad_input(notification_service, make_job):
    job = await make_job()
    failed = await make_job(status=JobStatus.FAILED)

    with pytest.raises(ValidationError):
        await notification_service.register_reminder(str(job.id), USER_ID, "nope")
    with pytest.raises(JobNotFoundError):
        await notification_service.register_reminder(str(job.id), OTHER_USER_ID, "fan@example.com")
    with pytest.raises(ConflictError):
        await notification_service.register_reminder(str(failed.id), USER_ID, "fan@example.com")
