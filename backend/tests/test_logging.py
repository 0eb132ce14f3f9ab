import structlog

from socialvault.shared.core.logging import clear_log_context, log_context, mask_credentials, mask_email


def test_signed_urls_and_tokens_are_masked():
    event = mask_credentials(None, "info", {
        "event": "Share link created",
        "share_url": "https://socialvault.test/shared/abc.def",
        "token": "abc.def",
        "download_url": None,
        "backup_id": "b-1",
    })

    assert event["share_url"] == "***"
    assert event["token"] == "***"
    assert event["download_url"] is None
    assert event["backup_id"] == "b-1"


def test_email_keeps_first_letter_and_domain():
    assert mask_email("fan@example.com") == "f***@example.com"
    assert mask_email("not an address") == "not an address"
    assert mask_credentials(None, "info", {"reminder_email": "x@y.z"})["reminder_email"] == "x***@y.z"


def test_clearing_context_keeps_component():
    structlog.contextvars.bind_contextvars(component="worker")
    log_context(job_id="j-1")

    clear_log_context()

    assert structlog.contextvars.get_contextvars() == {"component": "worker"}
    structlog.contextvars.clear_contextvars()
