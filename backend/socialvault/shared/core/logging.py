"""
Logging Configuration

Structured logging for the API and the worker, built on structlog.

Log Output:
===========
Development:
    2026-10-19T10:30:00 [info     ] Backup job completed   component=worker job_id=550e8400-e29b-...

Production (JSON):
    {"timestamp": "2026-10-19T10:30:00", "level": "info", "component": "worker",
     "event": "Backup job completed", "job_id": "550e8400-..."}

Signed URLs and share tokens are bearer credentials, so they are masked
before rendering; email addresses keep their first character and domain.

Usage:
======
    from socialvault.shared.core.logging import get_logger, log_context

    logger = get_logger(__name__)
    logger.info("Backup job created", job_id=job_id, job_type=job_type)

    # Bind values to every log line of the current task (request / queue message)
    log_context(event_name=name, job_id=job_id, attempt=attempt)
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from socialvault.config.settings import settings

MASKED_KEYS = frozenset({
    "token",
    "share_url",
    "reminder_share_url",
    "upload_url",
    "download_url",
})
EMAIL_KEYS = frozenset({"email", "reminder_email", "to"})


def mask_email(value: Any) -> Any:
    """``fan@example.com`` → ``f***@example.com``; non-addresses pass through."""
    if not isinstance(value, str) or "@" not in value:
        return value
    local, _, domain = value.partition("@")
    return f"{local[:1]}***@{domain}"


def mask_credentials(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key in MASKED_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    for key in EMAIL_KEYS.intersection(event_dict):
        event_dict[key] = mask_email(event_dict[key])
    return event_dict


def setup_logging(component: str = "api") -> None:
    """
    Configure structured logging for one process.

    Args:
        component: ``api`` or ``worker``; stamped on every line so both
            processes can share one log stream

    Called with the default component when this module is imported; the
    worker calls it again with ``component="worker"``.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper()),
    )

    # boto3 logs every request at INFO
    for noisy in ("botocore", "boto3", "urllib3", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        mask_credentials,
    ]

    if settings.is_development:
        renderer: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        renderer = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(component=component)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger (configuration is resolved on first use)."""
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> None:
    """
    Add context variables to all subsequent log calls of this task.

    Example:
        log_context(event_name="snapshot-scrape.requested", job_id=job_id)
        logger.info("Processing started")  # Includes event_name, job_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_log_context() -> None:
    """
    Clear per-task context variables, keeping the process component.

    Call this at the end of each request or queue message so context
    does not leak into the next one.
    """
    component = structlog.contextvars.get_contextvars().get("component")
    structlog.contextvars.clear_contextvars()
    if component:
        structlog.contextvars.bind_contextvars(component=component)


# Initialize logging on module import
setup_logging()

# Default logger instance for convenient import
logger = get_logger("socialvault")
