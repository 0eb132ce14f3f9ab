"""
Pydantic Schemas

Request and response models for the API.

Schema Categories:
==================
- common: Base schemas, success/error envelopes, health
- job: Job status, listing, reminders
- upload: Archive presign/complete/discard, downloads
- backup: Backup views, deletes, share links
- scrape: Snapshot scrape requests

Usage:
======
    from socialvault.shared.schemas.job import JobResponse, JobEnvelope
    from socialvault.shared.schemas.common import ErrorResponse
"""

from socialvault.shared.schemas.common import (
    BaseSchema,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    SuccessResponse,
)
from socialvault.shared.schemas.job import (
    ActiveJobResponse,
    JobEnvelope,
    JobListResponse,
    JobResponse,
    ReminderRequest,
    ReminderResponse,
)
from socialvault.shared.schemas.backup import (
    BackupDeleteResponse,
    BackupEnvelope,
    BackupListResponse,
    BackupResponse,
    ShareLinkResponse,
)

__all__ = [
    # Common
    "BaseSchema",
    "ErrorResponse",
    "HealthResponse",
    "MessageResponse",
    "SuccessResponse",
    # Job
    "ActiveJobResponse",
    "JobEnvelope",
    "JobListResponse",
    "JobResponse",
    "ReminderRequest",
    "ReminderResponse",
    # Backup
    "BackupDeleteResponse",
    "BackupEnvelope",
    "BackupListResponse",
    "BackupResponse",
    "ShareLinkResponse",
]
