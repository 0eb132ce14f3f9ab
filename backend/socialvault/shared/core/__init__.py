"""
Core Module

Provides core functionality shared across the application:
- Structured logging
- Custom exceptions

Usage:
======
    from socialvault.shared.core.logging import logger
    from socialvault.shared.core.exceptions import NotFoundError

    logger.info("Starting sweep", limit=limit)
"""

from socialvault.shared.core.logging import (
    logger,
    get_logger,
    log_context,
    clear_log_context,
)
from socialvault.shared.core.exceptions import (
    SocialVaultException,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    JobNotFoundError,
    BackupNotFoundError,
    ValidationError,
    InvalidPathError,
    ConflictError,
    ActiveJobConflictError,
    PayloadTooLargeError,
    RateLimitError,
    BudgetExceededError,
    UpstreamServiceError,
)

__all__ = [
    # Logging
    "logger",
    "get_logger",
    "log_context",
    "clear_log_context",
    # Exceptions
    "SocialVaultException",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "JobNotFoundError",
    "BackupNotFoundError",
    "ValidationError",
    "InvalidPathError",
    "ConflictError",
    "ActiveJobConflictError",
    "PayloadTooLargeError",
    "RateLimitError",
    "BudgetExceededError",
    "UpstreamServiceError",
]
