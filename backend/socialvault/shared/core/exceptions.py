"""
Custom Exceptions

Application-specific exceptions with HTTP status codes and error codes.

Exception Hierarchy:
====================
    SocialVaultException (base)
       │
       ├── AuthenticationError (401)    ← No actor / invalid token
       ├── AuthorizationError (403)     ← Actor is not the owner
       ├── NotFoundError (404)          ← Job, backup or object absent
       │      ├── JobNotFoundError
       │      └── BackupNotFoundError
       ├── ValidationError (400)        ← Malformed input, disallowed type
       │      └── InvalidPathError      ← Staged path outside the caller's namespace
       ├── ConflictError (409)          ← Active job in progress, job no longer active
       │      └── ActiveJobConflictError
       ├── PayloadTooLargeError (413)   ← Archive size or storage quota exceeded
       ├── RateLimitError (429)
       │      └── BudgetExceededError   ← Scrape budget cannot cover the run
       └── UpstreamServiceError (500)   ← Object storage / email / scrape provider failed

Usage:
======
    from socialvault.shared.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Backup", backup_id)
    raise ValidationError("Uploaded file is empty.")

Exception Handling:
===================
    Exceptions are caught by the error handler and converted to the
    uniform response envelope:
    {
        "success": false,
        "error": "Backup with id 'abc-123' not found",
        "code": "NOT_FOUND",
        "details": {}
    }
"""

from typing import Any, Optional


class SocialVaultException(Exception):
    """
    Base exception for all SocialVault application errors.

    Attributes:
        message: Client-safe error message
        status_code: HTTP status code (default 500)
        error_code: Machine-readable error code
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to the API response envelope.

        Returns:
            Dictionary for the JSON response body
        """
        body: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.error_code,
        }
        if self.details:
            body["details"] = self.details
        return body


# ═══════════════════════════════════════════════════════════════════════════════
# AUTHENTICATION & AUTHORIZATION ERRORS (401, 403)
# ═══════════════════════════════════════════════════════════════════════════════


class AuthenticationError(SocialVaultException):
    """
    Authentication failed error (401 Unauthorized).

    Raised when no actor can be resolved from the request.
    """

    def __init__(
        self,
        message: str = "Unauthorized",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTHENTICATION_ERROR",
            details=details,
        )


class AuthorizationError(SocialVaultException):
    """
    Authorization failed error (403 Forbidden).

    Raised when the actor is authenticated but does not own the resource.
    """

    def __init__(
        self,
        message: str = "Forbidden",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=403,
            error_code="AUTHORIZATION_ERROR",
            details=details,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# NOT FOUND ERRORS (404)
# ═══════════════════════════════════════════════════════════════════════════════


class NotFoundError(SocialVaultException):
    """
    Resource not found error (404 Not Found).

    Example:
        raise NotFoundError("Backup", backup_id)
        # Message: "Backup with id 'abc-123' not found"
    """

    def __init__(
        self,
        resource: str,
        resource_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details=details,
        )


class JobNotFoundError(NotFoundError):
    """Backup job not found error."""

    def __init__(self, job_id: str) -> None:
        super().__init__(resource="Backup job", resource_id=job_id)


class BackupNotFoundError(NotFoundError):
    """Backup not found error."""

    def __init__(self, backup_id: str) -> None:
        super().__init__(resource="Backup", resource_id=backup_id)


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION & CONFLICT ERRORS (400, 409, 413)
# ═══════════════════════════════════════════════════════════════════════════════


class ValidationError(SocialVaultException):
    """
    Validation error (400 Bad Request).

    Raised when input data fails validation.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[dict[str, Any]] = None,
        error_code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details,
        )


class InvalidPathError(ValidationError):
    """
    Staged path does not belong to the caller (400).

    Guards discard/complete endpoints against cross-tenant object access.
    """

    def __init__(self, message: str = "Invalid staged upload path.") -> None:
        super().__init__(message=message, error_code="INVALID_PATH")


class InvalidArchiveError(ValidationError):
    """Uploaded archive cannot be imported (not an archive, over limits)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message=message, details=details, error_code="INVALID_ARCHIVE")


class ConflictError(SocialVaultException):
    """
    Resource conflict error (409 Conflict).

    Example:
        raise ConflictError("This job is no longer active.")
    """

    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details,
        )


class ActiveJobConflictError(ConflictError):
    """Another backup job is still queued or processing for this user."""

    def __init__(self, active_job_id: Optional[str] = None) -> None:
        super().__init__(
            message=(
                "A backup job is already in progress. "
                "Please wait for it to finish before starting another one."
            ),
            details={"active_job_id": active_job_id} if active_job_id else None,
        )


class PayloadTooLargeError(SocialVaultException):
    """
    Size limit exceeded (413 Payload Too Large).

    Raised for oversized archives and exhausted storage quotas.
    """

    def __init__(
        self,
        message: str = "Payload too large",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=413,
            error_code="PAYLOAD_TOO_LARGE",
            details=details,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# RATE LIMITING & UPSTREAM ERRORS (429, 500)
# ═══════════════════════════════════════════════════════════════════════════════


class RateLimitError(SocialVaultException):
    """
    Rate limit exceeded error (429 Too Many Requests).

    Includes retry_after hint for clients.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        error_code: str = "RATE_LIMIT_EXCEEDED",
    ) -> None:
        extra_details = details or {}
        if retry_after:
            extra_details["retry_after_seconds"] = retry_after
        super().__init__(
            message=message,
            status_code=429,
            error_code=error_code,
            details=extra_details,
        )


class BudgetExceededError(RateLimitError):
    """The scrape budget cannot cover the requested run."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details, error_code="BUDGET_EXCEEDED")


class UpstreamServiceError(SocialVaultException):
    """
    External collaborator failed (500).

    Object storage, email and scrape provider errors are logged with full
    detail where they happen; only this generic message reaches the client.
    """

    def __init__(
        self,
        service_name: str,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        extra_details = details or {}
        extra_details["service"] = service_name
        super().__init__(
            message=message or f"{service_name} request failed",
            status_code=500,
            error_code="UPSTREAM_FAILURE",
            details=extra_details,
        )
