"""
Common Schemas

Shared schemas used across the application for consistent API responses.

Every response carries ``success``; errors use the envelope produced by
``SocialVaultException.to_dict()``:

    {"success": false, "error": "Backup not found", "code": "NOT_FOUND", "details": {}}

Usage:
======
    from socialvault.shared.schemas.common import BaseSchema, SuccessResponse

    class JobEnvelope(SuccessResponse):
        job: JobResponse
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """
    Base schema with common configuration.

    Provides:
    - from_attributes: Allow creating from ORM models
    - populate_by_name: Allow field population by name or alias
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class SuccessResponse(BaseModel):
    success: bool = True


class MessageResponse(SuccessResponse):
    """Simple message response for success confirmations."""

    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    success: bool = False
    error: str = Field(description="Client-safe error message")
    code: str = Field(description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(default=None, description="Additional error context")


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str = "healthy"
    service: str = "socialvault"
    version: str = "1.0.0"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
