"""
API Handlers

Route handlers for the SocialVault API.

Handlers follow the pattern:
- Parse HTTP requests
- Call service methods
- Format HTTP responses

All business logic is delegated to the service layer; service exceptions
are turned into responses by the global exception handlers.
"""

from socialvault.api.handlers import (
    backup_handler,
    health_handler,
    job_handler,
    scrape_handler,
    shared_handler,
    upload_handler,
)

__all__ = [
    "backup_handler",
    "health_handler",
    "job_handler",
    "scrape_handler",
    "shared_handler",
    "upload_handler",
]
