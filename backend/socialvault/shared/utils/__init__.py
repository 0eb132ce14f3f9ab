"""
Utilities Package

Pure helpers with no database or network access.

Contents:
=========
- job_payload: Flat job payload merge and typed accessors
- retention: Guest retention rules over backup data
- scrape_pricing: Scrape cost model
- storage_paths: Canonical object keys
- security: Caller JWTs and share tokens
- media_matcher: Profile image selection for archive imports
"""

from socialvault.shared.utils.job_payload import merge_job_payload
from socialvault.shared.utils.security import SecurityUtils

__all__ = [
    "merge_job_payload",
    "SecurityUtils",
]
