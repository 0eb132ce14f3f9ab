"""
Configuration Module

Application configuration loaded from environment variables.

Usage:
======
    from socialvault.config.settings import settings

    queue_url = settings.SQS_JOB_QUEUE_URL
"""

from socialvault.config.settings import settings, get_settings, Settings

__all__ = [
    "settings",
    "get_settings",
    "Settings",
]
