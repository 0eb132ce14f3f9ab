"""
Object storage key layout.

    {user_id}/job-inputs/{uuid4}-{sanitized_name}   staged uploads awaiting processing
    {user_id}/archives/{backup_id}.zip              original archive of a backup
    {user_id}/media/{backup_id}/{file_name}         profile and tweet media
"""

import re
import uuid
from typing import Optional


_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def normalize_storage_path(path: str) -> str:
    """Trim whitespace and leading slashes."""
    return (path or "").strip().lstrip("/")


def sanitize_file_name(file_name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with ``_``."""
    sanitized = _UNSAFE_FILENAME_CHARS.sub("_", (file_name or "").strip())
    return sanitized or "upload.zip"


def staged_input_prefix(user_id: str) -> str:
    return f"{user_id}/job-inputs/"


def build_staged_input_path(user_id: str, file_name: str, random_id: Optional[str] = None) -> str:
    return f"{staged_input_prefix(user_id)}{random_id or uuid.uuid4()}-{sanitize_file_name(file_name)}"


def build_archive_path(user_id: str, backup_id: str) -> str:
    return f"{user_id}/archives/{backup_id}.zip"


def media_prefix(user_id: str, backup_id: str) -> str:
    return f"{user_id}/media/{backup_id}/"


def build_media_path(user_id: str, backup_id: str, file_name: str) -> str:
    return f"{media_prefix(user_id, backup_id)}{sanitize_file_name(file_name)}"


def is_archive_path(path: str) -> bool:
    return "/archives/" in path
