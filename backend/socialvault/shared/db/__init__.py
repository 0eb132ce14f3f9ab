"""
Database Module

Async SQLAlchemy connectivity for SocialVault.

    Handler / Processor
        │  get_db(), session_scope() or AsyncSessionLocal()
        ▼
    AsyncSession ──► Repositories ──► PostgreSQL

Usage:
======
    from socialvault.shared.db import get_db, AsyncSessionLocal
"""

from socialvault.shared.db.session import (
    get_db,
    session_scope,
    init_db,
    close_db,
    AsyncSessionLocal,
    engine,
)

__all__ = [
    "get_db",
    "session_scope",
    "init_db",
    "close_db",
    "AsyncSessionLocal",
    "engine",
]
