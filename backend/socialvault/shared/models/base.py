"""
Base Model Classes

Declarative base and the timestamp mixin shared by every SocialVault model.

Model Hierarchy:
================
    Base                    ← SQLAlchemy declarative base
       │
       └── TimestampMixin   ← Automatic created_at/updated_at

Usage:
======
    from socialvault.shared.models.base import Base, TimestampMixin

    class BackupJob(Base, TimestampMixin):
        __tablename__ = "backup_jobs"
        id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Timezone-aware current time used for all application-set timestamps."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Maps ``dict[str, Any]`` annotations to PostgreSQL JSONB so job payloads
    and backup data can be declared without repeating the column type.
    """

    type_annotation_map = {
        dict[str, Any]: JSONB,
    }


class TimestampMixin:
    """
    Mixin that adds automatic timestamp tracking to models.

    Database Behavior:
    ==================
    - created_at: Set by PostgreSQL on INSERT via server_default
    - updated_at: Set on INSERT, bumped by SQLAlchemy on every UPDATE
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        default=utc_now,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )
