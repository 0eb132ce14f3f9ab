"""
Base Repository

Generic base repository with the CRUD operations every entity repository
shares. Entity repositories inherit from it and add their own queries.

Generic Type Pattern:
=====================
    class BackupRepository(BaseRepository[Backup]):
        pass

    repo = BackupRepository(db)
    backup = await repo.get(backup_id)  # Returns Backup, not Any

Identifiers:
============
Ids arrive from URLs, job payloads and queue events as strings. ``get``
accepts either a UUID or its string form; a malformed string simply does
not match any row, so callers turn it into a 404 like any missing id.

flush() vs commit():
====================
- flush(): Sends SQL to the database without committing
- commit(): Done by get_db() after the request handler completes, or by
  the worker dispatcher after a processor returns
"""

from typing import Any, Generic, Optional, Type, TypeVar, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from socialvault.shared.models.base import Base


# TypeVar bound to Base ensures we only work with SQLAlchemy models
ModelType = TypeVar("ModelType", bound=Base)

RecordId = Union[UUID, str]


def as_uuid(value: Optional[RecordId]) -> Optional[UUID]:
    """
    Parse an id into a UUID.

    Returns:
        The UUID, or None when the value is empty or malformed
    """
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        return None


class BaseRepository(Generic[ModelType]):
    """
    Generic base repository providing common CRUD operations.

    Type Parameter:
        ModelType: The SQLAlchemy model class this repository manages

    Attributes:
        model: The SQLAlchemy model class
        session: The async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    # ═══════════════════════════════════════════════════════════════════════════
    # READ OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def get(self, record_id: RecordId) -> Optional[ModelType]:
        """
        Get a single record by id.

        Returns:
            The model instance if found, None otherwise

        SQL Generated:
            SELECT * FROM backups WHERE id = '550e8400-...'
        """
        parsed = as_uuid(record_id)
        if parsed is None:
            return None
        result = await self.session.execute(select(self.model).where(self.model.id == parsed))
        return result.scalar_one_or_none()

    async def get_by_ids(self, ids: list[RecordId]) -> list[ModelType]:
        """
        Get multiple records in a single IN query.

        Malformed ids are skipped; the result may be shorter than the input.
        """
        parsed = [uuid for uuid in (as_uuid(value) for value in ids) if uuid is not None]
        if not parsed:
            return []

        result = await self.session.execute(select(self.model).where(self.model.id.in_(parsed)))
        return list(result.scalars().all())

    # ═══════════════════════════════════════════════════════════════════════════
    # CREATE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record.

        Adds the instance, flushes to get DB-generated values, then
        refreshes so defaults and server-side timestamps are loaded.
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    # ═══════════════════════════════════════════════════════════════════════════
    # DELETE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════════

    async def delete(self, record_id: RecordId) -> bool:
        """
        Hard delete a record by id.

        Returns:
            True if deleted, False if not found
        """
        instance = await self.get(record_id)
        if not instance:
            return False

        await self.session.delete(instance)
        await self.session.flush()
        return True
