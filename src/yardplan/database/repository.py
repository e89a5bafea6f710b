"""
Repository pattern for database access.

Provides clean abstraction over SQLAlchemy queries with async support.
"""

from datetime import datetime
from typing import Any, Generic, TypeVar, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Base, SnapshotRecord


T = TypeVar("T", bound=Base)


class DatabaseRepository(Generic[T]):
    """
    Generic repository holding the session and model class.
    """

    def __init__(self, session: AsyncSession, model_class: type[T]):
        self.session = session
        self.model_class = model_class

    async def add(self, entity: T) -> T:
        """Add a new record."""
        self.session.add(entity)
        await self.session.flush()
        return entity


class SnapshotRepository(DatabaseRepository[SnapshotRecord]):
    """
    Repository for planning snapshot records.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, SnapshotRecord)

    async def get_by_org(self, org_id: str) -> Optional[SnapshotRecord]:
        """Get the snapshot row for an org."""
        result = await self.session.execute(
            select(SnapshotRecord).where(SnapshotRecord.org_id == org_id)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        org_id: str,
        version: int,
        payload: dict[str, Any],
        updated_at: datetime,
    ) -> SnapshotRecord:
        """Insert or overwrite the snapshot row for an org."""
        record = await self.get_by_org(org_id)
        if record is None:
            return await self.add(SnapshotRecord(
                org_id=org_id,
                version=version,
                payload=payload,
                updated_at=updated_at,
            ))

        record.version = version
        record.payload = payload
        record.updated_at = updated_at
        await self.session.flush()
        return record
