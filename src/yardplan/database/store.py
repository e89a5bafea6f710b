"""
SQL-backed planning snapshot store.
"""

import logging
from datetime import timezone

from sqlalchemy.ext.asyncio import AsyncEngine

from yardplan.services.store import PlanningSnapshot

from .repository import SnapshotRepository
from .session import build_engine, build_session_factory, create_schema, session_scope


logger = logging.getLogger(__name__)


class SqlSnapshotStore:
    """
    Snapshot store on an async SQLAlchemy engine.

    Each save rewrites the org's single row inside one transaction. Tables
    are created on first use.

    Usage:
        store = SqlSnapshotStore("sqlite+aiosqlite:///./yardplan.db")
        await store.save(snapshot)
        snapshot = await store.load("acme-logistics")
    """

    def __init__(self, database_url: str | None = None, engine: AsyncEngine | None = None):
        if engine is None and database_url is None:
            raise ValueError("SqlSnapshotStore needs a database_url or an engine")
        self.engine = engine or build_engine(database_url)
        self._session_factory = build_session_factory(self.engine)
        self._schema_ready = False

    async def _ensure_schema(self) -> None:
        if not self._schema_ready:
            await create_schema(self.engine)
            self._schema_ready = True

    async def load(self, org_id: str) -> PlanningSnapshot | None:
        await self._ensure_schema()
        async with session_scope(self._session_factory) as session:
            record = await SnapshotRepository(session).get_by_org(org_id)
            if record is None:
                return None
            return PlanningSnapshot.model_validate(record.payload)

    async def save(self, snapshot: PlanningSnapshot) -> None:
        await self._ensure_schema()
        updated_at = snapshot.updated_at.astimezone(timezone.utc).replace(tzinfo=None)
        async with session_scope(self._session_factory) as session:
            await SnapshotRepository(session).upsert(
                org_id=snapshot.org_id,
                version=snapshot.version,
                payload=snapshot.model_dump(mode="json"),
                updated_at=updated_at,
            )
        logger.debug("Saved snapshot v%d for org %s", snapshot.version, snapshot.org_id)

    async def close(self) -> None:
        await self.engine.dispose()
