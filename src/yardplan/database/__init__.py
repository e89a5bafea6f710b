"""
Database layer for the trailer planning engine.

Provides async SQLAlchemy models, repositories and the SQL snapshot store.
"""

from .models import Base, SnapshotRecord
from .repository import DatabaseRepository, SnapshotRepository
from .session import build_engine, build_session_factory, session_scope
from .store import SqlSnapshotStore

__all__ = [
    "Base",
    "SnapshotRecord",
    "DatabaseRepository",
    "SnapshotRepository",
    "SqlSnapshotStore",
    "build_engine",
    "build_session_factory",
    "session_scope",
]
