"""
SQLAlchemy database models for the planning store.

Provides persistent storage for:
- Planning snapshots (one JSON document per org)
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String
from sqlalchemy.orm import DeclarativeBase


def utcnow_naive() -> datetime:
    """Current UTC time without tzinfo, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class SnapshotRecord(Base):
    """
    Planning snapshot of one org.

    The whole state (trailer defaults, loads, trailers, events and plan
    outcomes) is rewritten as a single row in one transaction, so a reader
    never sees half of a mutation.
    """
    __tablename__ = "planning_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(String(64), nullable=False, unique=True, index=True)
    version = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow_naive)
    created_at = Column(DateTime, default=utcnow_naive)
