"""
Event ledger domain models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Side-effecting lifecycle transitions recorded in the ledger."""

    LOAD_UPDATED = "LOAD_UPDATED"
    PLAN_APPLIED = "PLAN_APPLIED"
    PLAN_REJECTED = "PLAN_REJECTED"
    LOADS_IMPORTED = "LOADS_IMPORTED"
    TRAILER_SPEC_UPDATED = "TRAILER_SPEC_UPDATED"


class EventDraft(BaseModel):
    """Event content before the ledger stamps an id and timestamp."""

    type: EventType
    message: str = Field(..., min_length=1)
    load_id: str | None = None
    meta: dict[str, Any] | None = None


class Event(BaseModel):
    """Immutable ledger entry."""

    id: str
    created_at: datetime
    type: EventType
    load_id: str | None = None
    message: str
    meta: dict[str, Any] | None = None

    model_config = {"frozen": True}


class EventPage(BaseModel):
    """One page of ledger events plus the cursor for the next page."""

    events: list[Event]
    next_cursor: str | None = None


def format_cursor(moment: datetime) -> str:
    """Render a timestamp as a cursor string (UTC, microsecond precision)."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_cursor(raw: str) -> datetime:
    """
    Parse a cursor string back into an aware UTC datetime.

    Raises:
        ValueError: if the value is not an ISO-8601 timestamp
    """
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
