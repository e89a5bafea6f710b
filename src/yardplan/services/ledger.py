"""
Event Ledger.

Append-only, cursor-paginated log of lifecycle transitions. Retention is
bounded: once the ceiling is reached the oldest events are evicted and
cannot be recovered.
"""

import uuid
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from yardplan.domain import Event, EventDraft, EventPage, format_cursor
from yardplan.exceptions import InvalidInputError


DEFAULT_RETENTION = 5000

Clock = Callable[[], datetime]

_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventLedger:
    """
    Bounded append-only event log.

    Timestamps come from the ledger's own clock and are strictly increasing,
    so every event is addressable by its created_at cursor.

    Writes can be two-phase: `stage` stamps events without publishing them
    and `commit` publishes them, which lets a caller persist first and
    publish only once persistence succeeded.

    Usage:
        ledger = EventLedger(retention=5000)
        ledger.append(EventDraft(type=EventType.PLAN_REJECTED, message="..."))
        page = ledger.read(cursor=None, limit=100)
    """

    def __init__(self, retention: int = DEFAULT_RETENTION, clock: Clock | None = None):
        if retention < 1:
            raise ValueError("retention must be at least 1")
        self.retention = retention
        self._clock = clock or utc_now
        self._events: deque[Event] = deque(maxlen=retention)
        self._last: datetime | None = None

    def __len__(self) -> int:
        return len(self._events)

    def _tick(self, after: datetime | None) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if after is not None and now <= after:
            now = after + _TICK
        return now

    def stage(self, drafts: Iterable[EventDraft]) -> list[Event]:
        """Stamp drafts with ids and timestamps without publishing them."""
        staged: list[Event] = []
        last = self._last
        for draft in drafts:
            last = self._tick(last)
            staged.append(Event(
                id=str(uuid.uuid4()),
                created_at=last,
                type=draft.type,
                load_id=draft.load_id,
                message=draft.message,
                meta=draft.meta,
            ))
        return staged

    def commit(self, events: Iterable[Event]) -> None:
        """Publish staged events; they must be newer than the ledger tail."""
        for event in events:
            if self._last is not None and event.created_at <= self._last:
                raise ValueError(f"Event {event.id} is not newer than the ledger tail")
            self._events.append(event)
            self._last = event.created_at

    def append(self, draft: EventDraft) -> Event:
        """Stamp and publish a single event."""
        [event] = self.stage([draft])
        self.commit([event])
        return event

    def read(self, cursor: datetime | None = None, limit: int = 120) -> EventPage:
        """
        Events strictly after `cursor`, oldest first.

        Args:
            cursor: Exclusive lower bound on created_at (None reads from the start)
            limit: Maximum number of events to return

        Returns:
            EventPage whose next_cursor is set only if more events remain
        """
        if limit < 1:
            raise InvalidInputError("limit must be at least 1")
        if cursor is not None and cursor.tzinfo is None:
            cursor = cursor.replace(tzinfo=timezone.utc)

        remaining = [e for e in self._events if cursor is None or e.created_at > cursor]
        page = remaining[:limit]
        next_cursor = format_cursor(page[-1].created_at) if len(remaining) > limit else None
        return EventPage(events=page, next_cursor=next_cursor)

    def snapshot(self) -> list[Event]:
        return list(self._events)

    def restore(self, events: Iterable[Event]) -> None:
        """Replace the ledger contents, e.g. from a persisted snapshot."""
        ordered = sorted(events, key=lambda e: e.created_at)
        self._events = deque(ordered, maxlen=self.retention)
        self._last = ordered[-1].created_at if ordered else None
