"""
Domain models for the trailer planning engine.

Core business entities: loads, trailers, placements, plans and ledger events.
All models use Pydantic for validation and serialization.
"""

from .load import Load, Trailer, ConstraintKind, ASSIGNED_STATUS, DEFAULT_LOAD_STATUS
from .trailer import TrailerSpec, TrailerSpecPatch
from .plan import (
    Severity,
    ViolationType,
    PlacementDims,
    Placement,
    Violation,
    AxleStatus,
    AxleBalance,
    PlanSummary,
    OrderingStrategy,
    PlanRisk,
    Plan,
    PlanState,
    PlanOutcome,
)
from .event import Event, EventDraft, EventType, EventPage, format_cursor, parse_cursor

__all__ = [
    # Load
    "Load",
    "Trailer",
    "ConstraintKind",
    "ASSIGNED_STATUS",
    "DEFAULT_LOAD_STATUS",
    # Trailer
    "TrailerSpec",
    "TrailerSpecPatch",
    # Plan
    "Severity",
    "ViolationType",
    "PlacementDims",
    "Placement",
    "Violation",
    "AxleStatus",
    "AxleBalance",
    "PlanSummary",
    "OrderingStrategy",
    "PlanRisk",
    "Plan",
    "PlanState",
    "PlanOutcome",
    # Event
    "Event",
    "EventDraft",
    "EventType",
    "EventPage",
    "format_cursor",
    "parse_cursor",
]
