"""
Planning state snapshots.

The whole org state (trailer defaults, loads, trailers, events and plan
outcomes) is persisted as one snapshot per org. Stores only ever see
complete snapshots; partial writes are not part of the contract.
"""

from datetime import datetime, timezone
from typing import Protocol

from pydantic import BaseModel, Field

from yardplan.domain import Event, Load, PlanOutcome, Trailer, TrailerSpec
from yardplan.engine import DEFAULT_TRAILER_SPEC


DEFAULT_ORG_ID = "acme-logistics"


class PlanningSnapshot(BaseModel):
    """Durable planning state of one org."""

    org_id: str = Field(..., min_length=1)
    version: int = 0
    trailer_spec_defaults: TrailerSpec = DEFAULT_TRAILER_SPEC
    loads: list[Load] = Field(default_factory=list)
    trailers: list[Trailer] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    plan_outcomes: dict[str, PlanOutcome] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SnapshotStore(Protocol):
    """Protocol for planning snapshot storage."""

    async def load(self, org_id: str) -> PlanningSnapshot | None:
        """Get the latest snapshot for an org, or None if never saved."""
        ...

    async def save(self, snapshot: PlanningSnapshot) -> None:
        """Persist a snapshot, replacing any previous one for the org."""
        ...


class InMemorySnapshotStore:
    """In-memory implementation for development/testing."""

    def __init__(self):
        self._snapshots: dict[str, PlanningSnapshot] = {}
        self.save_count = 0

    async def load(self, org_id: str) -> PlanningSnapshot | None:
        snapshot = self._snapshots.get(org_id)
        return snapshot.model_copy(deep=True) if snapshot else None

    async def save(self, snapshot: PlanningSnapshot) -> None:
        self._snapshots[snapshot.org_id] = snapshot.model_copy(deep=True)
        self.save_count += 1


def _window(day: str, start: str, end: str) -> str:
    return f"2026-02-{day}T{start}:00.000Z..2026-02-{day}T{end}:00.000Z"


def build_default_snapshot(org_id: str = DEFAULT_ORG_ID) -> PlanningSnapshot:
    """Demo yard: five planned loads and three available trailers."""
    seed = [
        # id, pallets, weight, cube, window, destination city, constraints, code
        ("L18236", 16, 21000, 780, _window("23", "08:00", "11:00"), "Dallas, TX", ["NO_SPLIT"], "DFW"),
        ("L17491", 12, 17500, 620, _window("23", "09:00", "14:00"), "Austin, TX", ["NO_MIX"], "AUS"),
        ("L19025", 20, 24500, 900, _window("24", "08:00", "12:00"), "Houston, TX", ["DIRECT_NO_TOUCH"], "HOU"),
        ("L17765", 8, 4000, 300, _window("23", "07:00", "10:00"), "Waco, TX", [], "ACT"),
        ("L18440", 10, 12000, 500, _window("24", "10:00", "16:00"), "San Antonio, TX", [], "SAT"),
    ]
    loads = [
        Load(
            id=load_id,
            load_number=load_id,
            pallets=pallets,
            weight_lbs=weight,
            cube_ft=cube,
            stop_window=window,
            lane=f"East Hub -> {city}",
            constraints=constraints,
            destination_code=code,
        )
        for load_id, pallets, weight, cube, window, city, constraints, code in seed
    ]
    trailers = [
        Trailer(id="TR-5301", unit="53V-01", type="53 VAN"),
        Trailer(id="TR-5302", unit="53V-02", type="53 VAN"),
        Trailer(id="TR-RFR1", unit="RFR-01", type="REEFER"),
    ]
    return PlanningSnapshot(org_id=org_id, loads=loads, trailers=trailers)
