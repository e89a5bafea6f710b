"""Pytest fixtures for trailer planning tests."""

from datetime import datetime, timedelta, timezone

import pytest

from yardplan.domain import Load, TrailerSpec
from yardplan.engine import DEFAULT_TRAILER_SPEC
from yardplan.services import InMemorySnapshotStore, PlanningService, PlanningSnapshot


class FlakyStore(InMemorySnapshotStore):
    """In-memory store whose next `fail_times` saves raise."""

    def __init__(self, fail_times: int = 0):
        super().__init__()
        self.fail_times = fail_times
        self.attempts = 0

    async def save(self, snapshot: PlanningSnapshot) -> None:
        self.attempts += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise OSError("disk full")
        await super().save(snapshot)


class StepClock:
    """Deterministic clock advancing a fixed step per call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2026, 2, 23, 8, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def make_load():
    """Factory for loads with sensible defaults."""

    def _make(load_id: str, pallets: int = 4, weight_lbs: float = 4000, **kwargs) -> Load:
        return Load(id=load_id, pallets=pallets, weight_lbs=weight_lbs, **kwargs)

    return _make


@pytest.fixture
def default_spec() -> TrailerSpec:
    """16 m trailer, 2 lanes of 10 slots, 44,000 lbs."""
    return DEFAULT_TRAILER_SPEC


@pytest.fixture
def small_spec() -> TrailerSpec:
    """2 lanes of 5 slots."""
    return DEFAULT_TRAILER_SPEC.model_copy(update={"slot_count": 10})


@pytest.fixture
def segregated_spec() -> TrailerSpec:
    """3 lanes of 4 slots with lane 2 reserved for segregated cargo."""
    return DEFAULT_TRAILER_SPEC.model_copy(update={"lane_count": 3, "slot_count": 12, "segregated_lanes": [2]})


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def store() -> InMemorySnapshotStore:
    """Create an in-memory snapshot store for testing."""
    return InMemorySnapshotStore()


@pytest.fixture
def planning_service(store, clock) -> PlanningService:
    """Planning service seeded with the demo yard."""
    return PlanningService(store, retry_delay=0, clock=clock)


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def flaky_service(flaky_store, clock) -> PlanningService:
    """Planning service whose store can be told to fail."""
    return PlanningService(flaky_store, persist_retries=3, retry_delay=0, clock=clock)
