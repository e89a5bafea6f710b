"""
Plan domain models.

Placements, violations, summaries and the candidate plans built from them.
Plans are ephemeral; only the outcome of applying or rejecting one persists.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from .load import Load
from .trailer import TrailerSpec


class Severity(str, Enum):
    """Violation severity, ordered low < warning < high < critical."""

    LOW = "low"
    WARNING = "warning"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.WARNING: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class ViolationType(str, Enum):
    """Machine-readable violation categories emitted by the engine."""

    CAPACITY = "capacity"
    SPLIT = "split"
    MIX = "mix"
    ADJACENCY = "adjacency"
    COMPLIANCE = "compliance"
    STACKING = "stacking"
    OVERWEIGHT = "overweight"
    AXLE = "axle"
    OTHER = "other"


class PlacementDims(BaseModel):
    """Pallet footprint and height in metres."""

    x: float = Field(..., gt=0)
    y: float = Field(..., gt=0)
    z: float = Field(..., gt=0)


class Placement(BaseModel):
    """One pallet's position (lane, slot) on the trailer."""

    load_id: str = Field(..., min_length=1)
    pallet_index: int = Field(..., ge=0)
    slot_index: int = Field(..., ge=0)
    lane_index: int = Field(..., ge=0)
    weight_lbs: float = Field(..., ge=0)
    dims: PlacementDims | None = None
    dims_label: str | None = None
    sequence_index: int | None = None
    destination_code: str | None = None
    stop_window: str | None = None

    @property
    def position(self) -> tuple[int, int]:
        return (self.lane_index, self.slot_index)


class Violation(BaseModel):
    """
    Advisory finding that a constraint is not fully satisfied.

    `type` is a plain string so that caller-supplied categories survive a
    preview round trip; the engine itself emits ViolationType values.
    """

    load_id: str | None = None
    pallet_indices: list[int] = Field(default_factory=list)
    severity: Severity
    reason: str = Field(..., min_length=1)
    suggested_fix: str | None = None
    type: str = Field(..., min_length=1)


class AxleStatus(str, Enum):
    """Axle balance classification."""

    GOOD = "GOOD"
    WARN = "WARN"
    BAD = "BAD"

    @property
    def rank(self) -> int:
        return list(AxleStatus).index(self)


class AxleBalance(BaseModel):
    """Forward/rear weight split relative to the configured target."""

    status: AxleStatus
    forward_weight_lbs: float
    rear_weight_lbs: float
    forward_fraction: float
    target_forward_fraction: float

    @computed_field
    @property
    def deviation(self) -> float:
        """Absolute distance of the forward fraction from the target."""
        return round(abs(self.forward_fraction - self.target_forward_fraction), 4)


class PlanSummary(BaseModel):
    """Derived figures for a placement set."""

    load_count: int
    pallet_count: int
    total_weight_lbs: float
    legal_weight_lbs: float
    overweight: bool
    utilization_pct: float
    axle_balance: AxleBalance
    violations_by_severity: dict[Severity, int]
    violations_by_type: dict[str, int] = Field(default_factory=dict)

    @property
    def severe_violation_count(self) -> int:
        """Number of high and critical violations."""
        return (
            self.violations_by_severity.get(Severity.HIGH, 0)
            + self.violations_by_severity.get(Severity.CRITICAL, 0)
        )


class OrderingStrategy(str, Enum):
    """Load ordering heuristics fed to the placement planner."""

    INPUT_ORDER = "input_order"  # As submitted (preview)
    WEIGHT_BALANCED = "weight_balanced"  # Heaviest first
    STOP_WINDOW = "stop_window"  # Earliest delivery first
    DESTINATION_GROUPED = "destination_grouped"  # Same destination together
    PALLET_DENSITY = "pallet_density"  # Most pallets first


class PlanRisk(str, Enum):
    """Headline risk label shown next to a suggested plan."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Plan(BaseModel):
    """
    One complete candidate assignment of loads to a trailer.

    Carries the placements, violations and summary computed for it.
    """

    plan_id: str
    name: str | None = None
    strategy: OrderingStrategy | None = None
    trailer_id: str | None = None
    trailer_spec: TrailerSpec
    loads: list[Load]
    placements: list[Placement]
    violations: list[Violation]
    summary: PlanSummary
    score: int
    risk: PlanRisk
    notes: list[str] = Field(default_factory=list)


class PlanState(str, Enum):
    """Terminal lifecycle states; PREVIEW is implicit and never stored."""

    APPLIED = "APPLIED"
    REJECTED = "REJECTED"


class PlanOutcome(BaseModel):
    """Persisted result of applying or rejecting a plan id."""

    plan_id: str
    state: PlanState
    recorded_at: datetime
    touched_load_ids: list[str] = Field(default_factory=list)
    events_queued: int = 0
    trailer_id: str | None = None
    reason: str | None = None
    summary: PlanSummary | None = None
