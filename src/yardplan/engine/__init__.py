"""
Placement engine.

Pure, deterministic functions: trailer geometry, constraint evaluation,
placement planning, scoring and plan suggestion.
"""

from .geometry import (
    DEFAULT_TRAILER_SPEC,
    Position,
    TrailerGrid,
    lane_capacities,
    normalize_trailer_spec,
    slot_center_x,
    slots_per_lane,
)
from .constraints import RULES, evaluate
from .strategies import STRATEGIES, order_loads
from .planner import STANDARD_PALLET_DIMS, STANDARD_PALLET_LABEL, PlannerResult, plan
from .scoring import axle_balance, classify_axle, derive_risk, headline_score, score
from .suggestions import SUGGESTION_STRATEGIES, build_plan, suggest

__all__ = [
    # Geometry
    "DEFAULT_TRAILER_SPEC",
    "Position",
    "TrailerGrid",
    "lane_capacities",
    "normalize_trailer_spec",
    "slot_center_x",
    "slots_per_lane",
    # Constraints
    "RULES",
    "evaluate",
    # Planner
    "STRATEGIES",
    "order_loads",
    "STANDARD_PALLET_DIMS",
    "STANDARD_PALLET_LABEL",
    "PlannerResult",
    "plan",
    # Scoring
    "axle_balance",
    "classify_axle",
    "derive_risk",
    "headline_score",
    "score",
    # Suggestions
    "SUGGESTION_STRATEGIES",
    "build_plan",
    "suggest",
]
