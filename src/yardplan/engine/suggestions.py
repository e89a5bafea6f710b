"""
Suggestion engine.

Runs the planner once per ordering strategy and ranks the candidate plans.
"""

import hashlib
import json
from typing import Sequence

from yardplan.domain import Load, OrderingStrategy, Plan, TrailerSpec
from yardplan.exceptions import InvalidInputError

from .planner import plan
from .scoring import derive_risk, headline_score, score


# Declaration order doubles as the final ranking tie-break
SUGGESTION_STRATEGIES: tuple[OrderingStrategy, ...] = (
    OrderingStrategy.WEIGHT_BALANCED,
    OrderingStrategy.STOP_WINDOW,
    OrderingStrategy.DESTINATION_GROUPED,
    OrderingStrategy.PALLET_DENSITY,
)

PLAN_NAMES = {
    OrderingStrategy.INPUT_ORDER: "As submitted",
    OrderingStrategy.WEIGHT_BALANCED: "Weight balanced",
    OrderingStrategy.STOP_WINDOW: "Stop window",
    OrderingStrategy.DESTINATION_GROUPED: "Destination grouped",
    OrderingStrategy.PALLET_DENSITY: "Pallet density",
}

PLAN_NOTES = {
    OrderingStrategy.INPUT_ORDER: ["Loads placed in the order submitted"],
    OrderingStrategy.WEIGHT_BALANCED: ["Heaviest loads toward the nose", "Balanced axle load"],
    OrderingStrategy.STOP_WINDOW: ["Optimized route order", "Earliest deliveries loaded first"],
    OrderingStrategy.DESTINATION_GROUPED: ["Same-destination freight kept together", "Fewer touches at each stop"],
    OrderingStrategy.PALLET_DENSITY: ["Max pallet density", "Higher concentration of heavy loads"],
}


def plan_fingerprint(
    strategy: OrderingStrategy,
    trailer_spec: TrailerSpec,
    plan_loads: Sequence[Load],
    trailer_id: str | None,
) -> str:
    """Stable id for a candidate: equal inputs always map to the same id."""
    payload = {
        "strategy": strategy.value,
        "trailer_id": trailer_id,
        "trailer_spec": trailer_spec.model_dump(mode="json"),
        "loads": [load.model_dump(mode="json") for load in plan_loads],
    }
    digest = hashlib.sha1(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()
    return f"plan-{strategy.value.replace('_', '-')}-{digest[:12]}"


def build_plan(
    loads: Sequence[Load],
    trailer_spec: TrailerSpec,
    strategy: OrderingStrategy,
    trailer_id: str | None = None,
) -> Plan:
    """Plan, score and label one candidate."""
    result = plan(loads, trailer_spec, strategy)
    summary = score(loads, result.placements, trailer_spec, result.violations)
    return Plan(
        plan_id=plan_fingerprint(strategy, trailer_spec, loads, trailer_id),
        name=PLAN_NAMES[strategy],
        strategy=strategy,
        trailer_id=trailer_id,
        trailer_spec=trailer_spec,
        loads=list(loads),
        placements=result.placements,
        violations=result.violations,
        summary=summary,
        score=headline_score(summary),
        risk=derive_risk(summary),
        notes=list(PLAN_NOTES[strategy]),
    )


def rank_key(candidate: Plan) -> tuple[int, float, float]:
    """
    Fewer high/critical findings, then better axle balance, then fuller.

    Severe findings come from the summary, so overweight and axle findings
    count alongside the constraint violations.
    """
    summary = candidate.summary
    return (summary.severe_violation_count, summary.axle_balance.deviation, -summary.utilization_pct)


def suggest(
    loads: Sequence[Load],
    trailer_spec: TrailerSpec,
    strategies: Sequence[OrderingStrategy] = SUGGESTION_STRATEGIES,
    trailer_id: str | None = None,
) -> list[Plan]:
    """
    Build one plan per strategy and return them best first.

    Raises:
        InvalidInputError: if there are no loads to plan
    """
    if not loads:
        raise InvalidInputError("At least one load is required to suggest plans")
    candidates = [build_plan(loads, trailer_spec, strategy, trailer_id) for strategy in strategies]
    return sorted(candidates, key=rank_key)
