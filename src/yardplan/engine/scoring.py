"""
Plan scoring.

Derives weight, utilisation and axle-balance figures for a placement set.
The axle model splits each pallet's weight between the drive axle and the
trailer tandem in proportion to its distance from each (lever rule).
"""

from collections import Counter
from typing import Iterable, Sequence

import numpy as np

from yardplan.domain import (
    AxleBalance,
    AxleStatus,
    Load,
    Placement,
    PlanRisk,
    PlanSummary,
    Severity,
    TrailerSpec,
    Violation,
    ViolationType,
)

from .geometry import slots_per_lane


# Tolerance on |forward_fraction - target|
AXLE_GOOD_TOLERANCE = 0.075
AXLE_WARN_TOLERANCE = 0.15

MIN_SCORE = 35
MAX_SCORE = 99


def classify_axle(deviation: float) -> AxleStatus:
    if deviation <= AXLE_GOOD_TOLERANCE:
        return AxleStatus.GOOD
    if deviation <= AXLE_WARN_TOLERANCE:
        return AxleStatus.WARN
    return AxleStatus.BAD


def axle_balance(placements: Sequence[Placement], spec: TrailerSpec) -> AxleBalance:
    """
    Forward/rear weight split of a placement set.

    Pallets at or ahead of the drive axle count fully forward, pallets at or
    behind the trailer tandem fully rear. An empty or weightless plan sits
    exactly on target.
    """
    target = spec.target_forward_fraction
    if not placements:
        return AxleBalance(
            status=AxleStatus.GOOD,
            forward_weight_lbs=0.0,
            rear_weight_lbs=0.0,
            forward_fraction=target,
            target_forward_fraction=target,
        )

    rows = slots_per_lane(spec)
    slots = np.clip(np.array([p.slot_index for p in placements], dtype=float), 0, rows - 1)
    weights = np.array([max(p.weight_lbs, 0.0) for p in placements], dtype=float)

    x = (slots + 0.5) / rows * spec.interior_length_m
    wheelbase = spec.trailer_axle_x - spec.drive_axle_x
    rear_share = np.clip((x - spec.drive_axle_x) / wheelbase, 0.0, 1.0)

    total = float(weights.sum())
    rear = float((weights * rear_share).sum())
    forward = total - rear
    fraction = forward / total if total > 0 else target

    return AxleBalance(
        status=classify_axle(abs(fraction - target)),
        forward_weight_lbs=round(forward, 2),
        rear_weight_lbs=round(rear, 2),
        forward_fraction=round(fraction, 4),
        target_forward_fraction=target,
    )


def _derived_violations(overweight: bool, total: float, spec: TrailerSpec, axle: AxleBalance) -> list[Violation]:
    derived: list[Violation] = []
    if overweight:
        derived.append(Violation(
            severity=Severity.HIGH,
            type=ViolationType.OVERWEIGHT.value,
            reason=f"Planned weight {total:,.0f} lbs exceeds the legal limit of {spec.legal_weight_lbs:,.0f} lbs.",
            suggested_fix="Move some pallets to another trailer.",
        ))
    if axle.status is not AxleStatus.GOOD:
        derived.append(Violation(
            severity=Severity.HIGH if axle.status is AxleStatus.BAD else Severity.WARNING,
            type=ViolationType.AXLE.value,
            reason=(
                f"Forward axle share {axle.forward_fraction:.1%} is off the "
                f"{axle.target_forward_fraction:.1%} target."
            ),
            suggested_fix="Shift heavier pallets toward the lighter axle group.",
        ))
    return derived


def score(
    loads: Sequence[Load],
    placements: Sequence[Placement],
    trailer_spec: TrailerSpec,
    violations: Iterable[Violation] = (),
) -> PlanSummary:
    """
    Summarise a placement set.

    Args:
        loads: Loads considered by the plan
        placements: Pallet positions
        trailer_spec: Normalised trailer specification
        violations: Findings to tally alongside the derived ones

    Returns:
        PlanSummary; overweight and axle findings are added to the tallies
    """
    total = round(sum(max(p.weight_lbs, 0.0) for p in placements), 2)
    overweight = total > trailer_spec.legal_weight_lbs
    utilization = round(len(placements) / trailer_spec.slot_count * 100, 1)
    axle = axle_balance(placements, trailer_spec)

    tallied = [*violations, *_derived_violations(overweight, total, trailer_spec, axle)]
    by_severity = {severity: 0 for severity in Severity}
    by_severity.update(Counter(v.severity for v in tallied))

    return PlanSummary(
        load_count=len(loads),
        pallet_count=len(placements),
        total_weight_lbs=total,
        legal_weight_lbs=trailer_spec.legal_weight_lbs,
        overweight=overweight,
        utilization_pct=utilization,
        axle_balance=axle,
        violations_by_severity=by_severity,
        violations_by_type=dict(Counter(v.type for v in tallied)),
    )


def headline_score(summary: PlanSummary) -> int:
    """Display score in 35..99; utilisation minus weight, axle and violation penalties."""
    weight_penalty = 30 if summary.overweight else 0
    axle_penalty = {AxleStatus.GOOD: 0, AxleStatus.WARN: 8, AxleStatus.BAD: 18}[summary.axle_balance.status]
    violation_penalty = (
        summary.violations_by_severity.get(Severity.HIGH, 0) * 6
        + summary.violations_by_severity.get(Severity.CRITICAL, 0) * 10
    )
    raw = round(summary.utilization_pct - weight_penalty - axle_penalty - violation_penalty + 20)
    return max(MIN_SCORE, min(MAX_SCORE, raw))


def derive_risk(summary: PlanSummary) -> PlanRisk:
    if summary.overweight or summary.axle_balance.status is AxleStatus.BAD:
        return PlanRisk.HIGH
    if summary.axle_balance.status is AxleStatus.WARN:
        return PlanRisk.MEDIUM
    return PlanRisk.LOW
