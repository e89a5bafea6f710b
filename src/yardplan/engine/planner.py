"""
Placement planner.

Deterministic greedy assignment of load pallets to trailer lanes and slots.
Identical inputs, strategy included, always produce identical output: no
randomness and no wall-clock access.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from yardplan.domain import (
    ConstraintKind,
    Load,
    OrderingStrategy,
    Placement,
    PlacementDims,
    Severity,
    TrailerSpec,
    Violation,
    ViolationType,
)

from .constraints import evaluate
from .geometry import Position, TrailerGrid, lane_order
from .strategies import order_loads


logger = logging.getLogger(__name__)

# 48 x 40 in GMA pallet, 62 in loaded height
STANDARD_PALLET_DIMS = PlacementDims(x=1.22, y=1.02, z=1.57)
STANDARD_PALLET_LABEL = "48in x 40in x 62in"


@dataclass(frozen=True)
class PlannerResult:
    """Placements and violations produced for one ordering of the loads."""

    placements: list[Placement] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)


def _capacity_violation(load: Load, free: int) -> Violation:
    return Violation(
        load_id=load.id,
        pallet_indices=list(range(load.pallets)),
        severity=Severity.HIGH,
        type=ViolationType.CAPACITY.value,
        reason=f"Load {load.display_id} needs {load.pallets} slots but only {free} remain.",
        suggested_fix="Add another trailer or reduce pallets in this plan.",
    )


def _split_violation(load: Load) -> Violation:
    return Violation(
        load_id=load.id,
        pallet_indices=list(range(load.pallets)),
        severity=Severity.HIGH,
        type=ViolationType.SPLIT.value,
        reason=(
            f"Load {load.display_id} is NO_SPLIT and no lane has "
            f"{load.pallets} consecutive free slots."
        ),
        suggested_fix="Plan this load first or move it to a trailer with room for the whole block.",
    )


def _next_lane(grid: TrailerGrid, lane: int) -> int:
    """Next lane after `lane` (wrapping) that still has a free slot."""
    count = grid.spec.lane_count
    for step in range(1, count):
        candidate = (lane + step) % count
        if grid.lane_has_room(candidate):
            return candidate
    return lane


def _build_placements(load: Load, positions: list[Position], first_sequence: int) -> list[Placement]:
    weight = load.pallet_weight_lbs
    return [
        Placement(
            load_id=load.id,
            pallet_index=pallet_index,
            lane_index=lane,
            slot_index=slot,
            weight_lbs=weight,
            dims=STANDARD_PALLET_DIMS,
            dims_label=STANDARD_PALLET_LABEL,
            sequence_index=first_sequence + pallet_index,
            destination_code=load.destination_code,
            stop_window=load.stop_window,
        )
        for pallet_index, (lane, slot) in enumerate(positions)
    ]


def plan(
    loads: Sequence[Load],
    trailer_spec: TrailerSpec,
    strategy: OrderingStrategy = OrderingStrategy.INPUT_ORDER,
) -> PlannerResult:
    """
    Map the loads' pallets onto the trailer grid.

    A load that does not fit in the remaining capacity is excluded whole; a
    NO_SPLIT load without a long enough contiguous run is excluded even when
    enough scattered slots remain. Soft constraint findings are appended
    after placement without removing anything.

    Args:
        loads: Loads to place; repeated ids are placed once
        trailer_spec: Normalised trailer specification
        strategy: Ordering heuristic applied before placement

    Returns:
        PlannerResult with placements and violations
    """
    unique: dict[str, Load] = {}
    for load in loads:
        unique.setdefault(load.id, load)
    ordered = order_loads(list(unique.values()), strategy)

    grid = TrailerGrid(trailer_spec)
    placements: list[Placement] = []
    violations: list[Violation] = []

    cursor = 0
    previous: Load | None = None
    sequence = 1

    for load in ordered:
        if load.pallets > grid.free_count():
            logger.debug("Excluding load %s: %d pallets, %d free", load.id, load.pallets, grid.free_count())
            violations.append(_capacity_violation(load, grid.free_count()))
            continue

        # Isolating loads start a fresh lane where possible
        if previous is not None and (previous.isolates() or load.isolates()) and grid.lane_in_use(cursor):
            cursor = _next_lane(grid, cursor)

        lanes = lane_order(trailer_spec, cursor, load.needs_segregation())
        no_split = load.has(ConstraintKind.NO_SPLIT)

        if no_split:
            positions = grid.find_run(load.pallets, lanes)
            if positions is None:
                logger.debug("Excluding NO_SPLIT load %s: no contiguous run of %d", load.id, load.pallets)
                violations.append(_split_violation(load))
                continue
        elif load.has(ConstraintKind.STACK_LIMITED):
            # One pallet per lane while lanes last
            positions = grid.spread(load.pallets, lanes) or grid.take(load.pallets, lanes)
        else:
            positions = grid.take(load.pallets, lanes)

        candidate = _build_placements(load, positions, sequence)
        grid.occupy(positions)
        placements.extend(candidate)
        sequence += len(candidate)
        cursor = positions[-1][0]
        previous = load

    violations.extend(evaluate(ordered, placements, trailer_spec))
    return PlannerResult(placements=placements, violations=violations)
