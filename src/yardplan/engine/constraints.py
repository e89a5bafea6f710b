"""
Cargo-compatibility constraint model.

Pure predicates over a placement set. Adjacency is the 4-neighbourhood of the
lane/slot grid: same lane with slots one apart, or same slot with lanes one
apart.

Every ConstraintKind maps to exactly one rule in RULES; UNKNOWN maps to a
rule that never fires.
"""

from collections import Counter, defaultdict
from typing import Callable, Iterable

from yardplan.domain import (
    ConstraintKind,
    Load,
    Placement,
    Severity,
    TrailerSpec,
    Violation,
    ViolationType,
)

from .geometry import Position, in_grid, neighbours


Occupancy = dict[Position, str]  # position -> load id
Rule = Callable[[Load, list[Placement], Occupancy, TrailerSpec], Violation | None]


def _foreign_contacts(own: list[Placement], occupancy: Occupancy) -> tuple[list[int], list[str]]:
    """Pallet indices of `own` touching another load, and the loads they touch."""
    touching: list[int] = []
    foreign: set[str] = set()
    for placement in own:
        hits = {
            occupancy[pos]
            for pos in neighbours(placement.position)
            if pos in occupancy and occupancy[pos] != placement.load_id
        }
        if hits:
            touching.append(placement.pallet_index)
            foreign |= hits
    return sorted(touching), sorted(foreign)


def _check_no_mix(load: Load, own: list[Placement], occupancy: Occupancy, spec: TrailerSpec) -> Violation | None:
    touching, foreign = _foreign_contacts(own, occupancy)
    if not touching:
        return None
    return Violation(
        load_id=load.id,
        pallet_indices=touching,
        severity=Severity.WARNING,
        type=ViolationType.MIX.value,
        reason=f"Load {load.display_id} is NO_MIX but touches pallets of {', '.join(foreign)}.",
        suggested_fix="Move the neighbouring freight to another lane or leave a gap.",
    )


def _check_direct_no_touch(load: Load, own: list[Placement], occupancy: Occupancy, spec: TrailerSpec) -> Violation | None:
    touching, foreign = _foreign_contacts(own, occupancy)
    if not touching:
        return None
    return Violation(
        load_id=load.id,
        pallet_indices=touching,
        severity=Severity.HIGH,
        type=ViolationType.ADJACENCY.value,
        reason=f"Load {load.display_id} is DIRECT_NO_TOUCH but touches pallets of {', '.join(foreign)}.",
        suggested_fix="Isolate this load in its own lane with empty slots around it.",
    )


def _check_no_split(load: Load, own: list[Placement], occupancy: Occupancy, spec: TrailerSpec) -> Violation | None:
    lanes = {p.lane_index for p in own}
    slots = sorted(p.slot_index for p in own)
    complete = len(own) == load.pallets and {p.pallet_index for p in own} == set(range(load.pallets))
    contiguous = len(lanes) == 1 and slots == list(range(slots[0], slots[0] + len(slots)))
    if complete and contiguous:
        return None
    return Violation(
        load_id=load.id,
        pallet_indices=sorted(p.pallet_index for p in own),
        severity=Severity.HIGH,
        type=ViolationType.SPLIT.value,
        reason=(
            f"Load {load.display_id} is NO_SPLIT but {len(own)} of {load.pallets} pallets "
            f"are spread over {len(lanes)} lane(s)."
        ),
        suggested_fix="Place the whole load in consecutive slots of one lane.",
    )


def _check_segregation(load: Load, own: list[Placement], occupancy: Occupancy, spec: TrailerSpec) -> Violation | None:
    label = "/".join(kind.value for kind in load.constraints if kind.needs_segregation)
    reserved = set(spec.segregated_lanes)
    if not reserved:
        return Violation(
            load_id=load.id,
            pallet_indices=sorted(p.pallet_index for p in own),
            severity=Severity.CRITICAL,
            type=ViolationType.COMPLIANCE.value,
            reason=f"Load {load.display_id} is {label} but the trailer has no segregated zone.",
            suggested_fix="Use a certified trailer or configure segregated lanes before dispatch.",
        )
    outside = sorted(p.pallet_index for p in own if p.lane_index not in reserved)
    if not outside:
        return None
    return Violation(
        load_id=load.id,
        pallet_indices=outside,
        severity=Severity.CRITICAL,
        type=ViolationType.COMPLIANCE.value,
        reason=f"Load {load.display_id} is {label} but {len(outside)} pallet(s) sit outside the segregated lanes.",
        suggested_fix="Move these pallets into the segregated lanes.",
    )


def _check_stack_limited(load: Load, own: list[Placement], occupancy: Occupancy, spec: TrailerSpec) -> Violation | None:
    per_lane = Counter(p.lane_index for p in own)
    crowded = sorted(p.pallet_index for p in own if per_lane[p.lane_index] > 1)
    if not crowded:
        return None
    return Violation(
        load_id=load.id,
        pallet_indices=crowded,
        severity=Severity.LOW,
        type=ViolationType.STACKING.value,
        reason=f"Load {load.display_id} is STACK_LIMITED but shares a lane between several of its pallets.",
        suggested_fix="Spread the pallets over separate lanes.",
    )


def _no_rule(load: Load, own: list[Placement], occupancy: Occupancy, spec: TrailerSpec) -> Violation | None:
    return None


RULES: dict[ConstraintKind, Rule] = {
    ConstraintKind.NO_MIX: _check_no_mix,
    ConstraintKind.NO_SPLIT: _check_no_split,
    ConstraintKind.DIRECT_NO_TOUCH: _check_direct_no_touch,
    ConstraintKind.TEMP_CONTROLLED: _check_segregation,
    ConstraintKind.HAZMAT: _check_segregation,
    ConstraintKind.STACK_LIMITED: _check_stack_limited,
    ConstraintKind.UNKNOWN: _no_rule,
}


def _index_placements(
    loads_by_id: dict[str, Load],
    placements: Iterable[Placement],
    spec: TrailerSpec,
) -> tuple[Occupancy, dict[str, list[Placement]], list[Violation]]:
    """
    Build the occupancy map and report structural problems.

    Placements produced by the planner never trip these; they guard
    caller-edited plans submitted for preview.
    """
    placements = list(placements)
    occupancy: Occupancy = {}
    by_load: dict[str, list[Placement]] = defaultdict(list)
    violations: list[Violation] = []
    unknown: dict[str, list[int]] = defaultdict(list)
    bad_index: dict[str, list[int]] = defaultdict(list)
    seen: set[tuple[str, int]] = set()

    if len(placements) > spec.slot_count:
        violations.append(Violation(
            severity=Severity.HIGH,
            type=ViolationType.CAPACITY.value,
            reason=f"Plan places {len(placements)} pallets but the trailer holds {spec.slot_count}.",
            suggested_fix="Add another trailer or reduce pallets in this plan.",
        ))

    for placement in placements:
        pos = placement.position
        if not in_grid(spec, pos):
            violations.append(Violation(
                load_id=placement.load_id,
                pallet_indices=[placement.pallet_index],
                severity=Severity.HIGH,
                type=ViolationType.CAPACITY.value,
                reason=f"Lane {pos[0]} slot {pos[1]} is outside the trailer grid.",
                suggested_fix="Move the pallet to a free slot inside the trailer.",
            ))
            continue
        if pos in occupancy:
            violations.append(Violation(
                load_id=placement.load_id,
                pallet_indices=[placement.pallet_index],
                severity=Severity.CRITICAL,
                type=ViolationType.CAPACITY.value,
                reason=f"Lane {pos[0]} slot {pos[1]} is already taken by load {occupancy[pos]}.",
                suggested_fix="Give every pallet its own slot.",
            ))
            continue

        occupancy[pos] = placement.load_id
        by_load[placement.load_id].append(placement)

        load = loads_by_id.get(placement.load_id)
        key = (placement.load_id, placement.pallet_index)
        if load is None:
            unknown[placement.load_id].append(placement.pallet_index)
        elif placement.pallet_index >= load.pallets or key in seen:
            bad_index[placement.load_id].append(placement.pallet_index)
        seen.add(key)

    for load_id, indices in unknown.items():
        violations.append(Violation(
            load_id=load_id,
            pallet_indices=sorted(indices),
            severity=Severity.WARNING,
            type=ViolationType.OTHER.value,
            reason=f"Placements reference load {load_id}, which is not part of this plan.",
        ))
    for load_id, indices in bad_index.items():
        violations.append(Violation(
            load_id=load_id,
            pallet_indices=sorted(indices),
            severity=Severity.WARNING,
            type=ViolationType.OTHER.value,
            reason=f"Load {load_id} has repeated or out-of-range pallet indices.",
        ))

    return occupancy, by_load, violations


def evaluate(
    loads: Iterable[Load],
    placements: Iterable[Placement],
    trailer_spec: TrailerSpec,
) -> list[Violation]:
    """
    Evaluate every load's constraints against a placement set.

    Args:
        loads: Loads considered by the plan
        placements: Pallet positions to check
        trailer_spec: Normalised trailer specification

    Returns:
        Violations in load order, after any structural findings
    """
    loads_by_id = {load.id: load for load in loads}
    occupancy, by_load, violations = _index_placements(loads_by_id, placements, trailer_spec)

    for load in loads_by_id.values():
        own = by_load.get(load.id)
        if not own:
            continue
        # TEMP_CONTROLLED and HAZMAT share one rule; run it once
        for rule in dict.fromkeys(RULES[kind] for kind in load.constraints):
            violation = rule(load, own, occupancy, trailer_spec)
            if violation is not None:
                violations.append(violation)

    return violations
