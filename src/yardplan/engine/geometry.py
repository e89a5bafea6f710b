"""
Trailer geometry.

Normalises partial trailer specifications against org defaults and models
the lane/slot capacity grid the planner fills.

Slots are spread across lanes as evenly as possible; when slot_count is not
a multiple of lane_count the lower lanes take the remainder. Slot 0 sits at
the nose of the trailer.
"""

import math
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from yardplan.domain import TrailerSpec, TrailerSpecPatch
from yardplan.exceptions import InvalidInputError


Position = tuple[int, int]  # (lane_index, slot_index)

# Hardcoded fallback; org defaults are seeded from it
DEFAULT_TRAILER_SPEC = TrailerSpec(
    interior_length_m=16.0,
    interior_width_m=2.46,
    interior_height_m=2.67,
    lane_count=2,
    slot_count=20,
    legal_weight_lbs=44000,
    drive_axle_x=1.0,  # Kingpin / tractor drive axle
    trailer_axle_x=15.0,  # Trailer tandem
    target_forward_fraction=0.5,
    segregated_lanes=[],
)


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    where = ".".join(str(part) for part in err.get("loc", ()))
    return f"{where}: {err['msg']}" if where else err["msg"]


def normalize_trailer_spec(
    partial: TrailerSpec | TrailerSpecPatch | dict[str, Any] | None = None,
    defaults: TrailerSpec | None = None,
) -> TrailerSpec:
    """
    Fill every missing trailer field from the org defaults.

    Total and idempotent: the result has no missing fields and normalising
    it again returns an equal spec.

    Args:
        partial: Full spec, partial patch, plain mapping or None
        defaults: Last configured org defaults (hardcoded fallback if None)

    Returns:
        A complete, validated TrailerSpec

    Raises:
        InvalidInputError: if the merged spec is not physically consistent
    """
    base = defaults or DEFAULT_TRAILER_SPEC

    if partial is None:
        values: dict[str, Any] = {}
    elif isinstance(partial, BaseModel):
        values = partial.model_dump(exclude_none=True)
    else:
        try:
            values = TrailerSpecPatch.model_validate(partial).model_dump(exclude_none=True)
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid trailer spec: {_first_error(exc)}") from exc

    merged = {**base.model_dump(), **values}
    try:
        return TrailerSpec.model_validate(merged)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid trailer spec: {_first_error(exc)}") from exc


def lane_capacities(spec: TrailerSpec) -> list[int]:
    """Number of slots in each lane; sums to spec.slot_count."""
    base, extra = divmod(spec.slot_count, spec.lane_count)
    return [base + (1 if lane < extra else 0) for lane in range(spec.lane_count)]


def slots_per_lane(spec: TrailerSpec) -> int:
    """Length of the longest lane, in slots."""
    return math.ceil(spec.slot_count / spec.lane_count)


def slot_center_x(spec: TrailerSpec, slot_index: int) -> float:
    """Longitudinal position (metres from the nose) of a slot's centre."""
    rows = slots_per_lane(spec)
    slot = min(max(slot_index, 0), rows - 1)
    return (slot + 0.5) / rows * spec.interior_length_m


def neighbours(position: Position) -> tuple[Position, ...]:
    """4-neighbourhood of a grid position (may fall outside the grid)."""
    lane, slot = position
    return ((lane, slot - 1), (lane, slot + 1), (lane - 1, slot), (lane + 1, slot))


def in_grid(spec: TrailerSpec, position: Position) -> bool:
    lane, slot = position
    if lane < 0 or lane >= spec.lane_count or slot < 0:
        return False
    return slot < lane_capacities(spec)[lane]


def lane_order(spec: TrailerSpec, start_lane: int, prefer_segregated: bool) -> list[int]:
    """
    Lanes to try, starting at start_lane and wrapping around.

    Segregated lanes go first for loads that need them and last for
    everything else.
    """
    rotated = [(start_lane + i) % spec.lane_count for i in range(spec.lane_count)]
    reserved = set(spec.segregated_lanes)
    inside = [lane for lane in rotated if lane in reserved]
    outside = [lane for lane in rotated if lane not in reserved]
    return inside + outside if prefer_segregated else outside + inside


class TrailerGrid:
    """
    Mutable occupancy grid over a trailer's lanes and slots.

    Search methods return candidate positions without occupying them so the
    planner can validate a load before committing it.
    """

    def __init__(self, spec: TrailerSpec):
        self.spec = spec
        self.capacities = lane_capacities(spec)
        self._occupied = [[False] * capacity for capacity in self.capacities]
        self._free = spec.slot_count

    def free_count(self) -> int:
        return self._free

    def is_free(self, position: Position) -> bool:
        lane, slot = position
        return in_grid(self.spec, position) and not self._occupied[lane][slot]

    def lane_in_use(self, lane: int) -> bool:
        return any(self._occupied[lane])

    def lane_has_room(self, lane: int) -> bool:
        return not all(self._occupied[lane])

    def find_run(self, size: int, lanes: Iterable[int]) -> list[Position] | None:
        """First run of `size` consecutive free slots within a single lane."""
        for lane in lanes:
            run = 0
            for slot, taken in enumerate(self._occupied[lane]):
                run = 0 if taken else run + 1
                if run == size:
                    start = slot - size + 1
                    return [(lane, s) for s in range(start, slot + 1)]
        return None

    def spread(self, size: int, lanes: Iterable[int]) -> list[Position] | None:
        """First free slot of each lane in turn, one per lane; None if too few lanes have room."""
        picked: list[Position] = []
        for lane in lanes:
            if len(picked) == size:
                break
            for slot, taken in enumerate(self._occupied[lane]):
                if not taken:
                    picked.append((lane, slot))
                    break
        return picked if len(picked) == size else None

    def take(self, size: int, lanes: Iterable[int]) -> list[Position]:
        """Up to `size` free positions, lane by lane in slot order."""
        picked: list[Position] = []
        for lane in lanes:
            for slot, taken in enumerate(self._occupied[lane]):
                if len(picked) == size:
                    return picked
                if not taken:
                    picked.append((lane, slot))
        return picked

    def occupy(self, positions: Iterable[Position]) -> None:
        for lane, slot in positions:
            if self._occupied[lane][slot]:
                raise ValueError(f"Slot {slot} in lane {lane} is already occupied")
            self._occupied[lane][slot] = True
            self._free -= 1

