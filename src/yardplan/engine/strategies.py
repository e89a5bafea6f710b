"""
Load ordering strategies.

Each strategy is a pure function from a load list to a new, reordered list.
Ties always fall back to the load id so the order is total and deterministic.
New heuristics only need a function and an entry in STRATEGIES.
"""

from typing import Callable, Sequence

from yardplan.domain import Load, OrderingStrategy


Orderer = Callable[[Sequence[Load]], list[Load]]

# Sorts after any real window or destination code
_LAST = "\uffff"


def _input_order(loads: Sequence[Load]) -> list[Load]:
    return list(loads)


def _weight_balanced(loads: Sequence[Load]) -> list[Load]:
    """Heaviest loads first, so they land towards the nose."""
    return sorted(loads, key=lambda load: (-load.weight_lbs, load.id))


def _stop_window(loads: Sequence[Load]) -> list[Load]:
    """Earliest delivery window first; loads without a window go last."""
    return sorted(
        loads,
        key=lambda load: (
            load.stop_window or _LAST,
            load.destination_code or _LAST,
            load.id,
        ),
    )


def _destination_grouped(loads: Sequence[Load]) -> list[Load]:
    """
    Loads sharing a destination placed back to back.

    Groups are ordered by their earliest stop window, then by destination
    code; loads inside a group by stop window.
    """
    groups: dict[str, list[Load]] = {}
    for load in loads:
        groups.setdefault(load.destination_code or _LAST, []).append(load)

    def group_key(code: str) -> tuple[str, str]:
        earliest = min(load.stop_window or _LAST for load in groups[code])
        return (earliest, code)

    ordered: list[Load] = []
    for code in sorted(groups, key=group_key):
        ordered.extend(sorted(groups[code], key=lambda load: (load.stop_window or _LAST, load.id)))
    return ordered


def _pallet_density(loads: Sequence[Load]) -> list[Load]:
    """Largest loads first to fill the trailer densely."""
    return sorted(loads, key=lambda load: (-load.pallets, load.id))


STRATEGIES: dict[OrderingStrategy, Orderer] = {
    OrderingStrategy.INPUT_ORDER: _input_order,
    OrderingStrategy.WEIGHT_BALANCED: _weight_balanced,
    OrderingStrategy.STOP_WINDOW: _stop_window,
    OrderingStrategy.DESTINATION_GROUPED: _destination_grouped,
    OrderingStrategy.PALLET_DENSITY: _pallet_density,
}


def order_loads(loads: Sequence[Load], strategy: OrderingStrategy) -> list[Load]:
    """Return a new list of loads ordered by the given strategy."""
    return STRATEGIES[strategy](loads)
