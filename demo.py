#!/usr/bin/env python3
"""
Yardplan Trailer Planning Demo.

Demonstrates the core capabilities:
1. Planning context for the demo yard
2. Ranked plan suggestions
3. Preview of an edited plan
4. Apply / reject lifecycle and the event ledger
5. Bulk load import
"""

import asyncio

from yardplan.domain import Load
from yardplan.services import (
    IMPORT_TEMPLATE_CSV,
    InMemorySnapshotStore,
    LoadFilters,
    PlanApplyRequest,
    PlanningService,
    PlanPreviewRequest,
)


def print_section(title: str):
    """Print a section header."""
    print()
    print("=" * 60)
    print(f"  {title}")
    print("=" * 60)


async def main():
    print()
    print("*" * 60)
    print("*     Yardplan Trailer Cargo-Placement Engine Demo     *")
    print("*" * 60)

    service = PlanningService(InMemorySnapshotStore(), retry_delay=0)

    # 1. Context
    print_section("1. Planning Context")

    context = await service.list_context()
    spec = context.trailer_spec_defaults
    print(f"Org: {context.org_id}")
    print(
        f"Trailer defaults: {spec.interior_length_m} m, {spec.lane_count} lanes, "
        f"{spec.slot_count} slots, {spec.legal_weight_lbs:,.0f} lbs legal"
    )
    print()
    print("Loads:")
    for load in context.loads:
        constraints = ", ".join(c.value for c in load.constraints) or "-"
        print(
            f"  {load.display_id}: {load.pallets:2d} pallets, "
            f"{load.weight_lbs:8,.0f} lbs -> {load.destination_code}  [{constraints}]"
        )
    print()
    print("Trailers:")
    for trailer in context.trailers:
        print(f"  {trailer.id} ({trailer.unit}, {trailer.type})")

    # 2. Suggestions
    print_section("2. Plan Suggestions")

    load_ids = ["L18236", "L17765", "L18440"]
    plans = await service.suggest_plans(load_ids=load_ids, trailer_id="TR-5301")
    print(f"Suggested {len(plans)} plans for {', '.join(load_ids)}:")
    for candidate in plans:
        balance = candidate.summary.axle_balance
        print(
            f"  {(candidate.name or candidate.plan_id):<28} score {candidate.score:2d}  risk {candidate.risk.value:<6}  "
            f"axle {balance.forward_fraction:.2f} ({balance.status.value})  "
            f"util {candidate.summary.utilization_pct:5.1f}%  "
            f"violations {len(candidate.violations)}"
        )
    best = plans[0]
    print()
    print(f"Best plan: {best.plan_id}")
    for note in best.notes:
        print(f"  - {note}")

    # 3. Preview
    print_section("3. Plan Preview")

    hazmat = Load(id="HZ-1", pallets=4, weight_lbs=3800, constraints=["HAZMAT"])
    produce = Load(id="PR-1", pallets=6, weight_lbs=5400, constraints=["NO_MIX"])
    preview = await service.preview_plan(PlanPreviewRequest(loads=[hazmat, produce]))
    print(f"Placements: {len(preview.placements)}, score {preview.score}, risk {preview.risk.value}")
    for violation in preview.violations:
        print(f"  [{violation.severity.value}] {violation.reason}")
    for note in preview.notes:
        print(f"  - {note}")

    # 4. Lifecycle
    print_section("4. Apply / Reject")

    result = await service.apply_plan(PlanApplyRequest(
        plan_id=best.plan_id,
        trailer_id=best.trailer_id,
        loads=best.loads,
        placements=best.placements,
        violations=best.violations,
        note="Demo dispatch",
    ))
    print(f"Applied {result.plan_id}: {len(result.touched_load_ids)} loads, {result.events_queued} events")

    replay = await service.apply_plan(PlanApplyRequest(plan_id=best.plan_id, placements=best.placements))
    print(f"Replay returned recorded result: {replay.replayed}")

    rejected = await service.reject_plan(plans[-1].plan_id, "Axle split too far forward")
    print(f"Rejected {rejected.plan_id}: {rejected.reason}")

    assigned = await service.list_context(LoadFilters(assigned=True))
    print()
    print("Assigned loads:")
    for load in assigned.loads:
        print(f"  {load.display_id} -> {load.trailer_unit} ({load.status})")

    # 5. Import
    print_section("5. Bulk Import")

    imported = await service.import_loads(IMPORT_TEMPLATE_CSV.encode(), file_name="template.csv")
    print(
        f"Imported {imported.imported} new, {imported.updated} updated, "
        f"{imported.skipped} skipped; {imported.total_loads} loads total"
    )

    print_section("Event Ledger")

    page = await service.list_events(limit=20)
    for event in page.events:
        print(f"  {event.created_at:%H:%M:%S.%f} {event.type.value:<22} {event.message}")

    print()
    print("Demo complete!")
    print()


if __name__ == "__main__":
    asyncio.run(main())
