"""Tests for the planning service."""

import asyncio

import pytest

from yardplan.domain import (
    ConstraintKind,
    EventType,
    Load,
    OrderingStrategy,
    Placement,
    Severity,
    TrailerSpecPatch,
    Violation,
)
from yardplan.engine import suggest
from yardplan.exceptions import InvalidInputError, NotFoundError, PersistenceError
from yardplan.services import (
    DEFAULT_ORG_ID,
    ImportMode,
    LoadFilters,
    PlanApplyRequest,
    PlanningService,
    PlanPreviewRequest,
)


def pallets(load_id: str, count: int, lane: int = 0, start: int = 0, weight: float = 500.0) -> list[Placement]:
    return [
        Placement(load_id=load_id, pallet_index=i, lane_index=lane, slot_index=start + i, weight_lbs=weight)
        for i in range(count)
    ]


def apply_request(plan_id: str = "plan-test-1", **kwargs) -> PlanApplyRequest:
    values = {
        "plan_id": plan_id,
        "trailer_id": "TR-5301",
        "placements": pallets("L17765", 2) + pallets("L18440", 1, lane=1),
    }
    values.update(kwargs)
    return PlanApplyRequest(**values)


class TestContext:
    """Tests for read-only queries."""

    @pytest.mark.asyncio
    async def test_seeds_demo_yard(self, planning_service, store):
        context = await planning_service.list_context()

        assert context.org_id == DEFAULT_ORG_ID
        assert [load.id for load in context.loads] == ["L17491", "L17765", "L18236", "L18440", "L19025"]
        assert [t.id for t in context.trailers] == ["TR-5301", "TR-5302", "TR-RFR1"]
        assert store.save_count == 1

    @pytest.mark.asyncio
    async def test_empty_seed(self, store, clock):
        service = PlanningService(store, seed_demo_data=False, clock=clock)
        context = await service.list_context()

        assert context.loads == []
        assert context.trailers == []

    @pytest.mark.asyncio
    async def test_filters(self, planning_service):
        by_constraint = await planning_service.list_context(LoadFilters(constraint=ConstraintKind.NO_SPLIT))
        assert [load.id for load in by_constraint.loads] == ["L18236"]

        by_search = await planning_service.list_context(LoadFilters(search="dallas"))
        assert [load.id for load in by_search.loads] == ["L18236"]

        heaviest = await planning_service.list_context(LoadFilters(sort_by="weight", sort_dir="desc", limit=2))
        assert [load.id for load in heaviest.loads] == ["L19025", "L18236"]

        selected = await planning_service.list_context(LoadFilters(load_ids=["L17765", " L17765 ", "NOPE"]))
        assert [load.id for load in selected.loads] == ["L17765"]

        one_trailer = await planning_service.list_context(LoadFilters(trailer_id="TR-RFR1"))
        assert [t.id for t in one_trailer.trailers] == ["TR-RFR1"]

    @pytest.mark.asyncio
    async def test_assigned_filter(self, planning_service):
        await planning_service.apply_plan(apply_request())

        assigned = await planning_service.list_context(LoadFilters(assigned=True))
        unassigned = await planning_service.list_context(LoadFilters(assigned=False))

        assert {load.id for load in assigned.loads} == {"L17765", "L18440"}
        assert len(unassigned.loads) == 3


class TestSuggestAndPreview:
    """Tests for the pure planning operations."""

    @pytest.mark.asyncio
    async def test_suggest_for_selected_loads(self, planning_service):
        plans = await planning_service.suggest_plans(load_ids=["L18236", "L17765"], trailer_id="TR-5301")

        assert len(plans) == 4
        for candidate in plans:
            assert {load.id for load in candidate.loads} == {"L18236", "L17765"}
            assert candidate.trailer_id == "TR-5301"

    @pytest.mark.asyncio
    async def test_suggest_uses_spec_patch(self, planning_service):
        plans = await planning_service.suggest_plans(
            load_ids=["L17765"], trailer_spec=TrailerSpecPatch(lane_count=4, slot_count=24),
        )

        assert plans[0].trailer_spec.lane_count == 4
        assert plans[0].trailer_spec.legal_weight_lbs == 44000

    @pytest.mark.asyncio
    async def test_suggest_errors(self, planning_service):
        with pytest.raises(InvalidInputError):
            await planning_service.suggest_plans(load_ids=["NOPE"])
        with pytest.raises(NotFoundError) as exc_info:
            await planning_service.suggest_plans(trailer_id="TR-0000")
        assert exc_info.value.kind == "trailer"

    @pytest.mark.asyncio
    async def test_preview_generates_balanced_plan(self, planning_service):
        load = Load(id="L1", pallets=10, weight_lbs=12000)
        result = await planning_service.preview_plan(PlanPreviewRequest(plan_id="p1", loads=[load]))

        assert len(result.placements) == 10
        assert result.violations == []
        assert result.summary.overweight is False
        assert result.summary.axle_balance.forward_fraction == pytest.approx(0.5)
        assert result.notes == ["Plan preview passed baseline checks."]

    @pytest.mark.asyncio
    async def test_preview_rechecks_supplied_placements(self, planning_service):
        hazmat = Load(id="H", pallets=1, weight_lbs=800, constraints=["HAZMAT"])
        plain = Load(id="P", pallets=1, weight_lbs=800)
        placements = pallets("H", 1, lane=0) + pallets("P", 1, lane=1)

        result = await planning_service.preview_plan(
            PlanPreviewRequest(loads=[hazmat, plain], placements=placements),
        )

        assert result.placements == placements
        assert any(v.severity == Severity.CRITICAL for v in result.violations)
        assert "High-severity violations detected." in result.notes

    @pytest.mark.asyncio
    async def test_previewing_a_suggested_plan_counts_findings_once(self, planning_service):
        hazmat = Load(id="H", pallets=4, weight_lbs=3200, constraints=["HAZMAT"])
        plain = Load(id="P", pallets=4, weight_lbs=3200)
        spec = (await planning_service.list_context()).trailer_spec_defaults
        [best, *_] = suggest([hazmat, plain], spec)

        result = await planning_service.preview_plan(PlanPreviewRequest(
            plan_id=best.plan_id,
            loads=best.loads,
            placements=best.placements,
            violations=best.violations,
        ))

        assert best.summary.violations_by_severity.get(Severity.CRITICAL, 0) >= 1
        assert result.summary.violations_by_severity == best.summary.violations_by_severity
        assert result.score == best.score
        assert len(result.violations) == len(best.violations)

    @pytest.mark.asyncio
    async def test_preview_keeps_supplied_findings_it_cannot_reproduce(self, planning_service):
        load = Load(id="L1", pallets=2, weight_lbs=900)
        excluded = Violation(
            load_id="L9", pallet_indices=[0, 1], severity=Severity.HIGH, type="capacity", reason="No room for L9.",
        )

        result = await planning_service.preview_plan(PlanPreviewRequest(
            loads=[load], placements=pallets("L1", 2), violations=[excluded],
        ))

        assert result.violations == [excluded]
        assert result.summary.violations_by_type["capacity"] == 1

    @pytest.mark.asyncio
    async def test_preview_changes_nothing(self, planning_service, store):
        await planning_service.list_context()
        saves = store.save_count
        await planning_service.preview_plan(PlanPreviewRequest(
            loads=[Load(id="L1", pallets=2, weight_lbs=900)], strategy=OrderingStrategy.WEIGHT_BALANCED,
        ))

        assert store.save_count == saves
        assert (await planning_service.list_events()).events == []


class TestApply:
    """Tests for applying plans."""

    @pytest.mark.asyncio
    async def test_apply_assigns_loads_and_records_events(self, planning_service):
        result = await planning_service.apply_plan(apply_request(note="first wave"))

        assert result.touched_load_ids == ["L17765", "L18440"]
        assert result.events_queued == 3
        assert result.replayed is False

        events = (await planning_service.list_events()).events
        assert [e.type for e in events] == [EventType.LOAD_UPDATED, EventType.LOAD_UPDATED, EventType.PLAN_APPLIED]
        assert events[0].message == "Plan plan-test-1 applied to L17765."
        assert events[2].meta["touched_loads"] == ["L17765", "L18440"]
        assert events[2].meta["note"] == "first wave"

        context = await planning_service.list_context(LoadFilters(load_ids=["L17765"]))
        [load] = context.loads
        assert load.status == "ASSIGNED"
        assert load.trailer_id == "TR-5301"
        assert load.trailer_unit == "53V-01"

    @pytest.mark.asyncio
    async def test_apply_without_trailer(self, planning_service):
        result = await planning_service.apply_plan(apply_request(trailer_id=None))
        context = await planning_service.list_context(LoadFilters(load_ids=["L17765"]))

        assert result.trailer_id is None
        assert context.loads[0].status == "ASSIGNED"
        assert context.loads[0].trailer_id is None

    @pytest.mark.asyncio
    async def test_apply_is_idempotent(self, planning_service):
        first = await planning_service.apply_plan(apply_request())
        second = await planning_service.apply_plan(apply_request())

        assert second.replayed is True
        assert second.touched_load_ids == first.touched_load_ids
        assert second.events_queued == first.events_queued
        assert len((await planning_service.list_events()).events) == 3

    @pytest.mark.asyncio
    async def test_concurrent_applies_of_one_plan(self, planning_service):
        results = await asyncio.gather(
            planning_service.apply_plan(apply_request()),
            planning_service.apply_plan(apply_request()),
        )

        assert sorted(r.replayed for r in results) == [False, True]
        assert len((await planning_service.list_events()).events) == 3

    @pytest.mark.asyncio
    async def test_apply_errors(self, planning_service):
        with pytest.raises(InvalidInputError):
            await planning_service.apply_plan(apply_request(placements=[]))

        with pytest.raises(NotFoundError) as exc_info:
            await planning_service.apply_plan(apply_request(trailer_id="TR-0000"))
        assert exc_info.value.kind == "trailer"

        with pytest.raises(NotFoundError) as exc_info:
            await planning_service.apply_plan(apply_request(placements=pallets("GHOST", 1)))
        assert exc_info.value.kind == "load"
        assert exc_info.value.ids == ["GHOST"]

        assert (await planning_service.list_events()).events == []

    @pytest.mark.asyncio
    async def test_apply_summary_uses_supplied_spec(self, planning_service):
        result = await planning_service.apply_plan(
            apply_request(trailer_spec=TrailerSpecPatch(legal_weight_lbs=1000)),
        )

        assert result.summary.legal_weight_lbs == 1000
        assert result.summary.overweight is True


class TestReject:
    """Tests for rejecting plans."""

    @pytest.mark.asyncio
    async def test_reject_records_one_event(self, planning_service):
        before = await planning_service.list_context()
        result = await planning_service.reject_plan("plan-x", "Axle too far forward", load_ids=["L17765"])
        after = await planning_service.list_context()

        assert result.events_queued == 1
        assert result.touched_load_ids == ["L17765"]
        assert before.loads == after.loads

        [event] = (await planning_service.list_events()).events
        assert event.type == EventType.PLAN_REJECTED
        assert event.message == "Plan plan-x rejected: Axle too far forward"

    @pytest.mark.asyncio
    async def test_reject_replay(self, planning_service):
        await planning_service.reject_plan("plan-x", "nope")
        replay = await planning_service.reject_plan("plan-x", "again")

        assert replay.replayed is True
        assert replay.reason == "nope"
        assert len((await planning_service.list_events()).events) == 1

    @pytest.mark.asyncio
    async def test_reject_needs_a_reason(self, planning_service):
        with pytest.raises(InvalidInputError):
            await planning_service.reject_plan("plan-x", " x ")
        with pytest.raises(InvalidInputError):
            await planning_service.reject_plan("  ", "good reason")

    @pytest.mark.asyncio
    async def test_terminal_states_are_exclusive(self, planning_service):
        await planning_service.reject_plan("plan-a", "not today")
        with pytest.raises(InvalidInputError):
            await planning_service.apply_plan(apply_request(plan_id="plan-a"))

        await planning_service.apply_plan(apply_request(plan_id="plan-b"))
        with pytest.raises(InvalidInputError):
            await planning_service.reject_plan("plan-b", "too late")


class TestTrailerDefaults:
    """Tests for trailer default updates."""

    @pytest.mark.asyncio
    async def test_update_merges_and_records(self, planning_service):
        spec = await planning_service.update_trailer_spec_defaults({"lane_count": 3, "slot_count": 24})

        assert spec.lane_count == 3
        assert spec.interior_length_m == 16
        assert await planning_service.get_trailer_spec_defaults() == spec

        [event] = (await planning_service.list_events()).events
        assert event.type == EventType.TRAILER_SPEC_UPDATED
        assert event.message == "Trailer default specification updated."

    @pytest.mark.asyncio
    async def test_new_defaults_feed_suggestions(self, planning_service):
        await planning_service.update_trailer_spec_defaults(TrailerSpecPatch(lane_count=3, slot_count=24))
        plans = await planning_service.suggest_plans(load_ids=["L17765"])

        assert plans[0].trailer_spec.lane_count == 3

    @pytest.mark.asyncio
    async def test_inconsistent_patch_is_rejected(self, planning_service):
        with pytest.raises(InvalidInputError):
            await planning_service.update_trailer_spec_defaults({"trailer_axle_x": 0.5})

        assert (await planning_service.get_trailer_spec_defaults()).trailer_axle_x == 15.0
        assert (await planning_service.list_events()).events == []


class TestImport:
    """Tests for load imports through the service."""

    @pytest.mark.asyncio
    async def test_upsert_import(self, planning_service):
        data = b"id,pallets,weight\nL17765,9,4500\nNEW1,2,1000\nBAD,0,1\n"
        result = await planning_service.import_loads(data, mode="upsert", file_name="loads.csv")

        assert (result.imported, result.updated, result.skipped) == (1, 1, 1)
        assert result.total_loads == 6
        assert result.errors[0].row == 4

        context = await planning_service.list_context(LoadFilters(load_ids=["L17765"]))
        assert context.loads[0].pallets == 9
        assert context.loads[0].destination_code == "ACT"

        [event] = (await planning_service.list_events()).events
        assert event.type == EventType.LOADS_IMPORTED
        assert event.message == "Imported load file loads.csv."

    @pytest.mark.asyncio
    async def test_append_skips_existing(self, planning_service):
        result = await planning_service.import_loads(
            b'[{"id": "L17765", "pallets": 9, "weight": 4500}]', mode=ImportMode.APPEND, file_name="loads.json",
        )

        assert (result.imported, result.updated, result.skipped) == (0, 0, 1)

    @pytest.mark.asyncio
    async def test_replace_import(self, planning_service):
        result = await planning_service.import_loads(b"id,pallets,weight\nONLY,1,10\n", mode="replace")

        assert result.total_loads == 1
        assert [load.id for load in (await planning_service.list_context()).loads] == ["ONLY"]

    @pytest.mark.asyncio
    async def test_bad_uploads(self, planning_service):
        with pytest.raises(InvalidInputError):
            await planning_service.import_loads(b"")
        with pytest.raises(InvalidInputError):
            await planning_service.import_loads(b"id\n1\n", mode="merge")
        with pytest.raises(InvalidInputError):
            await planning_service.import_loads(b"{oops", file_name="loads.json")


class TestEvents:
    """Tests for ledger paging through the service."""

    @pytest.mark.asyncio
    async def test_paging(self, planning_service):
        for i in range(3):
            await planning_service.reject_plan(f"plan-{i}", "not needed")

        first = await planning_service.list_events(limit=2)
        second = await planning_service.list_events(cursor=first.next_cursor, limit=2)

        assert len(first.events) == 2
        assert [e.meta["plan_id"] for e in second.events] == ["plan-2"]
        assert second.next_cursor is None

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, planning_service):
        with pytest.raises(InvalidInputError):
            await planning_service.list_events(cursor="yesterday")
        with pytest.raises(InvalidInputError):
            await planning_service.list_events(limit=301)


class TestPersistence:
    """Tests for durable, all-or-nothing mutations."""

    @pytest.mark.asyncio
    async def test_state_survives_restart(self, store, clock):
        service = PlanningService(store, retry_delay=0, clock=clock)
        await service.apply_plan(apply_request())

        restarted = PlanningService(store, retry_delay=0, clock=clock)
        context = await restarted.list_context(LoadFilters(assigned=True))
        events = (await restarted.list_events()).events
        replay = await restarted.apply_plan(apply_request())

        assert {load.id for load in context.loads} == {"L17765", "L18440"}
        assert len(events) == 3
        assert replay.replayed is True

    @pytest.mark.asyncio
    async def test_version_increments_per_mutation(self, planning_service, store):
        await planning_service.reject_plan("plan-a", "no")
        await planning_service.reject_plan("plan-b", "no")

        snapshot = await store.load(DEFAULT_ORG_ID)
        assert snapshot.version == 2
        assert len(snapshot.events) == 2

    @pytest.mark.asyncio
    async def test_failed_save_leaves_state_untouched(self, flaky_service, flaky_store):
        before = await flaky_service.list_context()
        attempts = flaky_store.attempts
        flaky_store.fail_times = 3

        with pytest.raises(PersistenceError):
            await flaky_service.apply_plan(apply_request())

        assert flaky_store.attempts == attempts + 3
        assert (await flaky_service.list_context()).loads == before.loads
        assert (await flaky_service.list_events()).events == []

        # The same plan id is still free to apply once the store recovers
        result = await flaky_service.apply_plan(apply_request())
        assert result.replayed is False

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, flaky_service, flaky_store):
        await flaky_service.list_context()
        flaky_store.fail_times = 2

        result = await flaky_service.apply_plan(apply_request())

        assert result.events_queued == 3
        assert len((await flaky_service.list_events()).events) == 3
        assert flaky_store.fail_times == 0
