"""
Planning Service.

Owns the org's planning state (loads, trailers, trailer defaults, plan
outcomes and the event ledger) and runs the plan lifecycle on top of the
pure placement engine.

Every mutation runs under one lock, works on a deep copy of the state and
persists the resulting snapshot before swapping it in, so readers never see
a half-applied plan and a failed write leaves memory untouched.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from yardplan.domain import (
    ASSIGNED_STATUS,
    ConstraintKind,
    EventDraft,
    EventPage,
    EventType,
    Load,
    OrderingStrategy,
    Placement,
    Plan,
    PlanOutcome,
    PlanRisk,
    PlanState,
    PlanSummary,
    Severity,
    Trailer,
    TrailerSpec,
    TrailerSpecPatch,
    Violation,
    parse_cursor,
)
from yardplan.engine import (
    SUGGESTION_STRATEGIES,
    derive_risk,
    evaluate,
    headline_score,
    normalize_trailer_spec,
    plan,
    score,
    suggest,
)
from yardplan.exceptions import InvalidInputError, NotFoundError, PersistenceError

from .importer import (
    FileKind,
    ImportMode,
    ImportRowError,
    infer_file_kind,
    merge_loads,
    parse_load_file,
)
from .ledger import DEFAULT_RETENTION, Clock, EventLedger, utc_now
from .store import DEFAULT_ORG_ID, PlanningSnapshot, SnapshotStore, build_default_snapshot


logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "yardplan.api"
MAX_EVENT_PAGE = 300
MAX_CONTEXT_LOADS = 500
MAX_CONTEXT_TRAILERS = 120


# =============================================================================
# Request / result models
# =============================================================================


class LoadFilters(BaseModel):
    """Query over the org's loads; every filter is optional."""

    load_ids: list[str] = Field(default_factory=list)
    search: str | None = None  # id, load number, lane or destination
    status: str | None = None
    lane: str | None = None
    destination: str | None = None
    constraint: ConstraintKind | None = None
    assigned: bool | None = None
    sort_by: Literal["id", "weight", "pallets"] = "id"
    sort_dir: Literal["asc", "desc"] = "asc"
    limit: int = Field(default=120, ge=1, le=MAX_CONTEXT_LOADS)
    trailer_id: str | None = None


class ContextView(BaseModel):
    org_id: str
    generated_at: datetime
    loads: list[Load]
    trailers: list[Trailer]
    trailer_spec_defaults: TrailerSpec


class PlanPreviewRequest(BaseModel):
    """Candidate plan to validate; placements are generated when omitted."""

    plan_id: str | None = None
    trailer_id: str | None = None
    trailer_spec: TrailerSpecPatch | None = None
    loads: list[Load]
    placements: list[Placement] | None = None
    violations: list[Violation] | None = None
    strategy: OrderingStrategy = OrderingStrategy.INPUT_ORDER
    source: str | None = None


class PlanPreviewResult(BaseModel):
    plan_id: str | None = None
    placements: list[Placement]
    violations: list[Violation]
    summary: PlanSummary
    score: int
    risk: PlanRisk
    notes: list[str]


class PlanApplyRequest(BaseModel):
    plan_id: str = Field(..., min_length=1)
    trailer_id: str | None = None
    trailer_spec: TrailerSpecPatch | None = None
    loads: list[Load] = Field(default_factory=list)
    placements: list[Placement]
    violations: list[Violation] = Field(default_factory=list)
    source: str | None = None
    note: str | None = Field(default=None, max_length=800)


class PlanApplyResult(BaseModel):
    plan_id: str
    touched_load_ids: list[str]
    events_queued: int
    trailer_id: str | None = None
    summary: PlanSummary | None = None
    replayed: bool = False


class PlanRejectResult(BaseModel):
    plan_id: str
    reason: str
    touched_load_ids: list[str]
    events_queued: int
    replayed: bool = False


class ImportResult(BaseModel):
    mode: ImportMode
    file_name: str | None = None
    imported: int
    updated: int
    skipped: int
    total_loads: int
    errors: list[ImportRowError]


# =============================================================================
# Service
# =============================================================================


def _preview_notes(summary: PlanSummary) -> list[str]:
    notes: list[str] = []
    if summary.overweight:
        notes.append("Plan exceeds legal trailer weight.")
    if summary.axle_balance.status.rank > 0:
        notes.append("Axle balance is outside preferred range.")
    if summary.violations_by_severity.get(Severity.HIGH, 0) or summary.violations_by_severity.get(Severity.CRITICAL, 0):
        notes.append("High-severity violations detected.")
    if not notes:
        notes.append("Plan preview passed baseline checks.")
    return notes


def _violation_key(violation: Violation) -> tuple[str | None, str, Severity, tuple[int, ...]]:
    return (violation.load_id, violation.type, violation.severity, tuple(violation.pallet_indices))


def _dedupe(ids: list[str] | None) -> list[str]:
    return list(dict.fromkeys(i.strip() for i in ids or [] if i and i.strip()))


class PlanningService:
    """
    Service for trailer plan suggestion, validation and lifecycle.

    Usage:
        service = PlanningService(InMemorySnapshotStore())
        plans = await service.suggest_plans(load_ids=["L18236", "L17491"])
        result = await service.apply_plan(PlanApplyRequest(
            plan_id=plans[0].plan_id,
            trailer_id="TR-5301",
            loads=plans[0].loads,
            placements=plans[0].placements,
        ))
    """

    def __init__(
        self,
        store: SnapshotStore,
        org_id: str = DEFAULT_ORG_ID,
        event_retention: int = DEFAULT_RETENTION,
        persist_retries: int = 3,
        retry_delay: float = 0.05,
        seed_demo_data: bool = True,
        clock: Clock | None = None,
    ):
        self.store = store
        self.org_id = org_id
        self.persist_retries = max(1, persist_retries)
        self.retry_delay = retry_delay
        self.seed_demo_data = seed_demo_data
        self._clock = clock or utc_now
        self._ledger = EventLedger(retention=event_retention, clock=self._clock)
        self._lock = asyncio.Lock()
        self._state: PlanningSnapshot | None = None

    # -------------------------------------------------------------------------
    # State handling
    # -------------------------------------------------------------------------

    async def _load_locked(self) -> PlanningSnapshot:
        """Load (or seed) the org snapshot. Caller holds the lock."""
        if self._state is not None:
            return self._state

        snapshot = await self.store.load(self.org_id)
        if snapshot is None:
            logger.info("No planning snapshot for org %s; seeding %s state", self.org_id,
                        "demo" if self.seed_demo_data else "empty")
            snapshot = (
                build_default_snapshot(self.org_id)
                if self.seed_demo_data
                else PlanningSnapshot(org_id=self.org_id)
            )
            await self._persist(snapshot)

        self._ledger.restore(snapshot.events)
        # The ledger owns events while the service runs
        self._state = snapshot.model_copy(update={"events": []})
        return self._state

    async def _ensure_loaded(self) -> PlanningSnapshot:
        if self._state is not None:
            return self._state
        async with self._lock:
            return await self._load_locked()

    async def _persist(self, snapshot: PlanningSnapshot) -> None:
        last_error: Exception | None = None
        for attempt in range(1, self.persist_retries + 1):
            try:
                await self.store.save(snapshot)
                return
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Saving planning snapshot for org %s failed (attempt %d/%d): %s",
                    snapshot.org_id, attempt, self.persist_retries, exc,
                )
                if attempt < self.persist_retries and self.retry_delay > 0:
                    await asyncio.sleep(self.retry_delay * attempt)

        logger.error("Giving up on planning snapshot for org %s after %d attempts",
                     snapshot.org_id, self.persist_retries)
        raise PersistenceError(f"Could not persist planning state for org {snapshot.org_id}") from last_error

    async def _commit(self, current: PlanningSnapshot, state: PlanningSnapshot, drafts: list[EventDraft]) -> None:
        """
        Persist `state` plus the drafted events, then publish both.

        Caller holds the lock. Nothing is published if persistence fails.
        """
        staged = self._ledger.stage(drafts)
        events = (self._ledger.snapshot() + staged)[-self._ledger.retention:]
        state.version = current.version + 1
        state.updated_at = self._clock()

        await self._persist(state.model_copy(update={"events": events}))

        # No await between the swap and the publish
        self._state = state
        self._ledger.commit(staged)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def list_context(self, filters: LoadFilters | None = None) -> ContextView:
        """
        Filter and sort the org's loads, alongside trailers and defaults.

        Returns:
            ContextView with at most `filters.limit` loads
        """
        filters = filters or LoadFilters()
        state = await self._ensure_loaded()

        loads = list(state.loads)
        wanted = set(_dedupe(filters.load_ids))
        if wanted:
            loads = [load for load in loads if load.id in wanted]
        if filters.search and filters.search.strip():
            needle = filters.search.strip().lower()
            loads = [
                load for load in loads
                if needle in f"{load.id} {load.load_number or ''} {load.lane or ''} {load.destination_code or ''}".lower()
            ]
        if filters.status and filters.status.strip():
            status = filters.status.strip().upper()
            loads = [load for load in loads if load.status.upper() == status]
        if filters.lane and filters.lane.strip():
            lane = filters.lane.strip().lower()
            loads = [load for load in loads if lane in (load.lane or "").lower()]
        if filters.destination and filters.destination.strip():
            destination = filters.destination.strip().lower()
            loads = [load for load in loads if destination in (load.destination_code or "").lower()]
        if filters.constraint is not None:
            loads = [load for load in loads if load.has(filters.constraint)]
        if filters.assigned is not None:
            loads = [load for load in loads if load.is_assigned == filters.assigned]

        reverse = filters.sort_dir == "desc"
        if filters.sort_by == "weight":
            loads.sort(key=lambda load: load.weight_lbs, reverse=reverse)
        elif filters.sort_by == "pallets":
            loads.sort(key=lambda load: load.pallets, reverse=reverse)
        else:
            loads.sort(key=lambda load: load.display_id, reverse=reverse)

        if filters.trailer_id:
            trailers = [t for t in state.trailers if t.id == filters.trailer_id]
        else:
            trailers = state.trailers[:MAX_CONTEXT_TRAILERS]

        return ContextView(
            org_id=state.org_id,
            generated_at=self._clock(),
            loads=loads[:filters.limit],
            trailers=trailers,
            trailer_spec_defaults=state.trailer_spec_defaults,
        )

    async def get_trailer_spec_defaults(self) -> TrailerSpec:
        state = await self._ensure_loaded()
        return state.trailer_spec_defaults

    async def list_events(self, cursor: str | None = None, limit: int = 120) -> EventPage:
        """
        Page through the ledger.

        Raises:
            InvalidInputError: on an unparseable cursor or out-of-range limit
        """
        if limit < 1 or limit > MAX_EVENT_PAGE:
            raise InvalidInputError(f"limit must be between 1 and {MAX_EVENT_PAGE}")
        after = None
        if cursor and cursor.strip():
            try:
                after = parse_cursor(cursor)
            except ValueError as exc:
                raise InvalidInputError("Invalid cursor value") from exc

        await self._ensure_loaded()
        return self._ledger.read(cursor=after, limit=limit)

    # -------------------------------------------------------------------------
    # Planning (pure)
    # -------------------------------------------------------------------------

    async def suggest_plans(
        self,
        load_ids: list[str] | None = None,
        trailer_spec: TrailerSpecPatch | dict[str, Any] | None = None,
        trailer_id: str | None = None,
        strategies: tuple[OrderingStrategy, ...] = SUGGESTION_STRATEGIES,
    ) -> list[Plan]:
        """
        Suggest ranked candidate plans for the selected loads.

        Args:
            load_ids: Loads to plan (all org loads if empty)
            trailer_spec: Partial spec applied over the org defaults
            trailer_id: Trailer the plans are meant for

        Returns:
            Plans, best first

        Raises:
            InvalidInputError: if no loads are selected
            NotFoundError: if trailer_id is unknown
        """
        state = await self._ensure_loaded()
        wanted = set(_dedupe(load_ids))
        loads = [load for load in state.loads if load.id in wanted] if wanted else list(state.loads)
        if not loads:
            raise InvalidInputError("No loads selected")

        trailer_id = (trailer_id or "").strip() or None
        if trailer_id and not any(t.id == trailer_id for t in state.trailers):
            raise NotFoundError("trailer", [trailer_id])

        spec = normalize_trailer_spec(trailer_spec, state.trailer_spec_defaults)
        plans = suggest(loads, spec, strategies=strategies, trailer_id=trailer_id)
        logger.info("Suggested %d plans for %d loads (best: %s)", len(plans), len(loads), plans[0].plan_id)
        return plans

    async def preview_plan(self, request: PlanPreviewRequest) -> PlanPreviewResult:
        """
        Validate a candidate plan without changing any state.

        Placements are generated deterministically when the request has none;
        supplied placements are re-checked against every constraint.
        """
        state = await self._ensure_loaded()
        spec = normalize_trailer_spec(request.trailer_spec, state.trailer_spec_defaults)

        if request.placements:
            placements = list(request.placements)
            findings = evaluate(request.loads, placements, spec)
        else:
            result = plan(request.loads, spec, request.strategy)
            placements, findings = result.placements, result.violations

        # Supplied findings that re-evaluation reproduces are counted once
        reproduced = {_violation_key(v) for v in findings}
        carried = [v for v in request.violations or [] if _violation_key(v) not in reproduced]
        violations = [*carried, *findings]
        summary = score(request.loads, placements, spec, violations)
        return PlanPreviewResult(
            plan_id=request.plan_id,
            placements=placements,
            violations=violations,
            summary=summary,
            score=headline_score(summary),
            risk=derive_risk(summary),
            notes=_preview_notes(summary),
        )

    # -------------------------------------------------------------------------
    # Lifecycle (mutating)
    # -------------------------------------------------------------------------

    async def apply_plan(self, request: PlanApplyRequest) -> PlanApplyResult:
        """
        Apply a plan: assign every referenced load and record the events.

        Idempotent by plan id; a replay returns the recorded result and
        changes nothing.

        Raises:
            InvalidInputError: if the plan has no placements or was rejected
            NotFoundError: if the trailer or a referenced load is unknown
            PersistenceError: if the new state could not be saved
        """
        plan_id = request.plan_id.strip()
        async with self._lock:
            current = await self._load_locked()

            prior = current.plan_outcomes.get(plan_id)
            if prior is not None:
                if prior.state is PlanState.REJECTED:
                    raise InvalidInputError(f"Plan {plan_id} was rejected and cannot be applied")
                logger.info("Plan %s already applied; returning recorded result", plan_id)
                return PlanApplyResult(
                    plan_id=plan_id,
                    touched_load_ids=prior.touched_load_ids,
                    events_queued=prior.events_queued,
                    trailer_id=prior.trailer_id,
                    summary=prior.summary,
                    replayed=True,
                )

            touched = list(dict.fromkeys(p.load_id for p in request.placements))
            if not touched:
                raise InvalidInputError("plan has no placements to apply")

            trailer_id = (request.trailer_id or "").strip() or None
            trailer = next((t for t in current.trailers if t.id == trailer_id), None)
            if trailer_id and trailer is None:
                raise NotFoundError("trailer", [trailer_id])

            index = {load.id: i for i, load in enumerate(current.loads)}
            missing = [load_id for load_id in touched if load_id not in index]
            if missing:
                raise NotFoundError("load", missing)

            spec = normalize_trailer_spec(request.trailer_spec, current.trailer_spec_defaults)
            plan_loads = request.loads or [current.loads[index[load_id]] for load_id in touched]
            summary = score(plan_loads, request.placements, spec, request.violations)

            source = request.source or DEFAULT_SOURCE
            state = current.model_copy(deep=True)
            drafts: list[EventDraft] = []
            for load_id in touched:
                load = state.loads[index[load_id]]
                update: dict[str, Any] = {"status": ASSIGNED_STATUS}
                if trailer is not None:
                    update.update(trailer_id=trailer.id, trailer_unit=trailer.unit)
                state.loads[index[load_id]] = load.model_copy(update=update)
                drafts.append(EventDraft(
                    type=EventType.LOAD_UPDATED,
                    message=f"Plan {plan_id} applied to {load.display_id}.",
                    load_id=load_id,
                    meta={"plan_id": plan_id, "source": source, "trailer_id": trailer_id},
                ))
            drafts.append(EventDraft(
                type=EventType.PLAN_APPLIED,
                message=f"Plan {plan_id} was applied.",
                meta={
                    "plan_id": plan_id,
                    "touched_loads": touched,
                    "trailer_id": trailer_id,
                    "note": request.note,
                    "source": source,
                },
            ))

            state.plan_outcomes[plan_id] = PlanOutcome(
                plan_id=plan_id,
                state=PlanState.APPLIED,
                recorded_at=self._clock(),
                touched_load_ids=touched,
                events_queued=len(drafts),
                trailer_id=trailer_id,
                summary=summary,
            )
            await self._commit(current, state, drafts)

        logger.info("Applied plan %s to %d loads (trailer %s)", plan_id, len(touched), trailer_id or "-")
        return PlanApplyResult(
            plan_id=plan_id,
            touched_load_ids=touched,
            events_queued=len(drafts),
            trailer_id=trailer_id,
            summary=summary,
        )

    async def reject_plan(
        self,
        plan_id: str,
        reason: str,
        load_ids: list[str] | None = None,
        source: str | None = None,
    ) -> PlanRejectResult:
        """
        Reject a plan. Records one PLAN_REJECTED event and never touches loads.

        Raises:
            InvalidInputError: on a blank plan id, a too-short reason, or a plan
                that was already applied
            PersistenceError: if the event could not be saved
        """
        plan_id = (plan_id or "").strip()
        reason = (reason or "").strip()
        if not plan_id:
            raise InvalidInputError("plan_id is required")
        if len(reason) < 2:
            raise InvalidInputError("A rejection reason of at least 2 characters is required")

        async with self._lock:
            current = await self._load_locked()

            prior = current.plan_outcomes.get(plan_id)
            if prior is not None:
                if prior.state is PlanState.APPLIED:
                    raise InvalidInputError(f"Plan {plan_id} was already applied and cannot be rejected")
                return PlanRejectResult(
                    plan_id=plan_id,
                    reason=prior.reason or reason,
                    touched_load_ids=prior.touched_load_ids,
                    events_queued=prior.events_queued,
                    replayed=True,
                )

            touched = _dedupe(load_ids)
            drafts = [EventDraft(
                type=EventType.PLAN_REJECTED,
                message=f"Plan {plan_id} rejected: {reason}",
                meta={
                    "plan_id": plan_id,
                    "reason": reason,
                    "source": source or DEFAULT_SOURCE,
                    "touched_loads": touched,
                },
            )]

            state = current.model_copy(deep=True)
            state.plan_outcomes[plan_id] = PlanOutcome(
                plan_id=plan_id,
                state=PlanState.REJECTED,
                recorded_at=self._clock(),
                touched_load_ids=touched,
                events_queued=len(drafts),
                reason=reason,
            )
            await self._commit(current, state, drafts)

        logger.info("Rejected plan %s: %s", plan_id, reason)
        return PlanRejectResult(plan_id=plan_id, reason=reason, touched_load_ids=touched, events_queued=len(drafts))

    async def update_trailer_spec_defaults(
        self,
        patch: TrailerSpecPatch | dict[str, Any] | None,
    ) -> TrailerSpec:
        """
        Merge a partial spec into the org defaults and persist them.

        Raises:
            InvalidInputError: if the merged spec is inconsistent
            PersistenceError: if the new defaults could not be saved
        """
        async with self._lock:
            current = await self._load_locked()
            spec = normalize_trailer_spec(patch, current.trailer_spec_defaults)

            state = current.model_copy(deep=True)
            state.trailer_spec_defaults = spec
            drafts = [EventDraft(
                type=EventType.TRAILER_SPEC_UPDATED,
                message="Trailer default specification updated.",
                meta=spec.model_dump(mode="json"),
            )]
            await self._commit(current, state, drafts)

        logger.info("Trailer defaults for org %s updated: %d lanes, %d slots",
                    self.org_id, spec.lane_count, spec.slot_count)
        return spec

    async def import_loads(
        self,
        data: bytes,
        file_kind: FileKind | str | None = None,
        mode: ImportMode | str = ImportMode.UPSERT,
        file_name: str | None = None,
    ) -> ImportResult:
        """
        Import loads from a CSV or JSON file.

        Rows that fail validation are reported in `errors` and skipped; the
        rest are merged according to `mode`.

        Raises:
            InvalidInputError: on an empty or unreadable file or unknown mode
            PersistenceError: if the merged loads could not be saved
        """
        try:
            mode = ImportMode(mode.strip().lower() if isinstance(mode, str) else mode)
        except ValueError as exc:
            raise InvalidInputError("Invalid import mode.") from exc
        if not data:
            raise InvalidInputError("Upload a non-empty CSV or JSON file.")

        kind = infer_file_kind(file_name, file_kind)
        parsed = parse_load_file(data, kind)

        async with self._lock:
            current = await self._load_locked()
            merged = merge_loads(current.loads, parsed.loads, mode)
            skipped = len(parsed.errors) + max(0, len(parsed.loads) - merged.imported - merged.updated)

            state = current.model_copy(deep=True)
            state.loads = merged.loads
            label = file_name or f"upload.{kind.value}"
            drafts = [EventDraft(
                type=EventType.LOADS_IMPORTED,
                message=f"Imported load file {label}.",
                meta={
                    "file_name": label,
                    "mode": mode.value,
                    "imported": merged.imported,
                    "updated": merged.updated,
                    "skipped": skipped,
                },
            )]
            await self._commit(current, state, drafts)

        logger.info("Imported %s (%s): %d new, %d updated, %d skipped",
                    label, mode.value, merged.imported, merged.updated, skipped)
        return ImportResult(
            mode=mode,
            file_name=file_name,
            imported=merged.imported,
            updated=merged.updated,
            skipped=skipped,
            total_loads=len(merged.loads),
            errors=parsed.errors,
        )
