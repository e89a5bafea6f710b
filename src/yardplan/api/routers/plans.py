"""
Plan API endpoints.

Suggestion, preview and the apply/reject lifecycle.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from yardplan.api.dependencies import get_planning_service
from yardplan.domain import Plan, TrailerSpecPatch
from yardplan.services import (
    PlanApplyRequest,
    PlanApplyResult,
    PlanningService,
    PlanPreviewRequest,
    PlanPreviewResult,
    PlanRejectResult,
)

router = APIRouter()


class SuggestRequest(BaseModel):
    """Loads (all if omitted) and trailer to plan for."""

    load_ids: list[str] | None = None
    trailer_id: str | None = None
    trailer_spec: TrailerSpecPatch | None = None


class SuggestResponse(BaseModel):
    plans: list[Plan]


class RejectRequest(BaseModel):
    plan_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=2)
    load_ids: list[str] | None = None
    source: str | None = None


@router.post("/suggest", response_model=SuggestResponse)
async def suggest_plans(
    request: SuggestRequest,
    service: Annotated[PlanningService, Depends(get_planning_service)],
):
    """
    Suggest candidate plans, best first.

    One plan per ordering strategy, ranked by severe violations, axle
    balance and utilisation.
    """
    plans = await service.suggest_plans(
        load_ids=request.load_ids,
        trailer_spec=request.trailer_spec,
        trailer_id=request.trailer_id,
    )
    return SuggestResponse(plans=plans)


@router.post("/preview", response_model=PlanPreviewResult)
async def preview_plan(
    request: PlanPreviewRequest,
    service: Annotated[PlanningService, Depends(get_planning_service)],
):
    """Validate a candidate plan; nothing is stored."""
    return await service.preview_plan(request)


@router.post("/apply", response_model=PlanApplyResult)
async def apply_plan(
    request: PlanApplyRequest,
    service: Annotated[PlanningService, Depends(get_planning_service)],
):
    """Apply a plan. Replaying a plan id returns the recorded result."""
    return await service.apply_plan(request)


@router.post("/reject", response_model=PlanRejectResult)
async def reject_plan(
    request: RejectRequest,
    service: Annotated[PlanningService, Depends(get_planning_service)],
):
    """Reject a plan; loads are left untouched."""
    return await service.reject_plan(
        request.plan_id,
        request.reason,
        load_ids=request.load_ids,
        source=request.source,
    )
