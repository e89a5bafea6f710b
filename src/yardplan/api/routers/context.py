"""
Planning context API endpoints.

Load and trailer queries, trailer defaults and bulk load import.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from yardplan.api.dependencies import get_planning_service
from yardplan.domain import ConstraintKind, TrailerSpec, TrailerSpecPatch
from yardplan.services import (
    IMPORT_TEMPLATE_CSV,
    ContextView,
    ImportResult,
    LoadFilters,
    PlanningService,
)

router = APIRouter()


class TrailerSpecResponse(BaseModel):
    """Trailer defaults after an update."""

    trailer_spec_defaults: TrailerSpec


def _parse_flag(raw: str | None) -> bool | None:
    if not raw:
        return None
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "y"):
        return True
    if value in ("0", "false", "no", "n"):
        return False
    return None


@router.get("/context", response_model=ContextView)
async def get_context(
    service: Annotated[PlanningService, Depends(get_planning_service)],
    load_ids: str | None = Query(default=None, description="Comma-separated load ids"),
    trailer_id: str | None = Query(default=None),
    search: str | None = Query(default=None),
    status: str | None = Query(default=None),
    lane: str | None = Query(default=None),
    destination: str | None = Query(default=None),
    constraint: str | None = Query(default=None),
    assigned: str | None = Query(default=None, description="true/false, yes/no or 1/0"),
    sort_by: str = Query(default="id", pattern="^(id|weight|pallets)$"),
    sort_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=120, ge=1, le=500),
):
    """
    Loads, trailers and trailer defaults for the planning board.

    Loads can be filtered by text search, status, lane, destination,
    constraint and assignment, then sorted by id, weight or pallets.
    """
    filters = LoadFilters(
        load_ids=[i for i in (load_ids or "").split(",") if i.strip()],
        trailer_id=trailer_id or None,
        search=search,
        status=status,
        lane=lane,
        destination=destination,
        constraint=ConstraintKind.parse(constraint) if constraint and constraint.strip() else None,
        assigned=_parse_flag(assigned),
        sort_by=sort_by,
        sort_dir=sort_dir,
        limit=limit,
    )
    return await service.list_context(filters)


@router.post("/trailer-spec", response_model=TrailerSpecResponse)
async def update_trailer_spec(
    patch: TrailerSpecPatch,
    service: Annotated[PlanningService, Depends(get_planning_service)],
):
    """Merge a partial trailer spec into the org defaults."""
    spec = await service.update_trailer_spec_defaults(patch)
    return TrailerSpecResponse(trailer_spec_defaults=spec)


@router.get("/import-template.csv")
async def get_import_template():
    """Download a CSV template for bulk load import."""
    return Response(
        content=IMPORT_TEMPLATE_CSV,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=yardplan-load-import-template.csv"},
    )


@router.post("/import-loads", response_model=ImportResult)
async def import_loads(
    service: Annotated[PlanningService, Depends(get_planning_service)],
    file: UploadFile = File(..., description="CSV or JSON load file"),
    mode: str = Form(default="upsert", description="append, upsert or replace"),
    file_kind: str | None = Form(default=None, description="csv or json; inferred from the file name if omitted"),
):
    """
    Bulk import loads from a CSV or JSON file.

    Rows that fail validation are returned in `errors`; the rest are merged.
    """
    data = await file.read()
    return await service.import_loads(
        data,
        file_kind=file_kind or None,
        mode=mode or "upsert",
        file_name=file.filename,
    )
