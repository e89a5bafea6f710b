"""
Event ledger API endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from yardplan.api.dependencies import get_planning_service
from yardplan.domain import EventPage
from yardplan.services import PlanningService

router = APIRouter()


@router.get("/events", response_model=EventPage)
async def list_events(
    service: Annotated[PlanningService, Depends(get_planning_service)],
    cursor: str | None = Query(default=None, description="created_at of the last event already seen"),
    limit: int = Query(default=120, ge=1, le=300),
):
    """
    Page through lifecycle events, oldest first.

    Pass the returned `next_cursor` to fetch the following page.
    """
    return await service.list_events(cursor=cursor, limit=limit)
