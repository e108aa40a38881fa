from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, Field

from .. import window
from ..errors import TargetNotFound
from ..ics import ICS_MEDIA_TYPE, export_ics, ics_filename
from ..lifecycle import TargetLifecycle
from ..models import TargetEntity, TargetState, is_active, state_of
from ..schemas import TargetCreate, TargetOut, TargetUpdate, WindowOut
from ..utils import paginate

router = APIRouter(
    prefix="/api/v1/targets",
    tags=["targets"],
)


class DueDay(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"


class PaginationEnvelope(BaseModel):
    """
    Envelope for paginated list responses.
    """
    items: List[TargetOut] = Field(..., description="List of targets, most recent first")
    total: int = Field(..., description="Total number of targets matching the query")
    limit: int = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


def _get_lifecycle(request: Request) -> TargetLifecycle:
    """
    Dependency returning the app's single lifecycle engine.
    """
    return request.app.state.lifecycle


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TargetOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Target",
    description="Create a draft target due tomorrow.",
    responses={
        201: {"description": "Target created"},
        422: {"description": "Due time outside tomorrow or invalid payload"},
    },
)
async def create_target(payload: TargetCreate, lifecycle: TargetLifecycle = Depends(_get_lifecycle)) -> TargetOut:
    created = lifecycle.create(payload.title, payload.due_at, notes=payload.notes)
    return TargetOut.from_entity(created)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=PaginationEnvelope,
    summary="List Targets",
    description=(
        "List targets, most recent first.\n\n"
        "Query parameters:\n"
        "- state: draft, locked or completed\n"
        "- due: today or tomorrow (calendar day of due_at)\n"
        "- active: only targets that are not completed and still due in the future\n"
        "- limit / offset: pagination"
    ),
)
async def list_targets(
    state: Optional[TargetState] = Query(None, description="Filter by lifecycle state"),
    due: Optional[DueDay] = Query(None, description="Filter by due day"),
    active: Optional[bool] = Query(None, description="Filter active (pending reminder) targets"),
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    lifecycle: TargetLifecycle = Depends(_get_lifecycle),
) -> PaginationEnvelope:
    now = lifecycle.now()
    items: List[TargetEntity] = lifecycle.targets

    if state is not None:
        items = [t for t in items if state_of(t) == state]
    if due is not None:
        day = now.date() if due == DueDay.TODAY else now.date() + timedelta(days=1)
        items = [t for t in items if t["due_at"].astimezone(now.tzinfo).date() == day]
    if active is not None:
        items = [t for t in items if is_active(t, now) == active]

    envelope = paginate([TargetOut.from_entity(t) for t in items], limit, offset)
    return PaginationEnvelope(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/window",
    response_model=WindowOut,
    summary="Tomorrow's Window",
    description="The span every new or edited due time must fall into, computed now.",
)
async def get_window(lifecycle: TargetLifecycle = Depends(_get_lifecycle)) -> WindowOut:
    now = lifecycle.now()
    start, end = window.tomorrow_window(now)
    return WindowOut(now=now, start=start, end=end)


# PUBLIC_INTERFACE
@router.get(
    "/{target_id}",
    response_model=TargetOut,
    summary="Get Target",
    responses={404: {"description": "Target not found"}},
)
async def get_target(target_id: str, lifecycle: TargetLifecycle = Depends(_get_lifecycle)) -> TargetOut:
    return TargetOut.from_entity(lifecycle.get(target_id))


# PUBLIC_INTERFACE
@router.patch(
    "/{target_id}",
    response_model=TargetOut,
    summary="Edit Target",
    description="Change title, notes and/or due time of a draft target. Applies all fields or none.",
    responses={
        404: {"description": "Target not found"},
        409: {"description": "Target is locked or completed"},
        422: {"description": "Due time outside tomorrow or invalid payload"},
    },
)
async def edit_target(
    target_id: str,
    payload: TargetUpdate,
    lifecycle: TargetLifecycle = Depends(_get_lifecycle),
) -> TargetOut:
    # An empty body still goes through edit so a locked or completed target is rejected.
    fields = {name: getattr(payload, name) for name in payload.model_fields_set}
    return TargetOut.from_entity(lifecycle.edit(target_id, **fields))


# PUBLIC_INTERFACE
@router.post("/{target_id}/lock", response_model=TargetOut, summary="Lock Target")
async def lock_target(target_id: str, lifecycle: TargetLifecycle = Depends(_get_lifecycle)) -> TargetOut:
    return TargetOut.from_entity(lifecycle.lock(target_id))


# PUBLIC_INTERFACE
@router.post(
    "/{target_id}/unlock",
    response_model=TargetOut,
    summary="Unlock Target",
    description="Unlock a target; only possible before its due day begins.",
)
async def unlock_target(target_id: str, lifecycle: TargetLifecycle = Depends(_get_lifecycle)) -> TargetOut:
    return TargetOut.from_entity(lifecycle.unlock(target_id))


# PUBLIC_INTERFACE
@router.post("/{target_id}/complete", response_model=TargetOut, summary="Complete Target")
async def complete_target(target_id: str, lifecycle: TargetLifecycle = Depends(_get_lifecycle)) -> TargetOut:
    return TargetOut.from_entity(lifecycle.complete(target_id))


# PUBLIC_INTERFACE
@router.post(
    "/{target_id}/snooze",
    response_model=TargetOut,
    summary="Snooze Target",
    description="Move the due time to now + minutes, clamped to the end of tomorrow.",
)
async def snooze_target(
    target_id: str,
    minutes: int = Query(10, gt=0, le=1440, description="Minutes from now"),
    lifecycle: TargetLifecycle = Depends(_get_lifecycle),
) -> TargetOut:
    return TargetOut.from_entity(lifecycle.snooze(target_id, minutes))


# PUBLIC_INTERFACE
@router.delete(
    "/{target_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Target",
    responses={
        204: {"description": "Target deleted"},
        404: {"description": "Target not found"},
    },
)
async def delete_target(target_id: str, lifecycle: TargetLifecycle = Depends(_get_lifecycle)) -> Response:
    if not lifecycle.delete(target_id):
        raise TargetNotFound(target_id=target_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.get(
    "/{target_id}/calendar.ics",
    summary="Export Target to Calendar",
    description="Download the target as an iCalendar event lasting 30 minutes.",
    response_class=Response,
    responses={200: {"content": {"text/calendar": {}}}, 404: {"description": "Target not found"}},
)
async def export_target(target_id: str, lifecycle: TargetLifecycle = Depends(_get_lifecycle)) -> Response:
    target = lifecycle.get(target_id)
    document = export_ics(target, lifecycle.now())
    return Response(
        content=document.encode("utf-8"),
        media_type=ICS_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{ics_filename(target)}"'},
    )
