from typing import List, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from tidewatch.features.timeline.models.timeline_types import (
    ComplicationFamily,
    TimelineBounds,
    TimelineEntry
)
from tidewatch.features.timeline.services.timeline_service import TimelineService

router = APIRouter(
    prefix="/timeline",
    tags=["Timeline"]
)

def get_service(request: Request) -> TimelineService:
    """Dependency to get the TimelineService instance."""
    service = getattr(request.app.state, "timeline_service", None)
    if service is None:
        raise HTTPException(status_code=404, detail="Timeline is only available on the watch")
    return service

@router.get(
    "/entries",
    response_model=List[TimelineEntry],
    summary="Get timeline entries",
    description="Returns entries strictly before or after a date, nearest first within the limit, in ascending order"
)
async def get_entries(
    before: Optional[datetime] = None,
    after: Optional[datetime] = None,
    limit: int = Query(100, ge=0),
    family: ComplicationFamily = ComplicationFamily.UTILITARIAN_LARGE,
    service: TimelineService = Depends(get_service)
) -> List[TimelineEntry]:
    """Get timeline entries around a date."""
    if (before is None) == (after is None):
        raise HTTPException(status_code=422, detail="Provide exactly one of 'before' or 'after'")
    if before is not None:
        return service.entries_before(before, limit, family)
    return service.entries_after(after, limit, family)

@router.get(
    "/current",
    response_model=Optional[TimelineEntry],
    summary="Get the current timeline entry"
)
async def get_current_entry(
    family: ComplicationFamily = ComplicationFamily.UTILITARIAN_LARGE,
    service: TimelineService = Depends(get_service)
) -> Optional[TimelineEntry]:
    return service.current_entry(family)

@router.get(
    "/placeholder",
    response_model=TimelineEntry,
    summary="Get the placeholder entry shown before data is cached"
)
async def get_placeholder(
    family: ComplicationFamily = ComplicationFamily.UTILITARIAN_LARGE,
    service: TimelineService = Depends(get_service)
) -> TimelineEntry:
    return service.placeholder_entry(family)

@router.get(
    "/bounds",
    response_model=TimelineBounds,
    summary="Get the first and last cached timestamps"
)
async def get_bounds(
    service: TimelineService = Depends(get_service)
) -> TimelineBounds:
    return service.bounds()

@router.get(
    "/next-wake",
    summary="Get the next requested update time"
)
async def get_next_wake(
    service: TimelineService = Depends(get_service)
) -> dict:
    return {"next_wake": service.next_wake_time().isoformat()}
