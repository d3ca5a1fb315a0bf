from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..repositories import CompletionQuery
from ..schemas import CompletionPage, CompletionRecordOut, HistoryOut
from ..tracker import HabitTracker, get_tracker
from ..utils import pagination_envelope

router = APIRouter(
    prefix="/api/v1/history",
    tags=["history"],
)


def _get_tracker(tracker: HabitTracker = Depends(get_tracker)) -> HabitTracker:
    return tracker


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=HistoryOut,
    summary="Completion History",
    description=(
        "Completions grouped by day with 'N/M completed' counts. Today and yesterday are "
        "returned in 'recent', every other day in 'older', newest first."
    ),
)
def get_history(
    reference_date: Optional[date] = Query(None, description="Day to treat as today (defaults to the current date)"),
    tracker: HabitTracker = Depends(_get_tracker),
) -> HistoryOut:
    history = tracker.history(reference_date)
    return HistoryOut(**asdict(history))


# PUBLIC_INTERFACE
@router.get(
    "/records",
    response_model=CompletionPage,
    summary="List Completion Records",
    description=(
        "List completion records newest day first.\n\n"
        "Query parameters:\n"
        "- since: only records on or after this day\n"
        "- before: only records strictly before this day\n"
        "- habit_id: only records of this habit\n"
        "- limit / offset: pagination"
    ),
)
def list_records(
    since: Optional[date] = Query(None, description="Only records on or after this day"),
    before: Optional[date] = Query(None, description="Only records before this day"),
    habit_id: Optional[int] = Query(None, description="Only records of this habit"),
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    tracker: HabitTracker = Depends(_get_tracker),
) -> CompletionPage:
    query = CompletionQuery(habit_id=habit_id, start=since, end=before, limit=limit, offset=offset)
    items, total = tracker.completion_page(query)
    envelope = pagination_envelope(
        items=[CompletionRecordOut(**r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )
    return CompletionPage(**envelope)


# PUBLIC_INTERFACE
@router.delete(
    "/records/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Completion Record",
    description="Remove one completion from the history. The habit's flag is left unchanged.",
    responses={
        204: {"description": "Record deleted"},
        404: {"description": "Record not found"},
    },
)
def delete_record(record_id: int, tracker: HabitTracker = Depends(_get_tracker)) -> None:
    if not tracker.delete_record(record_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    return None
