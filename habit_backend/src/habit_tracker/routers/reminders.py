from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from ..schemas import ReminderOut
from ..tracker import HabitTracker, get_tracker

router = APIRouter(
    prefix="/api/v1/reminders",
    tags=["reminders"],
)


def _get_tracker(tracker: HabitTracker = Depends(get_tracker)) -> HabitTracker:
    return tracker


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[ReminderOut],
    summary="List Scheduled Reminders",
    description="Pending daily reminders, soonest first.",
)
def list_reminders(tracker: HabitTracker = Depends(_get_tracker)) -> List[ReminderOut]:
    return [
        ReminderOut(
            identifier=r.identifier,
            habit_name=r.habit_name,
            title=r.title,
            body=r.body,
            hour=r.hour,
            minute=r.minute,
            next_fire_date=r.next_fire_date,
        )
        for r in tracker.pending_reminders()
    ]


# PUBLIC_INTERFACE
@router.delete(
    "/{identifier}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel Reminder",
    description="Cancel a pending reminder. Unknown identifiers are ignored.",
)
def cancel_reminder(identifier: str, tracker: HabitTracker = Depends(_get_tracker)) -> None:
    tracker.cancel_reminder(identifier)
    return None
