from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..errors import HabitNotFoundError
from ..schemas import HabitCreate, HabitOut, HabitUpdate
from ..tracker import HabitTracker, get_tracker

router = APIRouter(
    prefix="/api/v1/habits",
    tags=["habits"],
)


def _get_tracker(tracker: HabitTracker = Depends(get_tracker)) -> HabitTracker:
    """
    Dependency wrapper for the tracker to keep signatures clean.
    """
    return tracker


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Habit not found")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=HabitOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Habit",
    description="Create a new habit and schedule its daily reminder when a reminder time is given.",
    responses={
        201: {"description": "Habit created successfully"},
        503: {"description": "Habit could not be saved"},
    },
)
def create_habit(payload: HabitCreate, tracker: HabitTracker = Depends(_get_tracker)) -> HabitOut:
    """
    Create a new habit.
    """
    created = tracker.add_habit(payload.name, payload.reminder_time)
    if created is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Habit could not be saved")
    return HabitOut(**created)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[HabitOut],
    summary="List Habits",
    description="List every habit sorted by name.",
)
def list_habits(tracker: HabitTracker = Depends(_get_tracker)) -> List[HabitOut]:
    return [HabitOut(**h) for h in tracker.list_habits()]


# PUBLIC_INTERFACE
@router.get(
    "/{habit_id}",
    response_model=HabitOut,
    summary="Get Habit",
    responses={
        200: {"description": "Habit found"},
        404: {"description": "Habit not found"},
    },
)
def get_habit(habit_id: int, tracker: HabitTracker = Depends(_get_tracker)) -> HabitOut:
    try:
        habit = tracker.get_habit(habit_id)
    except HabitNotFoundError:
        raise _not_found()
    return HabitOut(**habit)


# PUBLIC_INTERFACE
@router.patch(
    "/{habit_id}",
    response_model=HabitOut,
    summary="Update Habit",
    description=(
        "Rename a habit or change its reminder. Send reminder_time: null to remove the reminder. "
        "A remaining reminder is rescheduled under the same identifier."
    ),
    responses={
        200: {"description": "Habit updated"},
        404: {"description": "Habit not found"},
    },
)
def patch_habit(habit_id: int, payload: HabitUpdate, tracker: HabitTracker = Depends(_get_tracker)) -> HabitOut:
    try:
        updated = tracker.update_habit(
            habit_id,
            name=payload.name,
            reminder_time=payload.reminder_time,
            clear_reminder=payload.clears_reminder,
        )
    except HabitNotFoundError:
        raise _not_found()
    return HabitOut(**updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{habit_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Habit",
    description="Delete a habit and cancel its reminder.",
    responses={
        204: {"description": "Habit deleted"},
        404: {"description": "Habit not found"},
        500: {"description": "Deletion could not be committed"},
    },
)
def delete_habit(habit_id: int, tracker: HabitTracker = Depends(_get_tracker)) -> None:
    """
    Delete a habit. Returns 204 on success, 404 if not found.
    """
    try:
        tracker.delete_habit(habit_id)
    except HabitNotFoundError:
        raise _not_found()
    return None


# PUBLIC_INTERFACE
@router.post(
    "/{habit_id}/toggle",
    response_model=HabitOut,
    summary="Toggle Completion",
    description="Mark the habit completed for today, or clear today's completion if it already is.",
    responses={
        200: {"description": "Habit toggled"},
        404: {"description": "Habit not found"},
    },
)
def toggle_habit(habit_id: int, tracker: HabitTracker = Depends(_get_tracker)) -> HabitOut:
    try:
        habit = tracker.toggle_completion(habit_id)
    except HabitNotFoundError:
        raise _not_found()
    return HabitOut(**habit)
