from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from ..schemas import PreferencesOut, PreferencesUpdate, ResetOutcomeOut
from ..tracker import HabitTracker, get_tracker

router = APIRouter(prefix="/api/v1")


def _get_tracker(tracker: HabitTracker = Depends(get_tracker)) -> HabitTracker:
    return tracker


# PUBLIC_INTERFACE
@router.get(
    "/preferences/",
    response_model=PreferencesOut,
    tags=["preferences"],
    summary="Get Preferences",
)
def get_preferences(tracker: HabitTracker = Depends(_get_tracker)) -> PreferencesOut:
    return PreferencesOut(**asdict(tracker.preferences()))


# PUBLIC_INTERFACE
@router.patch(
    "/preferences/",
    response_model=PreferencesOut,
    tags=["preferences"],
    summary="Update Preferences",
    description="Store display preferences. The daily reset still runs on activation, not at reset_time.",
)
def patch_preferences(payload: PreferencesUpdate, tracker: HabitTracker = Depends(_get_tracker)) -> PreferencesOut:
    prefs = tracker.update_preferences(
        notifications_enabled=payload.notifications_enabled,
        dark_mode_enabled=payload.dark_mode_enabled,
        reset_time=payload.reset_time,
    )
    return PreferencesOut(**asdict(prefs))


# PUBLIC_INTERFACE
@router.post(
    "/lifecycle/foreground",
    response_model=ResetOutcomeOut,
    tags=["lifecycle"],
    summary="Enter Foreground",
    description="Signal that the app returned to the foreground; runs the daily reset check.",
)
def enter_foreground(tracker: HabitTracker = Depends(_get_tracker)) -> ResetOutcomeOut:
    return ResetOutcomeOut(**asdict(tracker.enter_foreground()))
