from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class HabitEntity(TypedDict):
    """
    A habit as held by the store.

    Fields:
    - id: Unique integer identifier, never reused
    - name: Display name (1..200 chars, trimmed on input; not required unique)
    - is_completed: "completed today" flag, cleared by the daily reset
    - reminder_time: Optional time-of-day of the daily reminder
    - reminder_id: Optional handle returned by the reminder gateway
    - created_at: Creation timestamp
    - updated_at: Last update timestamp
    """

    id: int
    name: str
    is_completed: bool
    reminder_time: Optional[time]
    reminder_id: Optional[str]
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class CompletionRecordEntity(TypedDict):
    """
    One completion of one habit on one calendar day.

    Fields:
    - id: Unique integer identifier of the record
    - habit_id: Stable id of the completed habit
    - habit_name: Habit name at the time of completion, for history display
    - day: Calendar day the completion applies to
    - total_habits: Number of habits that existed when the record was created
    - created_at: Insertion timestamp
    """

    id: int
    habit_id: int
    habit_name: str
    day: date
    total_habits: int
    created_at: datetime
