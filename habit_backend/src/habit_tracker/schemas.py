from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _validate_name(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("name length must be between 1 and 200 characters")
    return s


def _truncate_time(v: Optional[time]) -> Optional[time]:
    # Reminders repeat on hour and minute only
    if v is None:
        return v
    return v.replace(second=0, microsecond=0, tzinfo=None)


# PUBLIC_INTERFACE
class HabitCreate(BaseModel):
    """
    Schema for creating a new habit.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Read",
                "reminder_time": "07:30",
            }
        }
    )

    name: str = Field(..., description="Display name of the habit", min_length=1, max_length=200)
    reminder_time: Optional[time] = Field(
        default=None, description="Time of day (HH:MM) of the daily reminder; omit for no reminder"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _validate_name(v)

    @field_validator("reminder_time")
    @classmethod
    def validate_reminder_time(cls, v: Optional[time]) -> Optional[time]:
        return _truncate_time(v)


# PUBLIC_INTERFACE
class HabitUpdate(BaseModel):
    """
    Schema for editing a habit.
    Only provided fields are changed; an explicit null reminder_time removes the reminder.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Read 20 pages",
                "reminder_time": "21:00",
            }
        }
    )

    name: Optional[str] = Field(default=None, description="Display name of the habit", min_length=1, max_length=200)
    reminder_time: Optional[time] = Field(default=None, description="Time of day (HH:MM) of the daily reminder")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _validate_name(v)

    @field_validator("reminder_time")
    @classmethod
    def validate_reminder_time(cls, v: Optional[time]) -> Optional[time]:
        return _truncate_time(v)

    @property
    def clears_reminder(self) -> bool:
        return "reminder_time" in self.model_fields_set and self.reminder_time is None


# PUBLIC_INTERFACE
class HabitOut(BaseModel):
    """
    Schema returned by the API for a habit.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "name": "Read",
                "is_completed": False,
                "reminder_time": "07:30:00",
                "reminder_id": "habitReminder-1",
                "created_at": "2024-01-10T08:00:00",
                "updated_at": "2024-01-10T08:00:00",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the habit")
    name: str = Field(..., description="Display name of the habit")
    is_completed: bool = Field(..., description="Whether the habit was completed today")
    reminder_time: Optional[time] = Field(default=None, description="Time of day of the daily reminder")
    reminder_id: Optional[str] = Field(default=None, description="Identifier of the scheduled reminder")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


# PUBLIC_INTERFACE
class CompletionRecordOut(BaseModel):
    """
    Schema returned by the API for a completion record.
    """

    id: int = Field(..., description="Unique identifier of the record")
    habit_id: int = Field(..., description="Id of the completed habit")
    habit_name: str = Field(..., description="Habit name when it was completed")
    day: date = Field(..., description="Calendar day of the completion")
    total_habits: int = Field(..., description="Number of habits when the completion was recorded")
    created_at: datetime = Field(..., description="Recording timestamp")


class DaySummaryOut(BaseModel):
    day: date = Field(..., description="Calendar day")
    label: str = Field(..., description="'Today', 'Yesterday' or e.g. 'Monday, 8 January'")
    completed: int = Field(..., description="Number of completions on the day")
    total_habits: int = Field(..., description="Number of habits on the day")
    records: List[CompletionRecordOut] = Field(..., description="Completions in recording order")


# PUBLIC_INTERFACE
class HistoryOut(BaseModel):
    """
    Completion history grouped by day: today and yesterday first, older days separately.
    """

    reference_date: date = Field(..., description="Day treated as 'today'")
    recent: List[DaySummaryOut] = Field(..., description="Today and yesterday, newest first")
    older: List[DaySummaryOut] = Field(..., description="Every other day, newest first")


class CompletionPage(BaseModel):
    """
    Envelope for paginated completion record listings.
    """
    items: List[CompletionRecordOut] = Field(..., description="List of completion records")
    total: int = Field(..., description="Total number of records matching the query")
    limit: int = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


# PUBLIC_INTERFACE
class ReminderOut(BaseModel):
    """
    A pending daily reminder.
    """

    identifier: str = Field(..., description="Reminder identifier")
    habit_name: str = Field(..., description="Habit name taken from the reminder title")
    title: str = Field(..., description="Notification title")
    body: str = Field(..., description="Notification body")
    hour: int = Field(..., description="Hour of day the reminder fires")
    minute: int = Field(..., description="Minute the reminder fires")
    next_fire_date: datetime = Field(..., description="Next time the reminder fires")


# PUBLIC_INTERFACE
class PreferencesOut(BaseModel):
    notifications_enabled: bool = Field(..., description="Whether the user wants notifications")
    dark_mode_enabled: bool = Field(..., description="Whether the dark theme is selected")
    reset_time: time = Field(..., description="Daily reset time shown in settings")


class PreferencesUpdate(BaseModel):
    notifications_enabled: Optional[bool] = None
    dark_mode_enabled: Optional[bool] = None
    reset_time: Optional[time] = None


# PUBLIC_INTERFACE
class ResetOutcomeOut(BaseModel):
    """
    Result of a daily reset check.
    """

    performed: bool = Field(..., description="True if flags were cleared and the reset date advanced")
    last_reset_date: Optional[datetime] = Field(default=None, description="Stored last reset date")
    reset_habit_ids: List[int] = Field(default_factory=list, description="Habits whose flag was cleared")
    error: Optional[str] = Field(default=None, description="Persistence error, if the reset failed")
