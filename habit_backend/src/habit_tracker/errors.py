from __future__ import annotations


class HabitTrackerError(Exception):
    """Base class for habit tracker failures."""


class PersistenceError(HabitTrackerError):
    """A commit or fetch against the durable store failed."""


class HabitDeletionError(PersistenceError):
    """
    Deleting a habit could not be committed.

    This is the one persistence failure that is reported to the caller instead
    of only being logged.
    """


class NotificationSchedulingError(HabitTrackerError):
    """The reminder gateway rejected or failed a schedule/cancel call."""


class HabitNotFoundError(HabitTrackerError):
    def __init__(self, habit_id: int) -> None:
        super().__init__(f"Habit {habit_id} not found")
        self.habit_id = habit_id
