from __future__ import annotations

import logging
from datetime import date, time
from typing import Iterable, List, Optional

from .errors import HabitDeletionError, HabitNotFoundError, PersistenceError
from .events import HABIT_ADDED, HABIT_DELETED, HABIT_TOGGLED, HABIT_UPDATED, EventBus
from .ledger import CompletionLedger
from .models import HabitEntity
from .reminders import ReminderDispatcher, reminder_identifier
from .repositories import Store
from .settings import TrackerConfig

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200


def _clean_name(name: str) -> str:
    s = (name or "").strip()
    if not (1 <= len(s) <= MAX_NAME_LENGTH):
        raise ValueError(f"habit name length must be between 1 and {MAX_NAME_LENGTH} characters")
    return s


def _clean_time(value: time) -> time:
    return value.replace(second=0, microsecond=0, tzinfo=None)


# PUBLIC_INTERFACE
class HabitRegistry:
    """
    The set of habit definitions and the operations the user performs on them.

    Every mutation is committed right away. A failed commit is logged and the
    in-memory habit returned as-is; the next successful commit catches the
    store up. Deleting is the exception: a failed delete raises
    HabitDeletionError.
    """

    def __init__(
        self,
        store: Store,
        ledger: CompletionLedger,
        reminders: ReminderDispatcher,
        config: Optional[TrackerConfig] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._reminders = reminders
        self._config = config or TrackerConfig()
        self._events = events or EventBus()

    def list(self) -> List[HabitEntity]:
        """Habits sorted by name ascending."""
        try:
            return self._store.list_habits()
        except PersistenceError:
            logger.exception("Failed to fetch habits")
            return []

    def get(self, habit_id: int) -> HabitEntity:
        habit = self._store.get_habit(habit_id)
        if habit is None:
            raise HabitNotFoundError(habit_id)
        return habit

    def _commit(self, habit: HabitEntity, action: str) -> HabitEntity:
        try:
            saved = self._store.save_habit(habit)
        except PersistenceError:
            logger.exception("Failed to save habit %s after %s", habit["id"], action)
            return habit
        if saved is None:
            raise HabitNotFoundError(habit["id"])
        return saved

    def add(self, name: str, reminder_time: Optional[time] = None) -> Optional[HabitEntity]:
        """
        Create a habit, not yet completed, and schedule its reminder if it has one.

        Raises:
            ValueError: if the name is blank or too long.

        Returns:
            The new habit, or None if it could not be stored.
        """
        clean = _clean_name(name)
        reminder = _clean_time(reminder_time) if reminder_time is not None else None
        try:
            habit = self._store.create_habit(clean, reminder)
        except PersistenceError:
            logger.exception("Failed to save new habit %r", clean)
            return None

        identifier = self._reminders.schedule_for(habit)
        if identifier is not None:
            habit["reminder_id"] = identifier
            habit = self._commit(habit, "scheduling its reminder")

        logger.info("Added habit %s %r", habit["id"], habit["name"])
        self._events.publish(HABIT_ADDED, habit=habit)
        return habit

    def update(
        self,
        habit_id: int,
        name: Optional[str] = None,
        reminder_time: Optional[time] = None,
        clear_reminder: bool = False,
    ) -> HabitEntity:
        """
        Rename a habit and/or change its reminder.

        A habit that keeps a reminder gets it rescheduled under the same
        identifier (the title carries the name). ``clear_reminder`` removes the
        reminder time and cancels the pending reminder.
        """
        habit = self.get(habit_id)
        if name is not None:
            habit["name"] = _clean_name(name)
        if clear_reminder:
            habit["reminder_time"] = None
        elif reminder_time is not None:
            habit["reminder_time"] = _clean_time(reminder_time)
        habit = self._commit(habit, "update")

        if habit["reminder_time"] is None:
            if habit["reminder_id"] is not None:
                self._reminders.cancel(habit["reminder_id"])
                habit["reminder_id"] = None
                habit = self._commit(habit, "cancelling its reminder")
        elif habit["reminder_id"] is not None:
            self._reminders.reschedule(habit)
        else:
            identifier = self._reminders.schedule_for(habit)
            if identifier is not None:
                habit["reminder_id"] = identifier
                habit = self._commit(habit, "scheduling its reminder")

        self._events.publish(HABIT_UPDATED, habit=habit)
        return habit

    def delete(self, habit_id: int) -> None:
        """
        Remove a habit and cancel its reminder once.

        The reminder is cancelled only after the removal is committed, using
        the stored reminder id or the habit's deterministic identifier.

        Raises:
            HabitNotFoundError: unknown habit.
            HabitDeletionError: the removal could not be committed.
        """
        habit = self.get(habit_id)
        try:
            with self._store.transaction():
                if self._config.cascade_completions_on_delete:
                    self._ledger.purge_habit(habit_id)
                self._store.delete_habit(habit_id)
        except PersistenceError as e:
            logger.error("Could not delete habit %s: %s", habit_id, e)
            raise HabitDeletionError(f"Could not delete habit {habit_id}") from e

        self._reminders.cancel(habit["reminder_id"] or reminder_identifier(habit_id))
        logger.info("Deleted habit %s %r", habit_id, habit["name"])
        self._events.publish(HABIT_DELETED, habit_id=habit_id)

    def refresh_reminders(self, habit_ids: Iterable[int]) -> None:
        """
        Reschedule the reminders of habits that became incomplete again, so a
        reminder time edited while the habit was completed takes effect.
        """
        for habit_id in habit_ids:
            try:
                habit = self._store.get_habit(habit_id)
            except PersistenceError:
                logger.exception("Failed to fetch habit %s for its reminder", habit_id)
                continue
            if habit is None or habit["reminder_time"] is None:
                continue
            identifier = self._reminders.reschedule(habit)
            if identifier is not None and habit["reminder_id"] is None:
                habit["reminder_id"] = identifier
                self._commit(habit, "rescheduling its reminder")

    def toggle_completion(self, habit_id: int, today: date) -> HabitEntity:
        """
        Flip the "completed today" flag, keeping the ledger in step: checking
        records a completion for ``today`` stamped with the current habit
        count, unchecking clears today's records.
        """
        habit = self.get(habit_id)
        if habit["is_completed"]:
            self._ledger.clear_completion(habit, today)
            habit["is_completed"] = False
        else:
            self._ledger.record_completion(habit, today, len(self.list()))
            habit["is_completed"] = True
        habit = self._commit(habit, "toggle")

        self._events.publish(HABIT_TOGGLED, habit=habit, day=today)
        return habit
