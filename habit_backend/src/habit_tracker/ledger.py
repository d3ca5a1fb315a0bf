from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import List, Optional

from .errors import PersistenceError
from .events import COMPLETION_CLEARED, COMPLETION_DELETED, COMPLETION_RECORDED, EventBus
from .models import CompletionRecordEntity, HabitEntity
from .repositories import CompletionQuery, Store

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class CompletionLedger:
    """
    Log of per-habit, per-day completion events.

    Records are keyed by the habit's stable id; the habit name is kept only as
    a display snapshot. There is at most one record per (habit, day): recording
    clears the day first, and unchecking clears it.

    Mutations commit immediately. Persistence failures are logged and reported
    through the return value, never raised.
    """

    def __init__(self, store: Store, events: Optional[EventBus] = None) -> None:
        self._store = store
        self._events = events or EventBus()

    def record_completion(self, habit: HabitEntity, day: date, total_habits: int) -> Optional[CompletionRecordEntity]:
        """
        Record that ``habit`` was completed on ``day``.

        Args:
            habit: The completed habit.
            day: Calendar day the completion applies to.
            total_habits: Habit count at recording time, kept for "N/M completed".

        Returns:
            The new record, or None if it could not be committed.
        """
        try:
            with self._store.transaction():
                self._store.delete_completions(habit["id"], day, day + timedelta(days=1))
                record = self._store.add_completion(habit["id"], habit["name"], day, total_habits)
        except PersistenceError:
            logger.exception("Failed to record completion of habit %s on %s", habit["id"], day)
            return None

        logger.debug("Recorded completion %s of habit %s on %s", record["id"], habit["id"], day)
        self._events.publish(COMPLETION_RECORDED, record=record)
        return record

    def clear_completion(self, habit: HabitEntity, day: date) -> int:
        """Delete every record of ``habit`` on ``day``. Returns the number removed."""
        try:
            removed = self._store.delete_completions(habit["id"], day, day + timedelta(days=1))
        except PersistenceError:
            logger.exception("Failed to clear completion of habit %s on %s", habit["id"], day)
            return 0

        logger.debug("Cleared %d completion(s) of habit %s on %s", removed, habit["id"], day)
        if removed:
            self._events.publish(COMPLETION_CLEARED, habit_id=habit["id"], day=day, removed=removed)
        return removed

    def delete_record(self, record_id: int) -> bool:
        """Delete a single record, as done from the history screen."""
        try:
            deleted = self._store.delete_completion(record_id)
        except PersistenceError:
            logger.exception("Failed to delete completion record %s", record_id)
            return False
        if deleted:
            self._events.publish(COMPLETION_DELETED, record_id=record_id)
        return deleted

    def purge_habit(self, habit_id: int) -> int:
        """Remove every record of a habit. Raises PersistenceError; callers own the transaction."""
        return self._store.delete_completions(habit_id)

    def latest_record(self, habit: HabitEntity) -> Optional[CompletionRecordEntity]:
        """Most recent record of ``habit``, or None. Raises PersistenceError."""
        items, _ = self._store.list_completions(CompletionQuery(habit_id=habit["id"], limit=1))
        return items[0] if items else None

    def records_on_or_after(self, day: date) -> List[CompletionRecordEntity]:
        items, _ = self._store.list_completions(CompletionQuery(start=day))
        return items

    def records_before(self, day: date) -> List[CompletionRecordEntity]:
        items, _ = self._store.list_completions(CompletionQuery(end=day))
        return items

    def records_for_habit(self, habit_id: int) -> List[CompletionRecordEntity]:
        items, _ = self._store.list_completions(CompletionQuery(habit_id=habit_id))
        return items

    def all_records(self) -> List[CompletionRecordEntity]:
        items, _ = self._store.list_completions()
        return items

    def page(self, query: CompletionQuery):
        """Return ``(records, total)`` for a paginated history listing."""
        return self._store.list_completions(query)
