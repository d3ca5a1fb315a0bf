from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time
from threading import RLock
from typing import Dict, Iterator, List, Optional, Tuple

from .models import CompletionRecordEntity, HabitEntity
from .settings import get_settings


@dataclass(frozen=True)
class CompletionQuery:
    """
    Query parameters for listing completion records.

    ``start`` is inclusive and ``end`` exclusive; both are calendar days.
    Records are ordered by day (descending by default) and by insertion order
    within a day.
    """
    habit_id: Optional[int] = None
    start: Optional[date] = None
    end: Optional[date] = None
    descending: bool = True
    limit: Optional[int] = None
    offset: int = 0


# PUBLIC_INTERFACE
class Store(ABC):
    """Abstract record store for habits, completion records and key-value markers."""

    @abstractmethod
    def transaction(self):
        """
        Context manager grouping the writes of one logical operation into a
        single commit. Nested use joins the outer transaction. If the block
        raises, none of its writes are kept.
        """

    @abstractmethod
    def create_habit(self, name: str, reminder_time: Optional[time] = None, is_completed: bool = False) -> HabitEntity:
        """Create and return a new HabitEntity."""

    @abstractmethod
    def get_habit(self, habit_id: int) -> Optional[HabitEntity]:
        """Return a HabitEntity by id, or None if not found."""

    @abstractmethod
    def save_habit(self, habit: HabitEntity) -> Optional[HabitEntity]:
        """Persist the mutable fields of a habit. Return the stored entity or None if not found."""

    @abstractmethod
    def delete_habit(self, habit_id: int) -> bool:
        """Delete a HabitEntity by id. Return True if deleted, False if not found."""

    @abstractmethod
    def list_habits(self) -> List[HabitEntity]:
        """Return every habit sorted by name ascending (ties by id)."""

    @abstractmethod
    def count_habits(self) -> int:
        """Return the number of stored habits."""

    @abstractmethod
    def add_completion(self, habit_id: int, habit_name: str, day: date, total_habits: int) -> CompletionRecordEntity:
        """Insert and return a CompletionRecordEntity."""

    @abstractmethod
    def delete_completions(self, habit_id: int, start: Optional[date] = None, end: Optional[date] = None) -> int:
        """Delete a habit's records with start <= day < end (unbounded when None). Return the count."""

    @abstractmethod
    def delete_completion(self, record_id: int) -> bool:
        """Delete one record by id. Return True if deleted, False if not found."""

    @abstractmethod
    def list_completions(self, query: Optional[CompletionQuery] = None) -> Tuple[List[CompletionRecordEntity], int]:
        """
        Return a slice of records and the total count matching the filters.
        - Filter by habit id
        - Day range [start, end)
        - Ordered by day (asc/desc), then insertion order
        - Supports limit/offset
        """

    @abstractmethod
    def get_value(self, key: str) -> Optional[str]:
        """Return a key-value entry, or None if unset."""

    @abstractmethod
    def set_value(self, key: str, value: str) -> None:
        """Set a key-value entry."""


def _completion_sort_key(descending: bool):
    # Insertion order within a day regardless of day direction
    if descending:
        return lambda r: (-r["day"].toordinal(), r["id"])
    return lambda r: (r["day"].toordinal(), r["id"])


class InMemoryStore(Store):
    """
    Thread-safe in-memory store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._habits: Dict[int, HabitEntity] = {}
        self._completions: Dict[int, CompletionRecordEntity] = {}
        self._values: Dict[str, str] = {}
        self._next_habit_id = 1
        self._next_record_id = 1
        self._tx_depth = 0

    def _now(self) -> datetime:
        return datetime.now()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._tx_depth:
                self._tx_depth += 1
                try:
                    yield
                finally:
                    self._tx_depth -= 1
                return

            snapshot = (
                {k: v.copy() for k, v in self._habits.items()},
                {k: v.copy() for k, v in self._completions.items()},
                dict(self._values),
            )
            self._tx_depth = 1
            try:
                yield
            except BaseException:
                self._habits, self._completions, self._values = snapshot
                raise
            finally:
                self._tx_depth = 0

    def create_habit(self, name: str, reminder_time: Optional[time] = None, is_completed: bool = False) -> HabitEntity:
        now = self._now()
        with self._lock:
            habit: HabitEntity = {
                "id": self._next_habit_id,
                "name": name,
                "is_completed": is_completed,
                "reminder_time": reminder_time,
                "reminder_id": None,
                "created_at": now,
                "updated_at": now,
            }
            self._next_habit_id += 1
            self._habits[habit["id"]] = habit
            return habit.copy()

    def get_habit(self, habit_id: int) -> Optional[HabitEntity]:
        with self._lock:
            item = self._habits.get(habit_id)
            return None if item is None else item.copy()

    def save_habit(self, habit: HabitEntity) -> Optional[HabitEntity]:
        with self._lock:
            existing = self._habits.get(habit["id"])
            if existing is None:
                return None
            updated = existing.copy()
            updated["name"] = habit["name"]
            updated["is_completed"] = habit["is_completed"]
            updated["reminder_time"] = habit["reminder_time"]
            updated["reminder_id"] = habit["reminder_id"]
            updated["updated_at"] = self._now()
            self._habits[habit["id"]] = updated
            return updated.copy()

    def delete_habit(self, habit_id: int) -> bool:
        with self._lock:
            return self._habits.pop(habit_id, None) is not None

    def list_habits(self) -> List[HabitEntity]:
        with self._lock:
            items = sorted(self._habits.values(), key=lambda h: (h["name"], h["id"]))
            return [h.copy() for h in items]

    def count_habits(self) -> int:
        with self._lock:
            return len(self._habits)

    def add_completion(self, habit_id: int, habit_name: str, day: date, total_habits: int) -> CompletionRecordEntity:
        with self._lock:
            record: CompletionRecordEntity = {
                "id": self._next_record_id,
                "habit_id": habit_id,
                "habit_name": habit_name,
                "day": day,
                "total_habits": total_habits,
                "created_at": self._now(),
            }
            self._next_record_id += 1
            self._completions[record["id"]] = record
            return record.copy()

    def delete_completions(self, habit_id: int, start: Optional[date] = None, end: Optional[date] = None) -> int:
        with self._lock:
            doomed = [
                r["id"]
                for r in self._completions.values()
                if r["habit_id"] == habit_id
                and (start is None or r["day"] >= start)
                and (end is None or r["day"] < end)
            ]
            for record_id in doomed:
                del self._completions[record_id]
            return len(doomed)

    def delete_completion(self, record_id: int) -> bool:
        with self._lock:
            return self._completions.pop(record_id, None) is not None

    def list_completions(self, query: Optional[CompletionQuery] = None) -> Tuple[List[CompletionRecordEntity], int]:
        q = query or CompletionQuery()
        with self._lock:
            items = [
                r
                for r in self._completions.values()
                if (q.habit_id is None or r["habit_id"] == q.habit_id)
                and (q.start is None or r["day"] >= q.start)
                and (q.end is None or r["day"] < q.end)
            ]
            total = len(items)
            items_sorted = sorted(items, key=_completion_sort_key(q.descending))

            start = max(q.offset, 0)
            end = None if q.limit is None else start + max(q.limit, 0)
            return [r.copy() for r in items_sorted[start:end]], total

    def get_value(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set_value(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value


# PUBLIC_INTERFACE
def get_store() -> Store:
    """
    Factory to return the configured store based on settings.
    - memory: InMemoryStore
    - sqlite: SQLiteStore
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteStore

        return SQLiteStore(settings.sqlite_db_path)
    return InMemoryStore()
