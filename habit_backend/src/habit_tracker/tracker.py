from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from functools import lru_cache
from threading import RLock
from typing import Callable, List, Optional, Tuple

from .errors import PersistenceError
from .events import EventBus
from .history import History, build_history
from .ledger import CompletionLedger
from .logging_config import configure_logging
from .models import CompletionRecordEntity, HabitEntity
from .registry import HabitRegistry
from .reminders import (
    InMemoryReminderGateway,
    PendingReminder,
    ReminderDispatcher,
    ReminderGateway,
    habit_id_from_identifier,
)
from .repositories import CompletionQuery, Store, get_store
from .reset import DailyResetEngine, ResetOutcome
from .settings import TrackerConfig, get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class Preferences:
    """User preferences shown by the display layer. The core does not act on them."""
    notifications_enabled: bool
    dark_mode_enabled: bool
    reset_time: time


_PREF_KEYS = {
    "notifications_enabled": "pref.notifications_enabled",
    "dark_mode_enabled": "pref.dark_mode_enabled",
    "reset_time": "pref.reset_time",
}


# PUBLIC_INTERFACE
class HabitTracker:
    """
    Wires the store, ledger, registry, reset engine and reminders together.

    All public operations run under one re-entrant lock, so the app behaves as
    a single logical sequence even when the HTTP layer calls it from worker
    threads. ``clock`` supplies "now" for resets and toggles.
    """

    def __init__(
        self,
        store: Store,
        gateway: Optional[ReminderGateway] = None,
        config: Optional[TrackerConfig] = None,
        clock: Optional[Clock] = None,
        executor: Optional[Executor] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self._lock = RLock()
        self._clock = clock or datetime.now
        self.config = config or TrackerConfig()
        self.store = store
        self.events = events or EventBus()
        self.reminders = ReminderDispatcher(
            gateway or InMemoryReminderGateway(self._clock), self.config, executor
        )
        self.ledger = CompletionLedger(store, self.events)
        self.registry = HabitRegistry(store, self.ledger, self.reminders, self.config, self.events)
        self.reset_engine = DailyResetEngine(store, self.ledger, self.config, self.events)

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    # Lifecycle triggers

    def activate(self) -> ResetOutcome:
        """Application launch."""
        with self._lock:
            return self._run_reset()

    def enter_foreground(self) -> ResetOutcome:
        """Return to foreground; same check as launch."""
        with self._lock:
            return self._run_reset()

    def _run_reset(self) -> ResetOutcome:
        outcome = self.reset_engine.run(self.now())
        if outcome.performed:
            self.registry.refresh_reminders(outcome.reset_habit_ids)
        return outcome

    # Habits

    def list_habits(self) -> List[HabitEntity]:
        with self._lock:
            return self.registry.list()

    def get_habit(self, habit_id: int) -> HabitEntity:
        with self._lock:
            return self.registry.get(habit_id)

    def add_habit(self, name: str, reminder_time: Optional[time] = None) -> Optional[HabitEntity]:
        with self._lock:
            return self.registry.add(name, reminder_time)

    def update_habit(
        self,
        habit_id: int,
        name: Optional[str] = None,
        reminder_time: Optional[time] = None,
        clear_reminder: bool = False,
    ) -> HabitEntity:
        with self._lock:
            return self.registry.update(habit_id, name=name, reminder_time=reminder_time, clear_reminder=clear_reminder)

    def delete_habit(self, habit_id: int) -> None:
        with self._lock:
            self.registry.delete(habit_id)

    def toggle_completion(self, habit_id: int) -> HabitEntity:
        with self._lock:
            return self.registry.toggle_completion(habit_id, self.today())

    # History

    def history(self, reference: Optional[date] = None) -> History:
        with self._lock:
            return build_history(self.ledger.all_records(), reference or self.today())

    def completion_page(self, query: CompletionQuery) -> Tuple[List[CompletionRecordEntity], int]:
        with self._lock:
            return self.ledger.page(query)

    def delete_record(self, record_id: int) -> bool:
        with self._lock:
            return self.ledger.delete_record(record_id)

    # Reminders

    def pending_reminders(self) -> List[PendingReminder]:
        """Pending reminders, each named after the habit its identifier points at."""
        with self._lock:
            return [replace(r, habit_name=self._reminder_habit_name(r)) for r in self.reminders.pending()]

    def _reminder_habit_name(self, reminder: PendingReminder) -> str:
        habit_id = habit_id_from_identifier(reminder.identifier)
        if habit_id is not None:
            try:
                habit = self.store.get_habit(habit_id)
            except PersistenceError:
                logger.exception("Failed to fetch habit %s for its reminder", habit_id)
                habit = None
            if habit is not None:
                return habit["name"]
        return reminder.name_from_title

    def cancel_reminder(self, identifier: str) -> None:
        with self._lock:
            self.reminders.cancel(identifier)

    # Preferences

    def preferences(self) -> Preferences:
        with self._lock:
            get = self.store.get_value
            notifications = get(_PREF_KEYS["notifications_enabled"])
            dark_mode = get(_PREF_KEYS["dark_mode_enabled"])
            reset_time = get(_PREF_KEYS["reset_time"])
            return Preferences(
                notifications_enabled=(
                    notifications == "true" if notifications is not None else self.config.notifications_enabled
                ),
                dark_mode_enabled=dark_mode == "true",
                reset_time=time.fromisoformat(reset_time) if reset_time else self.config.reset_time,
            )

    def update_preferences(
        self,
        notifications_enabled: Optional[bool] = None,
        dark_mode_enabled: Optional[bool] = None,
        reset_time: Optional[time] = None,
    ) -> Preferences:
        with self._lock:
            current = self.preferences()
            updated = replace(
                current,
                notifications_enabled=(
                    current.notifications_enabled if notifications_enabled is None else notifications_enabled
                ),
                dark_mode_enabled=current.dark_mode_enabled if dark_mode_enabled is None else dark_mode_enabled,
                reset_time=current.reset_time if reset_time is None else reset_time.replace(second=0, microsecond=0),
            )
            try:
                with self.store.transaction():
                    self.store.set_value(_PREF_KEYS["notifications_enabled"], str(updated.notifications_enabled).lower())
                    self.store.set_value(_PREF_KEYS["dark_mode_enabled"], str(updated.dark_mode_enabled).lower())
                    self.store.set_value(_PREF_KEYS["reset_time"], updated.reset_time.strftime("%H:%M"))
            except PersistenceError:
                logger.exception("Failed to save preferences")
            return updated


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_tracker() -> HabitTracker:
    """Process-wide tracker built from settings."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    return HabitTracker(get_store(), config=TrackerConfig.from_settings(settings))
