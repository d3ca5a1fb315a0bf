from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .errors import PersistenceError
from .events import RESET_APPLIED, EventBus
from .ledger import CompletionLedger
from .models import HabitEntity
from .repositories import Store
from .settings import TrackerConfig
from .utils import FAR_PAST, is_same_day

logger = logging.getLogger(__name__)

LAST_RESET_KEY = "last_reset_date"


class ResetState(str, Enum):
    IDLE = "idle"
    RESETTING = "resetting"


@dataclass(frozen=True)
class ResetOutcome:
    """
    Result of one reset check.

    ``performed`` is True only when the cleared flags and the new marker were
    committed together.
    """
    performed: bool
    last_reset_date: Optional[datetime]
    reset_habit_ids: List[int] = field(default_factory=list)
    error: Optional[str] = None


# PUBLIC_INTERFACE
class DailyResetEngine:
    """
    Clears "completed today" flags once per calendar day.

    On each trigger the stored last-reset date is compared with ``now``. On a
    new day, every habit whose latest completion record predates today loses
    its flag, and the flags plus the new marker are committed in one
    transaction. Habits that were never recorded are left as they are.

    The configured reset time is not consulted: the reset happens on the first
    trigger of a new day.
    """

    def __init__(
        self,
        store: Store,
        ledger: CompletionLedger,
        config: Optional[TrackerConfig] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._config = config or TrackerConfig()
        self._events = events or EventBus()
        self.state = ResetState.IDLE

    def last_reset_date(self) -> datetime:
        raw = self._store.get_value(LAST_RESET_KEY)
        if not raw:
            return FAR_PAST
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unreadable %s marker %r", LAST_RESET_KEY, raw)
            return FAR_PAST

    def run(self, now: datetime) -> ResetOutcome:
        try:
            last = self.last_reset_date()
        except PersistenceError as e:
            logger.exception("Could not read the last reset date")
            return ResetOutcome(performed=False, last_reset_date=None, error=str(e))

        if is_same_day(last, now):
            return ResetOutcome(performed=False, last_reset_date=last)

        self.state = ResetState.RESETTING
        try:
            return self._reset(last, now)
        finally:
            self.state = ResetState.IDLE

    def _reset(self, last: datetime, now: datetime) -> ResetOutcome:
        today = now.date()
        logger.debug(
            "Resetting on activation for %s (reset time %s is display-only)", today, self._config.reset_time
        )
        stale: List[HabitEntity] = []
        try:
            for habit in self._store.list_habits():
                latest = self._ledger.latest_record(habit)
                if latest is not None and latest["day"] < today and habit["is_completed"]:
                    habit["is_completed"] = False
                    stale.append(habit)

            with self._store.transaction():
                for habit in stale:
                    self._store.save_habit(habit)
                self._store.set_value(LAST_RESET_KEY, now.isoformat())
        except PersistenceError as e:
            logger.exception("Daily reset for %s failed; will retry on next activation", today)
            return ResetOutcome(performed=False, last_reset_date=last, error=str(e))

        reset_ids = [h["id"] for h in stale]
        logger.info("Daily reset for %s cleared %d habit(s)", today, len(reset_ids))
        self._events.publish(RESET_APPLIED, day=today, habit_ids=reset_ids)
        return ResetOutcome(performed=True, last_reset_date=now, reset_habit_ids=reset_ids)
