from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Callable, Dict, List, Optional, Tuple

from .errors import NotificationSchedulingError
from .models import HabitEntity
from .settings import TrackerConfig
from .utils import next_occurrence

logger = logging.getLogger(__name__)

IDENTIFIER_PREFIX = "habitReminder-"


@dataclass(frozen=True)
class PendingReminder:
    identifier: str
    title: str
    body: str
    hour: int
    minute: int
    next_fire_date: datetime
    # Filled in by the tracker from the habit the identifier points at
    habit_name: Optional[str] = None

    @property
    def name_from_title(self) -> str:
        # Titles read "Reminder - <name>"; names containing "-" get cut
        return self.title.split("-")[-1].strip()


# PUBLIC_INTERFACE
class ReminderGateway(ABC):
    """Schedules daily repeating local notifications, keyed by identifier."""

    @abstractmethod
    def schedule(self, identifier: str, title: str, body: str, hour: int, minute: int) -> str:
        """
        Schedule (or replace) a reminder repeating every day at hour:minute.
        Return its identifier. Raises NotificationSchedulingError on rejection.
        """

    @abstractmethod
    def cancel(self, identifier: str) -> None:
        """Remove a pending reminder. Unknown identifiers are ignored."""

    @abstractmethod
    def list_pending(self) -> List[PendingReminder]:
        """Return pending reminders ordered by next fire date."""


class InMemoryReminderGateway(ReminderGateway):
    """
    In-process reminder registry. It keeps the pending requests and computes
    their next fire date; delivering them is left to whatever polls it.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or datetime.now
        self._lock = RLock()
        self._pending: Dict[str, Tuple[str, str, int, int]] = {}

    def schedule(self, identifier: str, title: str, body: str, hour: int, minute: int) -> str:
        if not identifier:
            raise NotificationSchedulingError("Reminder identifier must not be empty")
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise NotificationSchedulingError(f"Invalid reminder time {hour:02d}:{minute:02d}")
        with self._lock:
            self._pending[identifier] = (title, body, hour, minute)
        return identifier

    def cancel(self, identifier: str) -> None:
        with self._lock:
            self._pending.pop(identifier, None)

    def list_pending(self) -> List[PendingReminder]:
        now = self._clock()
        with self._lock:
            items = [
                PendingReminder(
                    identifier=identifier,
                    title=title,
                    body=body,
                    hour=hour,
                    minute=minute,
                    next_fire_date=next_occurrence(now, hour, minute),
                )
                for identifier, (title, body, hour, minute) in self._pending.items()
            ]
        return sorted(items, key=lambda r: r.next_fire_date)


def reminder_identifier(habit_id: int) -> str:
    """Deterministic reminder identifier of a habit."""
    return f"{IDENTIFIER_PREFIX}{habit_id}"


def habit_id_from_identifier(identifier: str) -> Optional[int]:
    """Habit id encoded in a ``habitReminder-<id>`` identifier, if any."""
    if not identifier.startswith(IDENTIFIER_PREFIX):
        return None
    suffix = identifier[len(IDENTIFIER_PREFIX):]
    return int(suffix) if suffix.isdigit() else None


def reminder_title(name: str) -> str:
    return f"Reminder - {name}"


def reminder_body(name: str) -> str:
    return f"Don't forget to complete your habit: {name}"


# PUBLIC_INTERFACE
class ReminderDispatcher:
    """
    Fire-and-forget front of a ReminderGateway.

    Calls are handed to ``executor`` when one is given, otherwise run inline.
    Either way the caller does not wait on the outcome: failures are only
    logged.
    """

    def __init__(
        self,
        gateway: ReminderGateway,
        config: Optional[TrackerConfig] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._gateway = gateway
        self._config = config or TrackerConfig()
        self._executor = executor

    def schedule_for(self, habit: HabitEntity, identifier: Optional[str] = None) -> Optional[str]:
        """
        Schedule the daily reminder of ``habit``.

        Nothing is scheduled unless ``wants_reminder`` holds for the habit.

        Returns:
            The reminder identifier, or None when nothing was dispatched.
        """
        reminder_time = habit["reminder_time"]
        if not self.wants_reminder(habit) or reminder_time is None:
            return None

        identifier = identifier or reminder_identifier(habit["id"])
        self._dispatch(
            "schedule",
            identifier,
            self._gateway.schedule,
            identifier,
            reminder_title(habit["name"]),
            reminder_body(habit["name"]),
            reminder_time.hour,
            reminder_time.minute,
        )
        return identifier

    def wants_reminder(self, habit: HabitEntity) -> bool:
        return (
            self._config.notifications_enabled
            and habit["reminder_time"] is not None
            and not habit["is_completed"]
        )

    def reschedule(self, habit: HabitEntity) -> Optional[str]:
        """
        Replace the reminder of ``habit`` under its existing identifier. A
        habit that should not be reminded keeps whatever is pending.
        """
        if not self.wants_reminder(habit):
            return None
        identifier = habit["reminder_id"] or reminder_identifier(habit["id"])
        self.cancel(identifier)
        return self.schedule_for(habit, identifier)

    def cancel(self, identifier: str) -> None:
        self._dispatch("cancel", identifier, self._gateway.cancel, identifier)

    def pending(self) -> List[PendingReminder]:
        try:
            return self._gateway.list_pending()
        except NotificationSchedulingError:
            logger.exception("Could not list pending reminders")
            return []

    def _dispatch(self, action: str, identifier: str, fn: Callable[..., object], *args: object) -> None:
        if self._executor is None:
            try:
                fn(*args)
            except NotificationSchedulingError:
                logger.exception("Reminder %s failed for %s", action, identifier)
            else:
                logger.debug("Reminder %s done for %s", action, identifier)
            return

        future = self._executor.submit(fn, *args)

        def _report(done: "Future[object]") -> None:
            exc = done.exception()
            if exc is not None:
                logger.error("Reminder %s failed for %s: %s", action, identifier, exc)
            else:
                logger.debug("Reminder %s done for %s", action, identifier)

        future.add_done_callback(_report)
