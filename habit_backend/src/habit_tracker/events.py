from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

HABIT_ADDED = "habit.added"
HABIT_UPDATED = "habit.updated"
HABIT_DELETED = "habit.deleted"
HABIT_TOGGLED = "habit.toggled"
COMPLETION_RECORDED = "completion.recorded"
COMPLETION_CLEARED = "completion.cleared"
COMPLETION_DELETED = "completion.deleted"
RESET_APPLIED = "reset.applied"


@dataclass(frozen=True)
class ChangeEvent:
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[ChangeEvent], None]


# PUBLIC_INTERFACE
class EventBus:
    """
    Change notification channel between the core and the display layer.

    Subscribers are called synchronously, in subscription order, on the
    publisher's sequence. A failing subscriber is logged and skipped.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, kind: str, **payload: Any) -> ChangeEvent:
        event = ChangeEvent(kind=kind, payload=payload)
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber %r failed handling %s", callback, kind)
        return event
