from datetime import datetime, timedelta
from typing import List, Tuple

import pytest

from habit_tracker.reminders import InMemoryReminderGateway
from habit_tracker.repositories import InMemoryStore
from habit_tracker.settings import TrackerConfig
from habit_tracker.tracker import HabitTracker


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingGateway(InMemoryReminderGateway):
    def __init__(self, clock) -> None:
        super().__init__(clock)
        self.scheduled: List[Tuple[str, str, str, int, int]] = []
        self.cancelled: List[str] = []

    def schedule(self, identifier, title, body, hour, minute):
        self.scheduled.append((identifier, title, body, hour, minute))
        return super().schedule(identifier, title, body, hour, minute)

    def cancel(self, identifier):
        self.cancelled.append(identifier)
        super().cancel(identifier)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 10, 9, 0))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def gateway(clock):
    return RecordingGateway(clock)


@pytest.fixture
def tracker(store, gateway, clock):
    return HabitTracker(store, gateway=gateway, config=TrackerConfig(), clock=clock)
