from datetime import date, datetime

from habit_tracker.errors import PersistenceError
from habit_tracker.events import RESET_APPLIED, EventBus
from habit_tracker.ledger import CompletionLedger
from habit_tracker.repositories import InMemoryStore
from habit_tracker.reset import LAST_RESET_KEY, DailyResetEngine, ResetState


class FailingMarkerStore(InMemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_marker = True

    def set_value(self, key, value):
        if self.fail_marker and key == LAST_RESET_KEY:
            raise PersistenceError("locked")
        super().set_value(key, value)


class UnreadableLedgerStore(InMemoryStore):
    def list_completions(self, query=None):
        raise PersistenceError("disk I/O error")


def make_engine(store, events=None):
    ledger = CompletionLedger(store)
    return DailyResetEngine(store, ledger, events=events), ledger


def completed_habit(store, ledger, name, day):
    habit = store.create_habit(name, is_completed=True)
    ledger.record_completion(habit, day, store.count_habits())
    return store.get_habit(habit["id"])


class TestDailyReset:
    def test_clears_habit_completed_yesterday(self, store):
        engine, ledger = make_engine(store)
        store.set_value(LAST_RESET_KEY, datetime(2024, 1, 9, 8, 0).isoformat())
        habit = completed_habit(store, ledger, "Read", date(2024, 1, 9))

        outcome = engine.run(datetime(2024, 1, 10, 7, 30))

        assert outcome.performed is True
        assert outcome.reset_habit_ids == [habit["id"]]
        assert store.get_habit(habit["id"])["is_completed"] is False
        assert engine.last_reset_date() == datetime(2024, 1, 10, 7, 30)
        assert engine.last_reset_date().date() == date(2024, 1, 10)

    def test_same_day_is_noop(self, store):
        engine, ledger = make_engine(store)
        habit = completed_habit(store, ledger, "Read", date(2024, 1, 10))
        store.set_value(LAST_RESET_KEY, datetime(2024, 1, 10, 0, 5).isoformat())

        outcome = engine.run(datetime(2024, 1, 10, 23, 59))

        assert outcome.performed is False
        assert store.get_habit(habit["id"])["is_completed"] is True

    def test_record_from_today_is_kept(self, store):
        engine, ledger = make_engine(store)
        habit = completed_habit(store, ledger, "Read", date(2024, 1, 10))

        outcome = engine.run(datetime(2024, 1, 10, 12, 0))

        assert outcome.performed is True
        assert outcome.reset_habit_ids == []
        assert store.get_habit(habit["id"])["is_completed"] is True

    def test_next_day_clears_flag(self, store):
        engine, ledger = make_engine(store)
        habit = completed_habit(store, ledger, "Read", date(2024, 1, 10))
        engine.run(datetime(2024, 1, 10, 12, 0))

        engine.run(datetime(2024, 1, 11, 6, 0))

        assert store.get_habit(habit["id"])["is_completed"] is False

    def test_habit_without_records_is_untouched(self, store):
        engine, _ = make_engine(store)
        seeded = store.create_habit("Seeded", is_completed=True)
        fresh = store.create_habit("Fresh")

        engine.run(datetime(2024, 1, 10, 9, 0))
        engine.run(datetime(2024, 1, 11, 9, 0))

        assert store.get_habit(seeded["id"])["is_completed"] is True
        assert store.get_habit(fresh["id"])["is_completed"] is False

    def test_unset_marker_counts_as_far_past(self, store):
        engine, ledger = make_engine(store)
        habit = completed_habit(store, ledger, "Read", date(2023, 12, 31))

        outcome = engine.run(datetime(2024, 1, 10, 9, 0))

        assert outcome.performed is True
        assert store.get_habit(habit["id"])["is_completed"] is False

    def test_publishes_reset_event_and_returns_to_idle(self, store):
        bus = EventBus()
        seen = []
        bus.subscribe(seen.append)
        engine, ledger = make_engine(store, bus)
        completed_habit(store, ledger, "Read", date(2024, 1, 9))

        engine.run(datetime(2024, 1, 10, 9, 0))

        assert engine.state is ResetState.IDLE
        assert seen[-1].kind == RESET_APPLIED
        assert seen[-1].payload["day"] == date(2024, 1, 10)


class TestResetFailures:
    def test_failed_commit_changes_nothing_and_retries(self):
        store = FailingMarkerStore()
        engine, ledger = make_engine(store)
        habit = completed_habit(store, ledger, "Read", date(2024, 1, 9))

        outcome = engine.run(datetime(2024, 1, 10, 9, 0))

        assert outcome.performed is False
        assert outcome.error is not None
        assert store.get_value(LAST_RESET_KEY) is None
        assert store.get_habit(habit["id"])["is_completed"] is True
        assert engine.state is ResetState.IDLE

        store.fail_marker = False
        outcome = engine.run(datetime(2024, 1, 10, 9, 5))

        assert outcome.performed is True
        assert store.get_habit(habit["id"])["is_completed"] is False

    def test_failed_fetch_aborts_without_marker(self):
        store = UnreadableLedgerStore()
        engine, _ = make_engine(store)
        habit = store.create_habit("Read", is_completed=True)

        outcome = engine.run(datetime(2024, 1, 10, 9, 0))

        assert outcome.performed is False
        assert outcome.error is not None
        assert store.get_value(LAST_RESET_KEY) is None
        assert store.get_habit(habit["id"])["is_completed"] is True
        assert engine.state is ResetState.IDLE
