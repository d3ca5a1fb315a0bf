from datetime import date, datetime, time

import pytest

from habit_tracker.db import SQLiteStore
from habit_tracker.ledger import CompletionLedger
from habit_tracker.repositories import CompletionQuery
from habit_tracker.reset import LAST_RESET_KEY, DailyResetEngine


@pytest.fixture
def sqlite_store(tmp_path):
    return SQLiteStore(str(tmp_path / "data" / "habits.db"))


class TestSQLiteStore:
    def test_habit_round_trip(self, sqlite_store):
        created = sqlite_store.create_habit("Read", time(7, 30))
        assert created["id"] == 1
        assert created["reminder_time"] == time(7, 30)
        assert created["is_completed"] is False

        created["is_completed"] = True
        created["reminder_id"] = "habitReminder-1"
        saved = sqlite_store.save_habit(created)
        assert saved["is_completed"] is True
        assert sqlite_store.get_habit(1)["reminder_id"] == "habitReminder-1"

    def test_list_sorted_and_delete(self, sqlite_store):
        sqlite_store.create_habit("Walk")
        sqlite_store.create_habit("Exercise")
        assert [h["name"] for h in sqlite_store.list_habits()] == ["Exercise", "Walk"]
        assert sqlite_store.delete_habit(1) is True
        assert sqlite_store.delete_habit(1) is False
        assert sqlite_store.count_habits() == 1

    def test_completion_queries(self, sqlite_store):
        habit = sqlite_store.create_habit("Read")
        other = sqlite_store.create_habit("Walk")
        ledger = CompletionLedger(sqlite_store)
        ledger.record_completion(habit, date(2024, 1, 9), 2)
        ledger.record_completion(habit, date(2024, 1, 10), 2)
        ledger.record_completion(other, date(2024, 1, 10), 2)

        assert ledger.latest_record(habit)["day"] == date(2024, 1, 10)
        assert [r["habit_name"] for r in ledger.records_on_or_after(date(2024, 1, 10))] == ["Read", "Walk"]
        assert [r["day"] for r in ledger.records_before(date(2024, 1, 10))] == [date(2024, 1, 9)]

        items, total = sqlite_store.list_completions(CompletionQuery(limit=1, offset=1))
        assert total == 3
        assert [r["habit_name"] for r in items] == ["Walk"]

        assert ledger.clear_completion(habit, date(2024, 1, 10)) == 1
        assert ledger.latest_record(habit)["day"] == date(2024, 1, 9)

    def test_transaction_rolls_back(self, sqlite_store):
        habit = sqlite_store.create_habit("Read")
        with pytest.raises(RuntimeError):
            with sqlite_store.transaction():
                habit["is_completed"] = True
                sqlite_store.save_habit(habit)
                sqlite_store.set_value(LAST_RESET_KEY, "2024-01-10T09:00:00")
                raise RuntimeError("boom")
        assert sqlite_store.get_habit(habit["id"])["is_completed"] is False
        assert sqlite_store.get_value(LAST_RESET_KEY) is None

    def test_reset_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "habits.db")
        store = SQLiteStore(path)
        ledger = CompletionLedger(store)
        habit = store.create_habit("Read", is_completed=True)
        ledger.record_completion(habit, date(2024, 1, 9), 1)

        DailyResetEngine(store, ledger).run(datetime(2024, 1, 10, 8, 0))

        reopened = SQLiteStore(path)
        assert reopened.get_habit(habit["id"])["is_completed"] is False
        assert reopened.get_value(LAST_RESET_KEY) == "2024-01-10T08:00:00"
