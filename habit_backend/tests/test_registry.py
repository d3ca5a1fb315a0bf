from concurrent.futures import ThreadPoolExecutor
from datetime import date, time

import pytest

from habit_tracker.db import SQLiteStore
from habit_tracker.errors import HabitDeletionError, HabitNotFoundError, PersistenceError
from habit_tracker.history import total_habits_on
from habit_tracker.repositories import InMemoryStore
from habit_tracker.settings import TrackerConfig
from habit_tracker.tracker import HabitTracker

DAY = date(2024, 1, 10)


class UndeletableStore(InMemoryStore):
    def delete_habit(self, habit_id):
        raise PersistenceError("database is locked")


class TestAddAndList:
    def test_add_without_reminder(self, tracker, gateway):
        habit = tracker.add_habit("  Read  ")
        assert habit["name"] == "Read"
        assert habit["is_completed"] is False
        assert habit["reminder_id"] is None
        assert gateway.scheduled == []

    def test_add_with_reminder_schedules_daily(self, tracker, gateway):
        habit = tracker.add_habit("Read", time(7, 30, 15))
        identifier = f"habitReminder-{habit['id']}"
        assert habit["reminder_time"] == time(7, 30)
        assert habit["reminder_id"] == identifier
        assert gateway.scheduled == [
            (identifier, "Reminder - Read", "Don't forget to complete your habit: Read", 7, 30)
        ]
        assert tracker.get_habit(habit["id"])["reminder_id"] == identifier

    def test_notifications_disabled_skips_scheduling(self, store, gateway, clock):
        tracker = HabitTracker(store, gateway=gateway, config=TrackerConfig(notifications_enabled=False), clock=clock)
        habit = tracker.add_habit("Read", time(7, 30))
        assert habit["reminder_id"] is None
        assert gateway.scheduled == []

    def test_blank_name_rejected(self, tracker):
        with pytest.raises(ValueError):
            tracker.add_habit("   ")

    def test_list_sorted_by_name(self, tracker):
        for name in ("Walk", "Exercise", "Read"):
            tracker.add_habit(name)
        assert [h["name"] for h in tracker.list_habits()] == ["Exercise", "Read", "Walk"]

    def test_get_unknown(self, tracker):
        with pytest.raises(HabitNotFoundError):
            tracker.get_habit(404)


class TestToggle:
    def test_toggle_records_completion(self, tracker):
        habit = tracker.add_habit("Read")
        toggled = tracker.toggle_completion(habit["id"])
        assert toggled["is_completed"] is True
        assert tracker.ledger.latest_record(habit)["day"] == DAY

    def test_toggle_twice_leaves_no_record(self, tracker):
        habit = tracker.add_habit("Read")
        tracker.toggle_completion(habit["id"])
        untoggled = tracker.toggle_completion(habit["id"])
        assert untoggled["is_completed"] is False
        assert tracker.ledger.records_for_habit(habit["id"]) == []
        assert tracker.get_habit(habit["id"])["is_completed"] is False

    def test_total_habits_stamped_at_recording(self, tracker):
        read = tracker.add_habit("Read")
        tracker.toggle_completion(read["id"])
        assert total_habits_on(tracker.ledger.all_records(), DAY) == 1

        exercise = tracker.add_habit("Exercise")
        tracker.toggle_completion(exercise["id"])

        records = {r["habit_name"]: r for r in tracker.ledger.all_records()}
        assert records["Exercise"]["total_habits"] == 2
        assert records["Read"]["total_habits"] == 1

    def test_toggle_then_next_day_reset(self, tracker, clock):
        habit = tracker.add_habit("Read")
        tracker.activate()
        tracker.toggle_completion(habit["id"])

        clock.advance(days=1)
        outcome = tracker.enter_foreground()

        assert outcome.reset_habit_ids == [habit["id"]]
        assert tracker.get_habit(habit["id"])["is_completed"] is False


class TestUpdate:
    def test_rename_reschedules_under_same_identifier(self, tracker, gateway):
        habit = tracker.add_habit("Read", time(7, 30))
        updated = tracker.update_habit(habit["id"], name="Read a book")
        identifier = habit["reminder_id"]
        assert updated["reminder_id"] == identifier
        assert gateway.cancelled == [identifier]
        assert gateway.scheduled[-1][:2] == (identifier, "Reminder - Read a book")
        assert [r.identifier for r in gateway.list_pending()] == [identifier]

    def test_adding_a_reminder_later(self, tracker, gateway):
        habit = tracker.add_habit("Read")
        updated = tracker.update_habit(habit["id"], reminder_time=time(21, 0))
        assert updated["reminder_id"] == f"habitReminder-{habit['id']}"
        assert gateway.scheduled[-1][3:] == (21, 0)

    def test_retime_while_completed_applies_after_reset(self, tracker, gateway, clock):
        habit = tracker.add_habit("Read", time(8, 0))
        tracker.activate()
        tracker.toggle_completion(habit["id"])

        tracker.update_habit(habit["id"], reminder_time=time(21, 0))
        assert [(r.hour, r.minute) for r in gateway.list_pending()] == [(8, 0)]

        clock.advance(days=1)
        tracker.enter_foreground()

        pending = gateway.list_pending()
        assert [(r.hour, r.minute) for r in pending] == [(21, 0)]
        assert [r.identifier for r in pending] == [habit["reminder_id"]]

    def test_clearing_the_reminder_cancels_it(self, tracker, gateway):
        habit = tracker.add_habit("Read", time(7, 30))
        updated = tracker.update_habit(habit["id"], clear_reminder=True)
        assert updated["reminder_time"] is None
        assert updated["reminder_id"] is None
        assert gateway.cancelled == [habit["reminder_id"]]
        assert gateway.list_pending() == []


class TestDelete:
    def test_delete_cancels_reminder_once(self, tracker, gateway):
        habit = tracker.add_habit("Read", time(7, 30))
        tracker.delete_habit(habit["id"])
        assert gateway.cancelled == [f"habitReminder-{habit['id']}"]
        with pytest.raises(HabitNotFoundError):
            tracker.get_habit(habit["id"])

    def test_delete_without_reminder_uses_fallback_identifier(self, tracker, gateway):
        habit = tracker.add_habit("Read")
        tracker.delete_habit(habit["id"])
        assert gateway.cancelled == [f"habitReminder-{habit['id']}"]

    def test_delete_keeps_history_by_default(self, tracker):
        habit = tracker.add_habit("Read")
        tracker.toggle_completion(habit["id"])
        tracker.delete_habit(habit["id"])
        assert [r["habit_name"] for r in tracker.ledger.all_records()] == ["Read"]

    def test_delete_cascades_when_configured(self, store, gateway, clock):
        tracker = HabitTracker(
            store, gateway=gateway, config=TrackerConfig(cascade_completions_on_delete=True), clock=clock
        )
        habit = tracker.add_habit("Read")
        tracker.toggle_completion(habit["id"])
        tracker.delete_habit(habit["id"])
        assert tracker.ledger.all_records() == []

    def test_failed_delete_is_reported_and_keeps_reminder(self, gateway, clock):
        tracker = HabitTracker(UndeletableStore(), gateway=gateway, clock=clock)
        habit = tracker.add_habit("Read", time(7, 30))
        with pytest.raises(HabitDeletionError):
            tracker.delete_habit(habit["id"])
        assert gateway.cancelled == []
        assert tracker.get_habit(habit["id"])["name"] == "Read"


class TestConcurrentToggles:
    def test_toggles_from_worker_threads_do_not_interleave(self, tmp_path, gateway, clock):
        tracker = HabitTracker(SQLiteStore(str(tmp_path / "habits.db")), gateway=gateway, clock=clock)
        habit = tracker.add_habit("Read")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: tracker.toggle_completion(habit["id"]), range(51)))

        records = tracker.ledger.records_for_habit(habit["id"])
        assert len(records) == 1
        assert records[0]["day"] == DAY
        assert tracker.get_habit(habit["id"])["is_completed"] is True
