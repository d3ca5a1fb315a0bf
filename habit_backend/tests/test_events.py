from habit_tracker.events import HABIT_ADDED, HABIT_TOGGLED, EventBus


class TestEventBus:
    def test_subscribe_and_unsubscribe(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe(seen.append)
        bus.publish("ping", n=1)
        unsubscribe()
        bus.publish("ping", n=2)
        assert [e.payload["n"] for e in seen] == [1]

    def test_failing_subscriber_does_not_stop_others(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("display layer crashed")

        bus.subscribe(broken)
        bus.subscribe(seen.append)
        bus.publish("ping")
        assert len(seen) == 1

    def test_tracker_emits_habit_events(self, tracker):
        kinds = []
        tracker.events.subscribe(lambda e: kinds.append(e.kind))
        habit = tracker.add_habit("Read")
        tracker.toggle_completion(habit["id"])
        assert kinds[0] == HABIT_ADDED
        assert kinds[-1] == HABIT_TOGGLED
