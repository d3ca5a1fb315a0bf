"""
Habit tracker backend package.

The core (store, ledger, registry, daily reset, history, reminders) lives in
plain modules; ``habit_tracker.main`` exposes it as a FastAPI app.
"""
