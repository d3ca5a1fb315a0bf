from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time
from threading import RLock
from typing import Generator, List, Optional, Tuple

from .errors import PersistenceError
from .models import CompletionRecordEntity, HabitEntity
from .repositories import CompletionQuery, Store


@dataclass(frozen=True)
class _HabitCols:
    table: str = "habits"
    id: str = "id"
    name: str = "name"
    is_completed: str = "is_completed"
    reminder_time: str = "reminder_time"
    reminder_id: str = "reminder_id"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


@dataclass(frozen=True)
class _CompletionCols:
    table: str = "completion_records"
    id: str = "id"
    habit_id: str = "habit_id"
    habit_name: str = "habit_name"
    day: str = "day"
    total_habits: str = "total_habits"
    created_at: str = "created_at"


@dataclass(frozen=True)
class _ValueCols:
    table: str = "key_values"
    key: str = "key"
    value: str = "value"


_H = _HabitCols()
_C = _CompletionCols()
_V = _ValueCols()


class SQLiteStore(Store):
    """
    Lightweight SQLite store implementing the Store interface.

    Every call outside ``transaction()`` commits on its own; inside it, all
    calls share one connection and commit together.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._lock = RLock()
        self._tx_conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        with self._lock:
            if self._tx_conn is not None:
                try:
                    yield self._tx_conn
                except sqlite3.Error as e:
                    raise PersistenceError(f"SQLite operation failed: {e}") from e
                return

            try:
                conn = self._connect()
            except sqlite3.Error as e:
                raise PersistenceError(f"Could not open {self._db_path}: {e}") from e
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise PersistenceError(f"SQLite operation failed: {e}") from e
            finally:
                conn.close()

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        with self._lock:
            if self._tx_conn is not None:
                yield
                return

            try:
                conn = self._connect()
            except sqlite3.Error as e:
                raise PersistenceError(f"Could not open {self._db_path}: {e}") from e
            self._tx_conn = conn
            try:
                yield
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise PersistenceError(f"SQLite commit failed: {e}") from e
            except BaseException:
                conn.rollback()
                raise
            finally:
                self._tx_conn = None
                conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_H.table} (
                    {_H.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_H.name} TEXT NOT NULL,
                    {_H.is_completed} INTEGER NOT NULL DEFAULT 0,
                    {_H.reminder_time} TEXT NULL,
                    {_H.reminder_id} TEXT NULL,
                    {_H.created_at} TEXT NOT NULL,
                    {_H.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_C.table} (
                    {_C.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_C.habit_id} INTEGER NOT NULL,
                    {_C.habit_name} TEXT NOT NULL,
                    {_C.day} TEXT NOT NULL,
                    {_C.total_habits} INTEGER NOT NULL DEFAULT 0,
                    {_C.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_V.table} (
                    {_V.key} TEXT PRIMARY KEY,
                    {_V.value} TEXT NOT NULL
                )
                """
            )
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{_H.table}_name ON {_H.table}({_H.name})")
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_C.table}_habit_day ON {_C.table}({_C.habit_id}, {_C.day})"
            )
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{_C.table}_day ON {_C.table}({_C.day})")

    def _row_to_habit(self, row: sqlite3.Row) -> HabitEntity:
        reminder = row[_H.reminder_time]
        return {
            "id": int(row[_H.id]),
            "name": str(row[_H.name]),
            "is_completed": bool(row[_H.is_completed]),
            "reminder_time": time.fromisoformat(reminder) if reminder else None,
            "reminder_id": row[_H.reminder_id],
            "created_at": datetime.fromisoformat(row[_H.created_at]),
            "updated_at": datetime.fromisoformat(row[_H.updated_at]),
        }

    def _row_to_record(self, row: sqlite3.Row) -> CompletionRecordEntity:
        return {
            "id": int(row[_C.id]),
            "habit_id": int(row[_C.habit_id]),
            "habit_name": str(row[_C.habit_name]),
            "day": date.fromisoformat(row[_C.day]),
            "total_habits": int(row[_C.total_habits]),
            "created_at": datetime.fromisoformat(row[_C.created_at]),
        }

    @staticmethod
    def _fmt_time(value: Optional[time]) -> Optional[str]:
        return value.strftime("%H:%M") if value is not None else None

    def create_habit(self, name: str, reminder_time: Optional[time] = None, is_completed: bool = False) -> HabitEntity:
        now = datetime.now().isoformat()
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_H.table} ({_H.name}, {_H.is_completed}, {_H.reminder_time},
                    {_H.reminder_id}, {_H.created_at}, {_H.updated_at})
                VALUES (?, ?, ?, NULL, ?, ?)
                """,
                (name, 1 if is_completed else 0, self._fmt_time(reminder_time), now, now),
            )
            row = conn.execute(f"SELECT * FROM {_H.table} WHERE {_H.id} = ?", (cur.lastrowid,)).fetchone()
            assert row is not None
            return self._row_to_habit(row)

    def get_habit(self, habit_id: int) -> Optional[HabitEntity]:
        with self._conn() as conn:
            row = conn.execute(f"SELECT * FROM {_H.table} WHERE {_H.id} = ?", (habit_id,)).fetchone()
            return self._row_to_habit(row) if row else None

    def save_habit(self, habit: HabitEntity) -> Optional[HabitEntity]:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                UPDATE {_H.table}
                SET {_H.name} = ?, {_H.is_completed} = ?, {_H.reminder_time} = ?,
                    {_H.reminder_id} = ?, {_H.updated_at} = ?
                WHERE {_H.id} = ?
                """,
                (
                    habit["name"],
                    1 if habit["is_completed"] else 0,
                    self._fmt_time(habit["reminder_time"]),
                    habit["reminder_id"],
                    datetime.now().isoformat(),
                    habit["id"],
                ),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute(f"SELECT * FROM {_H.table} WHERE {_H.id} = ?", (habit["id"],)).fetchone()
            assert row is not None
            return self._row_to_habit(row)

    def delete_habit(self, habit_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_H.table} WHERE {_H.id} = ?", (habit_id,))
            return cur.rowcount > 0

    def list_habits(self) -> List[HabitEntity]:
        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM {_H.table} ORDER BY {_H.name} ASC, {_H.id} ASC").fetchall()
            return [self._row_to_habit(r) for r in rows]

    def count_habits(self) -> int:
        with self._conn() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS cnt FROM {_H.table}").fetchone()
            return int(row["cnt"]) if row else 0

    def add_completion(self, habit_id: int, habit_name: str, day: date, total_habits: int) -> CompletionRecordEntity:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_C.table} ({_C.habit_id}, {_C.habit_name}, {_C.day},
                    {_C.total_habits}, {_C.created_at})
                VALUES (?, ?, ?, ?, ?)
                """,
                (habit_id, habit_name, day.isoformat(), total_habits, datetime.now().isoformat()),
            )
            row = conn.execute(f"SELECT * FROM {_C.table} WHERE {_C.id} = ?", (cur.lastrowid,)).fetchone()
            assert row is not None
            return self._row_to_record(row)

    def delete_completions(self, habit_id: int, start: Optional[date] = None, end: Optional[date] = None) -> int:
        clauses = [f"{_C.habit_id} = ?"]
        params: list = [habit_id]
        if start is not None:
            clauses.append(f"{_C.day} >= ?")
            params.append(start.isoformat())
        if end is not None:
            clauses.append(f"{_C.day} < ?")
            params.append(end.isoformat())
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_C.table} WHERE {' AND '.join(clauses)}", params)
            return cur.rowcount

    def delete_completion(self, record_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_C.table} WHERE {_C.id} = ?", (record_id,))
            return cur.rowcount > 0

    def list_completions(self, query: Optional[CompletionQuery] = None) -> Tuple[List[CompletionRecordEntity], int]:
        q = query or CompletionQuery()
        clauses = []
        params: list = []

        if q.habit_id is not None:
            clauses.append(f"{_C.habit_id} = ?")
            params.append(q.habit_id)
        # ISO day strings sort the same way as the days themselves
        if q.start is not None:
            clauses.append(f"{_C.day} >= ?")
            params.append(q.start.isoformat())
        if q.end is not None:
            clauses.append(f"{_C.day} < ?")
            params.append(q.end.isoformat())

        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order_sql = f"ORDER BY {_C.day} {'DESC' if q.descending else 'ASC'}, {_C.id} ASC"
        # SQLite treats a negative LIMIT as "no limit"
        limit = -1 if q.limit is None else max(q.limit, 0)
        offset = max(q.offset, 0)

        with self._conn() as conn:
            count_row = conn.execute(f"SELECT COUNT(*) AS cnt FROM {_C.table} {where_sql}", params).fetchone()
            total = int(count_row["cnt"]) if count_row else 0

            rows = conn.execute(
                f"""
                SELECT * FROM {_C.table}
                {where_sql}
                {order_sql}
                LIMIT ? OFFSET ?
                """,
                [*params, limit, offset],
            ).fetchall()
            return [self._row_to_record(r) for r in rows], total

    def get_value(self, key: str) -> Optional[str]:
        with self._conn() as conn:
            row = conn.execute(f"SELECT {_V.value} FROM {_V.table} WHERE {_V.key} = ?", (key,)).fetchone()
            return str(row[_V.value]) if row else None

    def set_value(self, key: str, value: str) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_V.table} ({_V.key}, {_V.value}) VALUES (?, ?)
                ON CONFLICT({_V.key}) DO UPDATE SET {_V.value} = excluded.{_V.value}
                """,
                (key, value),
            )
