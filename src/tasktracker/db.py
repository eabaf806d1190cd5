from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Generator, List, Optional

from .models import TaskEntity
from .repositories import ListQuery, Repository, RepositoryError, changed_fields, sort_by_schedule
from .schemas import TaskCreate, TaskUpdate


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    scheduled_date: str = "scheduled_date"
    priority: str = "priority"
    category: str = "category"
    completed: str = "completed"
    created_at: str = "created_at"


_COLS = _Cols()


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    Timestamps are stored as ISO8601 text with their UTC offset. Ordering is
    applied after loading because text order differs from instant order when
    offsets differ.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise RepositoryError(f"cannot open {self._db_path}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise RepositoryError(str(e)) from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.scheduled_date} TEXT NOT NULL,
                    {_COLS.priority} TEXT NOT NULL DEFAULT 'medium',
                    {_COLS.category} TEXT NOT NULL DEFAULT 'personal',
                    {_COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} TEXT NOT NULL
                )
                """
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        return {
            "id": int(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "scheduled_date": datetime.fromisoformat(row[_COLS.scheduled_date]),
            "priority": row[_COLS.priority],
            "category": row[_COLS.category],
            "completed": bool(row[_COLS.completed]),
            "created_at": datetime.fromisoformat(row[_COLS.created_at]),
        }

    def _fetch(self, conn: sqlite3.Connection, task_id: int) -> Optional[TaskEntity]:
        row = conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def create(self, data: TaskCreate) -> TaskEntity:
        now = datetime.now().astimezone().isoformat()
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.scheduled_date}, {_COLS.priority},
                    {_COLS.category}, {_COLS.completed}, {_COLS.created_at})
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (data.title, data.scheduled_date.isoformat(), data.priority, data.category, now),
            )
            created = self._fetch(conn, int(cur.lastrowid))
            assert created is not None
            return created

    def get(self, task_id: int) -> Optional[TaskEntity]:
        with self._conn() as conn:
            return self._fetch(conn, task_id)

    def update(self, task_id: int, data: TaskUpdate) -> Optional[TaskEntity]:
        with self._conn() as conn:
            current = self._fetch(conn, task_id)
            if current is None:
                return None

            changes = changed_fields(data)
            if not changes:
                return current
            if "scheduled_date" in changes:
                changes["scheduled_date"] = changes["scheduled_date"].isoformat()
            if "completed" in changes:
                changes["completed"] = 1 if changes["completed"] else 0

            assignments = ", ".join(f"{name} = ?" for name in changes)
            conn.execute(
                f"UPDATE {_COLS.table} SET {assignments} WHERE {_COLS.id} = ?",
                [*changes.values(), task_id],
            )
            return self._fetch(conn, task_id)

    def delete(self, task_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))
            return cur.rowcount > 0

    def list(self, query: Optional[ListQuery] = None) -> List[TaskEntity]:
        q = query or ListQuery()
        where_sql = ""
        params: list = []
        if q.completed is not None:
            where_sql = f"WHERE {_COLS.completed} = ?"
            params.append(1 if q.completed else 0)

        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM {_COLS.table} {where_sql}", params).fetchall()
            return sort_by_schedule(self._row_to_entity(r) for r in rows)
