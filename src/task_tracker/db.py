from __future__ import annotations

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, Iterable, List

from . import codec
from .errors import PersistenceError, ValidationError
from .models import Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    position: str = "position"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    status: str = "status"
    priority: str = "priority"
    created_at: str = "created_at"
    due_date: str = "due_date"
    completed_at: str = "completed_at"
    category_id: str = "category_id"
    tag_ids: str = "tag_ids"
    parent_id: str = "parent_id"


_COLS = _Cols()

# Record key -> column, in insert order.
_RECORD_COLUMNS = (
    ("id", _COLS.id),
    ("title", _COLS.title),
    ("description", _COLS.description),
    ("status", _COLS.status),
    ("priority", _COLS.priority),
    ("createdAt", _COLS.created_at),
    ("dueDate", _COLS.due_date),
    ("completedAt", _COLS.completed_at),
    ("categoryId", _COLS.category_id),
    ("tagIds", _COLS.tag_ids),
    ("parentId", _COLS.parent_id),
)


class SQLiteTaskStore:
    """
    Lightweight SQLite store implementing the TaskStore port.

    Each row holds one encoded task record; tag ids are kept as a JSON array.
    persist_all replaces the table contents inside a single transaction, and
    the position column preserves collection order across reloads.
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
            raise PersistenceError(f"Cannot open {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"SQLite error on {self._db_path}: {e}") from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.position} INTEGER NOT NULL,
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.description} TEXT NULL,
                    {_COLS.status} TEXT NOT NULL,
                    {_COLS.priority} TEXT NOT NULL,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.due_date} TEXT NULL,
                    {_COLS.completed_at} TEXT NULL,
                    {_COLS.category_id} TEXT NULL,
                    {_COLS.tag_ids} TEXT NOT NULL DEFAULT '[]',
                    {_COLS.parent_id} TEXT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_status ON {_COLS.table}({_COLS.status})"
            )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Dict[str, Any]:
        record: Dict[str, Any] = {key: row[col] for key, col in _RECORD_COLUMNS}
        try:
            record["tagIds"] = json.loads(row[_COLS.tag_ids] or "[]")
        except ValueError as e:
            raise PersistenceError(f"Malformed tag list for task {row[_COLS.id]}") from e
        return record

    def load_all(self) -> List[Task]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} ORDER BY {_COLS.position}"
            ).fetchall()
        try:
            tasks = codec.decode_tasks(self._row_to_record(r) for r in rows)
        except ValidationError as e:
            raise PersistenceError(f"Malformed task row in {self._db_path}: {e}") from e
        logger.info("Loaded %s tasks from %s", len(tasks), self._db_path)
        return tasks

    def persist_all(self, tasks: Iterable[Task]) -> None:
        records = codec.encode_tasks(tasks)
        columns = ", ".join([_COLS.position] + [col for _, col in _RECORD_COLUMNS])
        placeholders = ", ".join("?" for _ in range(len(_RECORD_COLUMNS) + 1))
        rows = []
        for position, record in enumerate(records):
            values = [json.dumps(record[key]) if key == "tagIds" else record[key] for key, _ in _RECORD_COLUMNS]
            rows.append((position, *values))
        with self._conn() as conn:
            conn.execute(f"DELETE FROM {_COLS.table}")
            conn.executemany(
                f"INSERT INTO {_COLS.table} ({columns}) VALUES ({placeholders})",
                rows,
            )
        logger.debug("Persisted %s tasks to %s", len(rows), self._db_path)
