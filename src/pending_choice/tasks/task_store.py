# src/pending_choice/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .task_models import Room, Task

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite store for pending tasks and rooms.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            logger.debug("count_tasks failed during startup", exc_info=True)
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    room_id TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    metadata TEXT NOT NULL DEFAULT '{}',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS rooms (
                    id TEXT PRIMARY KEY,
                    server_id TEXT,
                    name TEXT
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("room_id", "TEXT")
            add_col("tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("metadata", "TEXT NOT NULL DEFAULT '{}'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_room ON tasks(room_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _to_json(value: Any, empty: str) -> str:
        if not value:
            return empty
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            logger.exception("Failed to JSON-encode %r; storing %s.", type(value).__name__, empty)
            return empty

    @staticmethod
    def _json_dict(s: str | None) -> dict[str, Any]:
        if not s:
            return {}
        try:
            val = json.loads(s)
        except ValueError:
            return {}
        return val if isinstance(val, dict) else {}

    @staticmethod
    def _json_tags(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            return []
        if not isinstance(val, list):
            return []
        return [str(t) for t in val if str(t).strip()]

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            name=str(row["name"] or ""),
            room_id=row["room_id"],
            tags=self._json_tags(row["tags"]),
            metadata=self._json_dict(row["metadata"]),
            description=str(row["description"] or ""),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        name: str,
        room_id: str | None = None,
        description: str = "",
        tags: Iterable[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        if not name or not name.strip():
            raise ValueError("name is required")

        clean_tags = [str(t).strip() for t in (tags or []) if str(t).strip()]
        now = time.time()

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(name, description, room_id, tags, metadata, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    name.strip(),
                    (description or "").strip(),
                    room_id,
                    self._to_json(clean_tags, "[]"),
                    self._to_json(metadata, "{}"),
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task added id=%s name=%r room=%s tags=%s", task_id, name, room_id, clean_tags)
            return task_id
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_tasks(self, *, room_id: str | None = None, tags: Iterable[str] | None = None) -> list[Task]:
        """
        Tasks in creation order, optionally restricted to a room.

        A task matches the tag filter only if it carries ALL requested tags.
        """
        wanted = {str(t) for t in (tags or []) if str(t)}

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if room_id is None:
                cur.execute("SELECT * FROM tasks ORDER BY created_at ASC, id ASC")
            else:
                cur.execute(
                    "SELECT * FROM tasks WHERE room_id = ? ORDER BY created_at ASC, id ASC",
                    (room_id,),
                )
            tasks = [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

        if not wanted:
            return tasks
        return [t for t in tasks if wanted.issubset(t.tags)]

    def delete_task(self, task_id: int) -> bool:
        """Delete a task. Returns True if a row was removed."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            removed = cur.rowcount == 1
        finally:
            conn.close()

        logger.debug("Task delete id=%s removed=%s", task_id, removed)
        return removed

    # ---- rooms ----

    def upsert_room(self, room: Room) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO rooms(id, server_id, name) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET server_id = excluded.server_id, name = excluded.name
                """,
                (room.id, room.server_id, room.name),
            )
            conn.commit()
        finally:
            conn.close()

    def get_room(self, room_id: str) -> Room | None:
        if not room_id:
            return None

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM rooms WHERE id = ?", (room_id,))
            row = cur.fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return Room(id=str(row["id"]), server_id=row["server_id"], name=row["name"])


class AsyncTaskStore:
    """
    Async facade over TaskStore (implements the TaskRepo port).

    SQLite calls run in worker threads so the event loop is never blocked.
    """

    def __init__(self, store: TaskStore) -> None:
        self.store = store

    async def list_tasks(self, *, room_id: str | None, tags: Iterable[str] | None = None) -> list[Task]:
        return await asyncio.to_thread(self.store.list_tasks, room_id=room_id, tags=list(tags or []))

    async def delete_task(self, task_id: int) -> bool:
        return await asyncio.to_thread(self.store.delete_task, task_id)

    async def get_room(self, room_id: str) -> Room | None:
        return await asyncio.to_thread(self.store.get_room, room_id)

    async def upsert_room(self, room: Room) -> None:
        await asyncio.to_thread(self.store.upsert_room, room)
