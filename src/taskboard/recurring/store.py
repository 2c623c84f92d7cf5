# src/taskboard/recurring/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Any

from ..core.errors import NotFound
from .models import (
    CompletionRecord,
    CycleCompletion,
    RecurrencePattern,
    RecurringTask,
    Role,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TeamMemberMapping,
)

logger = logging.getLogger(__name__)


class _SqliteStore(ABC):
    """
    Shared SQLite plumbing.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "taskboard.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @abstractmethod
    def _ensure_schema(self) -> None:
        """Create tables and add missing columns; must be idempotent."""

    @staticmethod
    def _add_missing_columns(cur: sqlite3.Cursor, table: str, columns: dict[str, str]) -> None:
        cur.execute(f"PRAGMA table_info({table})")
        have = {row["name"] for row in cur.fetchall()}
        for name, decl in columns.items():
            if name in have:
                continue
            cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
            logger.info("Schema migration: added column %s.%s", table, name)


def _date_to_str(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _str_to_date(s: str | None) -> date | None:
    return date.fromisoformat(s) if s else None


def _dt_to_str(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _str_to_dt(s: str | None) -> datetime | None:
    return datetime.fromisoformat(s) if s else None


def _mappings_to_str(mappings: list[TeamMemberMapping]) -> str:
    return json.dumps(
        [{"employee_id": m.employee_id, "client_ids": sorted(m.client_ids)} for m in mappings],
        ensure_ascii=False,
    )


def _str_to_mappings(s: str | None) -> list[TeamMemberMapping]:
    if not s:
        return []
    raw = json.loads(s)
    out: list[TeamMemberMapping] = []
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict) or not item.get("employee_id"):
            continue
        out.append(
            TeamMemberMapping(
                employee_id=str(item["employee_id"]),
                client_ids=frozenset(str(c) for c in item.get("client_ids") or []),
            )
        )
    return out


def _history_to_str(history: list[CycleCompletion]) -> str:
    return json.dumps(
        [{"completed_at": c.completed_at.isoformat(), "completed_by": c.completed_by} for c in history],
        ensure_ascii=False,
    )


def _str_to_history(s: str | None) -> list[CycleCompletion]:
    if not s:
        return []
    raw = json.loads(s)
    out: list[CycleCompletion] = []
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict) or not item.get("completed_at"):
            continue
        out.append(
            CycleCompletion(
                completed_at=datetime.fromisoformat(item["completed_at"]),
                completed_by=str(item.get("completed_by") or ""),
            )
        )
    return out


class SqliteTaskStore(_SqliteStore):
    """Recurring task records, one row per task; mappings stored as a JSON list."""

    def __init__(self, db_path: str | Path = "taskboard.sqlite3") -> None:
        super().__init__(db_path)
        try:
            total = self.count()
        except sqlite3.Error:
            total = -1
        logger.info("SqliteTaskStore ready db=%s total=%s", self._db_path, total)

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS recurring_tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    recurrence_pattern TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT,
                    next_occurrence TEXT,
                    assigned_client_ids TEXT NOT NULL DEFAULT '[]',
                    team_member_mappings TEXT NOT NULL DEFAULT '[]',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    status TEXT NOT NULL DEFAULT 'pending',
                    is_paused INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            self._add_missing_columns(
                cur,
                "recurring_tasks",
                {
                    "requires_arn": "INTEGER NOT NULL DEFAULT 0",
                    "category_id": "TEXT",
                    "created_by": "TEXT",
                    "created_at": "TEXT",
                    "updated_at": "TEXT",
                    "completion_history": "TEXT NOT NULL DEFAULT '[]'",
                },
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_recurring_tasks_next "
                "ON recurring_tasks(is_paused, next_occurrence)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> RecurringTask:
        return RecurringTask(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            recurrence_pattern=RecurrencePattern.parse(row["recurrence_pattern"]),
            start_date=date.fromisoformat(row["start_date"]),
            end_date=_str_to_date(row["end_date"]),
            next_occurrence=_str_to_date(row["next_occurrence"]),
            assigned_client_ids=frozenset(json.loads(row["assigned_client_ids"] or "[]")),
            team_member_mappings=_str_to_mappings(row["team_member_mappings"]),
            priority=TaskPriority(row["priority"] or "medium"),
            status=TaskStatus.from_db(row["status"]),
            is_paused=bool(row["is_paused"]),
            requires_arn=bool(row["requires_arn"]),
            category_id=row["category_id"],
            completion_history=_str_to_history(row["completion_history"]),
            created_by=row["created_by"],
            created_at=_str_to_dt(row["created_at"]),
            updated_at=_str_to_dt(row["updated_at"]),
        )

    def count(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM recurring_tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def load(self, task_id: str) -> RecurringTask:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM recurring_tasks WHERE id = ?", (task_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFound("task", task_id)
        return self._row_to_task(row)

    def save(self, task: RecurringTask) -> None:
        params: dict[str, Any] = {
            "id": task.id,
            "title": task.title,
            "description": task.description or "",
            "recurrence_pattern": task.recurrence_pattern.value,
            "start_date": task.start_date.isoformat(),
            "end_date": _date_to_str(task.end_date),
            "next_occurrence": _date_to_str(task.next_occurrence),
            "assigned_client_ids": json.dumps(sorted(task.assigned_client_ids), ensure_ascii=False),
            "team_member_mappings": _mappings_to_str(task.team_member_mappings),
            "priority": task.priority.value,
            "status": task.status.value,
            "is_paused": int(task.is_paused),
            "requires_arn": int(task.requires_arn),
            "category_id": task.category_id,
            "completion_history": _history_to_str(task.completion_history),
            "created_by": task.created_by,
            "created_at": _dt_to_str(task.created_at),
            "updated_at": _dt_to_str(task.updated_at),
        }
        cols = ", ".join(params)
        placeholders = ", ".join(f":{c}" for c in params)
        updates = ", ".join(f"{c} = excluded.{c}" for c in params if c != "id")

        conn = self._get_conn()
        try:
            conn.execute(
                f"INSERT INTO recurring_tasks ({cols}) VALUES ({placeholders}) "
                f"ON CONFLICT(id) DO UPDATE SET {updates}",
                params,
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Task saved id=%s pattern=%s paused=%s", task.id, task.recurrence_pattern, task.is_paused)

    def list(self, filter: TaskFilter | None = None) -> list[RecurringTask]:
        """
        Tasks ordered by next occurrence.

        Exact-match fields are filtered in SQL; the free-text search and the
        limit are applied afterwards.
        """
        f = filter or TaskFilter()
        where: list[str] = []
        params: list[Any] = []
        if f.status is not None:
            where.append("status = ?")
            params.append(f.status.value)
        if f.priority is not None:
            where.append("priority = ?")
            params.append(f.priority.value)
        if f.category_id is not None:
            where.append("category_id = ?")
            params.append(f.category_id)
        if f.is_paused is not None:
            where.append("is_paused = ?")
            params.append(int(f.is_paused))

        sql = "SELECT * FROM recurring_tasks"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY COALESCE(next_occurrence, start_date) ASC, id ASC"

        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()

        tasks = [t for t in (self._row_to_task(r) for r in rows) if f.matches(t)]
        if f.limit is not None:
            tasks = tasks[: max(0, int(f.limit))]
        return tasks

    def delete(self, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM recurring_tasks WHERE id = ?", (task_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Task deleted id=%s", task_id)


class SqliteCompletionStore(_SqliteStore):
    """Completion cells keyed by (task, client, period); upserted in place, never deleted."""

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_completions (
                    recurring_task_id TEXT NOT NULL,
                    client_id TEXT NOT NULL,
                    period_key TEXT NOT NULL,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_by TEXT,
                    completed_at TEXT,
                    PRIMARY KEY (recurring_task_id, client_id, period_key)
                )
                """
            )
            self._add_missing_columns(
                cur,
                "task_completions",
                {
                    "arn_number": "TEXT",
                    "arn_name": "TEXT",
                    "updated_at": "TEXT",
                },
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> CompletionRecord:
        return CompletionRecord(
            recurring_task_id=str(row["recurring_task_id"]),
            client_id=str(row["client_id"]),
            period_key=str(row["period_key"]),
            is_completed=bool(row["is_completed"]),
            completed_by=row["completed_by"],
            completed_at=_str_to_dt(row["completed_at"]),
            arn_number=row["arn_number"],
            arn_name=row["arn_name"],
            updated_at=_str_to_dt(row["updated_at"]),
        )

    def get(self, task_id: str, client_id: str, period_key: str) -> CompletionRecord | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT *
                FROM task_completions
                WHERE recurring_task_id = ?
                  AND client_id = ?
                  AND period_key = ?
                """,
                (task_id, client_id, period_key),
            ).fetchone()
            return self._row_to_record(row) if row else None
        finally:
            conn.close()

    def put(self, record: CompletionRecord) -> None:
        # Single statement: the write for one key is atomic; concurrent writers
        # to the same key resolve last-writer-wins.
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO task_completions(
                        recurring_task_id, client_id, period_key,
                        is_completed, completed_by, completed_at,
                        arn_number, arn_name, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(recurring_task_id, client_id, period_key) DO UPDATE SET
                        is_completed = excluded.is_completed,
                        completed_by = excluded.completed_by,
                        completed_at = excluded.completed_at,
                        arn_number = excluded.arn_number,
                        arn_name = excluded.arn_name,
                        updated_at = excluded.updated_at
                    """,
                    (
                        record.recurring_task_id,
                        record.client_id,
                        record.period_key,
                        int(record.is_completed),
                        record.completed_by,
                        _dt_to_str(record.completed_at),
                        record.arn_number,
                        record.arn_name,
                        _dt_to_str(record.updated_at),
                    ),
                )
        finally:
            conn.close()

    def query(self, task_id: str) -> list[CompletionRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM task_completions
                WHERE recurring_task_id = ?
                ORDER BY period_key ASC, client_id ASC
                """,
                (task_id,),
            ).fetchall()
            return [self._row_to_record(r) for r in rows]
        finally:
            conn.close()


class SqliteActorDirectory(_SqliteStore):
    """
    Actor id -> (role, display name).

    Populated by the identity/admin side; the engine only reads it to build
    trusted Viewer contexts.
    """

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS actors (
                    actor_id TEXT PRIMARY KEY,
                    role TEXT NOT NULL DEFAULT 'employee',
                    display_name TEXT
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def upsert_actor(self, actor_id: str, role: Role, display_name: str | None = None) -> None:
        if not actor_id or not actor_id.strip():
            raise ValueError("actor_id is required")
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO actors(actor_id, role, display_name)
                VALUES (?, ?, ?)
                ON CONFLICT(actor_id) DO UPDATE SET
                    role = excluded.role,
                    display_name = excluded.display_name
                """,
                (actor_id.strip(), role.value, display_name),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Actor upserted id=%s role=%s", actor_id, role.value)

    def _row(self, actor_id: str) -> sqlite3.Row | None:
        conn = self._get_conn()
        try:
            return conn.execute("SELECT * FROM actors WHERE actor_id = ?", (actor_id,)).fetchone()
        finally:
            conn.close()

    def role_of(self, actor_id: str) -> Role | None:
        row = self._row(actor_id)
        if row is None:
            return None
        try:
            return Role(row["role"])
        except ValueError:
            logger.warning("Actor %s has unknown role %r; treating as unknown", actor_id, row["role"])
            return None

    def display_name(self, actor_id: str) -> str | None:
        row = self._row(actor_id)
        return row["display_name"] if row is not None else None
