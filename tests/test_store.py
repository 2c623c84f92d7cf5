# tests/test_store.py

from __future__ import annotations

import sqlite3
from datetime import UTC, date, datetime
from pathlib import Path

import pytest

from taskboard.core.errors import NotFound
from taskboard.recurring.models import (
    CompletionRecord,
    CycleCompletion,
    RecurrencePattern,
    Role,
    TaskFilter,
    TaskPriority,
    TaskStatus,
)
from taskboard.recurring.store import (
    SqliteActorDirectory,
    SqliteCompletionStore,
    SqliteTaskStore,
    _SqliteStore,
)

from .conftest import make_task

TS = datetime(2026, 4, 15, 9, 30, tzinfo=UTC)


def test_task_save_load_delete(tmp_path: Path) -> None:
    store = SqliteTaskStore(tmp_path / "tasks.sqlite3")
    task = make_task(
        pattern=RecurrencePattern.HALF_YEARLY,
        mappings={"E1": {"C1", "C3"}, "E2": {"C2"}},
        end=date(2030, 3, 31),
        description="GSTR-9 annual return",
        priority=TaskPriority.HIGH,
        requires_arn=True,
        category_id="tax",
        created_by="admin",
        created_at=TS,
        updated_at=TS,
    )
    store.save(task)

    loaded = store.load("t1")
    assert loaded == task
    assert [m.employee_id for m in loaded.team_member_mappings] == ["E1", "E2"]
    assert store.count() == 1

    store.save(make_task(status=TaskStatus.IN_PROGRESS, is_paused=True))
    again = store.load("t1")
    assert again.status is TaskStatus.IN_PROGRESS
    assert again.is_paused
    assert not again.team_member_mappings
    assert store.count() == 1

    store.delete("t1")
    with pytest.raises(NotFound):
        store.load("t1")


def test_task_list_filters_and_order(tmp_path: Path) -> None:
    store = SqliteTaskStore(tmp_path / "tasks.sqlite3")
    store.save(make_task(task_id="b", start=date(2026, 6, 1)))
    store.save(make_task(task_id="a", start=date(2026, 5, 1), priority=TaskPriority.URGENT))
    store.save(make_task(task_id="c", start=date(2026, 5, 1), is_paused=True, category_id="tds"))

    assert [t.id for t in store.list()] == ["a", "c", "b"]
    assert [t.id for t in store.list(TaskFilter(is_paused=False))] == ["a", "b"]
    assert [t.id for t in store.list(TaskFilter(priority=TaskPriority.URGENT))] == ["a"]
    assert [t.id for t in store.list(TaskFilter(category_id="tds"))] == ["c"]
    assert [t.id for t in store.list(TaskFilter(search="task B"))] == ["b"]
    assert [t.id for t in store.list(TaskFilter(limit=2))] == ["a", "c"]


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        """
        CREATE TABLE task_completions (
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
    conn.execute("INSERT INTO task_completions VALUES ('t1', 'C1', '2025-04', 1, 'E1', NULL)")
    conn.commit()
    conn.close()

    store = SqliteCompletionStore(db)
    rec = store.get("t1", "C1", "2025-04")
    assert rec is not None
    assert rec.is_completed
    assert rec.arn_number is None


def test_completion_put_overwrites_same_key(tmp_path: Path) -> None:
    store = SqliteCompletionStore(tmp_path / "c.sqlite3")
    assert store.get("t1", "C1", "2026-04") is None

    rec = CompletionRecord(
        recurring_task_id="t1",
        client_id="C1",
        period_key="2026-04",
        is_completed=True,
        completed_by="E1",
        completed_at=TS,
        arn_number="AA123",
        arn_name="R. Shah",
        updated_at=TS,
    )
    store.put(rec)
    assert store.get("t1", "C1", "2026-04") == rec

    cleared = CompletionRecord("t1", "C1", "2026-04", False, updated_at=TS)
    store.put(cleared)
    assert store.get("t1", "C1", "2026-04") == cleared

    store.put(CompletionRecord("t1", "C2", "2026-04", True, "E2", TS))
    store.put(CompletionRecord("t1", "C1", "2026-05", True, "E1", TS))
    store.put(CompletionRecord("t2", "C1", "2026-04", True, "E1", TS))

    keys = [(r.client_id, r.period_key) for r in store.query("t1")]
    assert keys == [("C1", "2026-04"), ("C2", "2026-04"), ("C1", "2026-05")]


def test_actor_directory(tmp_path: Path) -> None:
    actors = SqliteActorDirectory(tmp_path / "a.sqlite3")
    assert actors.role_of("E1") is None
    assert actors.display_name("E1") is None

    actors.upsert_actor("E1", Role.EMPLOYEE, "Esha")
    assert actors.role_of("E1") is Role.EMPLOYEE
    assert actors.display_name("E1") == "Esha"

    actors.upsert_actor("E1", Role.MANAGER)
    assert actors.role_of("E1") is Role.MANAGER
    assert actors.display_name("E1") is None

    with pytest.raises(ValueError):
        actors.upsert_actor("  ", Role.ADMIN)


def test_cycle_history_round_trip(tmp_path: Path) -> None:
    store = SqliteTaskStore(tmp_path / "tasks.sqlite3")
    history = [
        CycleCompletion(completed_at=TS, completed_by="E1"),
        CycleCompletion(completed_at=TS.replace(month=5), completed_by="admin"),
    ]
    store.save(make_task(completion_history=history))
    assert store.load("t1").completion_history == history


def test_task_table_migration_keeps_old_rows(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        """
        CREATE TABLE recurring_tasks (
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
    conn.execute(
        "INSERT INTO recurring_tasks (id, title, recurrence_pattern, start_date) "
        "VALUES ('old', 'Legacy', 'yearly', '2024-04-01')"
    )
    conn.commit()
    conn.close()

    task = SqliteTaskStore(db).load("old")
    assert task.recurrence_pattern is RecurrencePattern.YEARLY
    assert task.completion_history == []
    assert not task.requires_arn


def test_sqlite_base_store_is_abstract(tmp_path: Path) -> None:
    with pytest.raises(TypeError):
        _SqliteStore(tmp_path / "x.sqlite3")
