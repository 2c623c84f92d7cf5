# tests/conftest.py

from __future__ import annotations

from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskboard.cli.bootstrap import create_initial_state
from taskboard.core.state import AppState
from taskboard.recurring.models import (
    RecurrencePattern,
    RecurringTask,
    Role,
    TeamMemberMapping,
    Viewer,
)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskboard-test",
        log_level="DEBUG",
        file_log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "taskboard.sqlite3",
        display_horizon_years=5,
        name_cache_ttl_seconds=300.0,
        operator_id="admin",
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired with the real SQLite stores (their correctness is part of
    what we want to test). The operator "admin" is seeded by bootstrap.
    """
    return create_initial_state(settings=settings)


@pytest.fixture()
def admin() -> Viewer:
    return Viewer(actor_id="admin", role=Role.ADMIN)


@pytest.fixture()
def manager() -> Viewer:
    return Viewer(actor_id="m1", role=Role.MANAGER)


@pytest.fixture()
def e1() -> Viewer:
    return Viewer(actor_id="E1", role=Role.EMPLOYEE)


@pytest.fixture()
def e2() -> Viewer:
    return Viewer(actor_id="E2", role=Role.EMPLOYEE)


@pytest.fixture()
def e3() -> Viewer:
    return Viewer(actor_id="E3", role=Role.EMPLOYEE)


def make_task(
    *,
    task_id: str = "t1",
    pattern: RecurrencePattern = RecurrencePattern.MONTHLY,
    clients: set[str] | None = None,
    mappings: dict[str, set[str]] | None = None,
    start: date = date(2026, 4, 1),
    end: date | None = None,
    **extra,
) -> RecurringTask:
    return RecurringTask(
        id=task_id,
        title=f"Task {task_id}",
        recurrence_pattern=pattern,
        start_date=start,
        end_date=end,
        next_occurrence=start,
        assigned_client_ids=frozenset(clients if clients is not None else {"C1", "C2", "C3"}),
        team_member_mappings=[
            TeamMemberMapping(employee_id=emp, client_ids=frozenset(ids))
            for emp, ids in (mappings or {}).items()
        ],
        **extra,
    )


@pytest.fixture()
def mapped_task() -> RecurringTask:
    """E1 -> {C1, C3}, E2 -> {C2}; assigned {C1, C2, C3}."""
    return make_task(mappings={"E1": {"C1", "C3"}, "E2": {"C2"}})
