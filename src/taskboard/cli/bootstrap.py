# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite adapters into AppState,
- builds a fresh orchestrator (and name cache) per request.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from ..config import get_settings
from ..core.name_cache import NameCache
from ..core.state import AppState
from ..recurring.models import Role
from ..recurring.orchestrator import RecurringTaskOrchestrator
from ..recurring.store import SqliteActorDirectory, SqliteCompletionStore, SqliteTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    actors = SqliteActorDirectory(settings.db_path)
    operator_id = str(getattr(settings, "operator_id", "admin"))
    if actors.role_of(operator_id) is None:
        # First run: the local console operator administers the board.
        actors.upsert_actor(operator_id, Role.ADMIN, operator_id)
        logger.info("Registered console operator %s as admin", operator_id)

    return AppState(
        settings=settings,
        task_store=SqliteTaskStore(settings.db_path),
        completion_store=SqliteCompletionStore(settings.db_path),
        actors=actors,
    )


def build_orchestrator(
    state: AppState,
    *,
    today: Callable[[], date] = date.today,
) -> RecurringTaskOrchestrator:
    """One orchestrator per request: its name cache lives and dies with it."""
    ttl = float(getattr(state.settings, "name_cache_ttl_seconds", 300.0))
    return RecurringTaskOrchestrator(
        state.task_store,
        state.completion_store,
        state.actors,
        name_cache=NameCache(state.actors, ttl_seconds=ttl),
        today=today,
    )
