# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the recurring task engine.

The engine depends on Protocols instead of concrete storage.
SQLite adapters live in recurring/store.py; tests use in-memory fakes.
"""

from typing import Protocol

from ..recurring.models import CompletionRecord, RecurringTask, Role, TaskFilter


class TaskStore(Protocol):
    def load(self, task_id: str) -> RecurringTask:
        """Return the task or raise NotFound."""
        ...

    def save(self, task: RecurringTask) -> None: ...
    def list(self, filter: TaskFilter | None = None) -> list[RecurringTask]: ...
    def delete(self, task_id: str) -> None: ...


class CompletionStore(Protocol):
    def get(self, task_id: str, client_id: str, period_key: str) -> CompletionRecord | None: ...
    def put(self, record: CompletionRecord) -> None: ...
    def query(self, task_id: str) -> list[CompletionRecord]: ...


class ActorDirectory(Protocol):
    """
    Trusted viewer resolution.

    Roles come from here (backed by verified identity), never from request payloads.
    """

    def role_of(self, actor_id: str) -> Role | None: ...
    def display_name(self, actor_id: str) -> str | None: ...
