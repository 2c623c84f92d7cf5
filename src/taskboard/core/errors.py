# src/taskboard/core/errors.py

"""
Error taxonomy for the recurring task engine.

All errors are local and recoverable: callers translate them into actionable
messages (see friendly_error_message) instead of generic failures.
"""

from __future__ import annotations


class TaskboardError(Exception):
    """Base class for every business-rule failure raised by the engine."""


class InvalidPattern(TaskboardError, ValueError):
    def __init__(self, raw: object) -> None:
        super().__init__(f"Invalid recurrence pattern: {raw!r}")
        self.raw = raw


class InvalidClientReference(TaskboardError):
    """A mapping references clients outside the task's assigned set."""

    def __init__(self, task_id: str, client_ids: frozenset[str]) -> None:
        shown = ", ".join(sorted(client_ids))
        super().__init__(f"Clients not assigned to task {task_id}: {shown}")
        self.task_id = task_id
        self.client_ids = client_ids


class InapplicablePeriod(TaskboardError):
    """Completion write for a period that is not valid under the task's pattern."""

    def __init__(self, period_key: str, pattern: str | None = None, reason: str = "") -> None:
        msg = f"Period {period_key!r} is not applicable"
        if pattern:
            msg += f" to a {pattern} task"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)
        self.period_key = period_key
        self.pattern = pattern


class Unauthorized(TaskboardError):
    """The actor lacks visibility into the target client or the privilege for an action."""

    def __init__(self, actor_id: str, action: str, client_id: str | None = None) -> None:
        msg = f"Actor {actor_id!r} may not {action}"
        if client_id is not None:
            msg += f" for client {client_id!r}"
        super().__init__(msg)
        self.actor_id = actor_id
        self.action = action
        self.client_id = client_id


class NotFound(TaskboardError, LookupError):
    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class MissingArn(TaskboardError):
    """Task requires an ARN reference but the completion did not carry one."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} requires an ARN number and name to be marked complete")
        self.task_id = task_id


class TaskHasHistory(TaskboardError):
    """Hard delete refused because completion records reference the task."""

    def __init__(self, task_id: str, n_records: int) -> None:
        super().__init__(f"Task {task_id} has {n_records} completion record(s); pause it instead")
        self.task_id = task_id
        self.n_records = n_records


class TaskPaused(TaskboardError):
    """Cycle work attempted on a paused task."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} is paused")
        self.task_id = task_id


def friendly_error_message(err: Exception) -> str:
    if isinstance(err, Unauthorized):
        if err.client_id is not None:
            return "You are not assigned this client."
        return "You do not have permission to do that."
    if isinstance(err, InapplicablePeriod):
        return f"{err.period_key} is not a tracking period for this task."
    if isinstance(err, InvalidClientReference):
        return "Some selected clients are not part of this task. Add them to the task first."
    if isinstance(err, InvalidPattern):
        return "Unknown repeat schedule. Use daily, weekly, monthly, quarterly, half-yearly or yearly."
    if isinstance(err, NotFound):
        return f"{err.kind.capitalize()} not found."
    if isinstance(err, MissingArn):
        return "This task needs an ARN number and name before it can be marked complete."
    if isinstance(err, TaskHasHistory):
        return "This task has completion history. Pause it instead of deleting it."
    if isinstance(err, TaskPaused):
        return "This task is paused. Resume it first."
    return str(err).strip() or "Unexpected error."
