# src/taskboard/recurring/orchestrator.py

"""
Recurring task façade.

Load/save sequencing around the pure components:
- scheduler.py  (occurrence dates)
- fiscal.py     (period keys)
- assignment.py (who sees which clients)
- completion.py (client x period completion matrix)

Every call reads fresh from the stores; nothing is cached between calls except
display names, through the request-scoped NameCache handed in by the caller.
Business errors from the components pass through unchanged.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime

from ..core.errors import TaskboardError, TaskHasHistory, TaskPaused, Unauthorized
from ..core.name_cache import NameCache
from ..core.ports import ActorDirectory, CompletionStore, TaskStore
from .assignment import (
    add_or_update_mapping,
    is_task_visible,
    remove_mapping,
    replace_mappings,
    visible_client_ids,
)
from .completion import CompletionMatrix, percentage
from .models import (
    CompletionEntry,
    CompletionRecord,
    CompletionStatus,
    CompletionSummary,
    CycleCompletion,
    RecurrencePattern,
    RecurringTask,
    TaskFilter,
    TaskPriority,
    TaskSpec,
    TaskStatus,
    TaskView,
    TeamMemberMapping,
    Viewer,
)
from .scheduler import next_occurrence, occurrence_count

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RecurringTaskOrchestrator:
    def __init__(
        self,
        tasks: TaskStore,
        completions: CompletionStore,
        actors: ActorDirectory,
        *,
        name_cache: NameCache | None = None,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._tasks = tasks
        self._completions = completions
        self._actors = actors
        self._names = name_cache if name_cache is not None else NameCache(actors)
        self._now = now
        self._matrix = CompletionMatrix(completions, today=today, now=now)

    @property
    def matrix(self) -> CompletionMatrix:
        return self._matrix

    # ---- viewers ----

    def resolve_viewer(self, actor_id: str) -> Viewer:
        """Build a Viewer from the trusted directory; unknown actors are refused."""
        role = self._actors.role_of(actor_id) if actor_id else None
        if role is None:
            logger.warning("Unknown actor %r refused", actor_id)
            raise Unauthorized(str(actor_id), "access recurring tasks")
        return Viewer(actor_id=actor_id, role=role)

    @staticmethod
    def _require_privileged(actor: Viewer, action: str) -> None:
        if not actor.role.is_privileged:
            logger.warning("Actor %s (%s) may not %s", actor.actor_id, actor.role.value, action)
            raise Unauthorized(actor.actor_id, action)

    def _touch(self, task: RecurringTask, **changes: object) -> RecurringTask:
        task = dataclasses.replace(task, updated_at=self._now(), **changes)
        self._tasks.save(task)
        return task

    # ---- task lifecycle ----

    def create_task(self, spec: TaskSpec, *, actor: Viewer) -> RecurringTask:
        self._require_privileged(actor, "create recurring tasks")

        pattern = RecurrencePattern.parse(spec.recurrence_pattern)
        title = (spec.title or "").strip()
        if not title:
            raise ValueError("title is required")
        if spec.end_date is not None and spec.end_date < spec.start_date:
            raise ValueError("end_date must not be before start_date")

        ts = self._now()
        task = RecurringTask(
            id=spec.task_id or uuid.uuid4().hex,
            title=title,
            description=(spec.description or "").strip(),
            recurrence_pattern=pattern,
            start_date=spec.start_date,
            end_date=spec.end_date,
            next_occurrence=spec.start_date,
            assigned_client_ids=frozenset(spec.assigned_client_ids),
            priority=spec.priority,
            requires_arn=spec.requires_arn,
            category_id=spec.category_id,
            created_by=actor.actor_id,
            created_at=ts,
            updated_at=ts,
        )
        task = replace_mappings(task, spec.team_member_mappings)
        self._tasks.save(task)
        logger.info(
            "Recurring task created id=%s pattern=%s clients=%d mappings=%d by=%s",
            task.id,
            pattern.value,
            len(task.assigned_client_ids),
            len(task.team_member_mappings),
            actor.actor_id,
        )
        return task

    def get_task(self, task_id: str, *, viewer: Viewer) -> TaskView:
        task = self._tasks.load(task_id)
        if not is_task_visible(task, viewer):
            raise Unauthorized(viewer.actor_id, f"view task {task_id}")
        return self._view(task, viewer)

    def update_mappings(
        self,
        task_id: str,
        mappings: Iterable[TeamMemberMapping],
        *,
        actor: Viewer,
    ) -> RecurringTask:
        """Replace the whole mapping list."""
        self._require_privileged(actor, "edit team mappings")
        task = replace_mappings(self._tasks.load(task_id), mappings)
        task = self._touch(task)
        logger.info("Mappings replaced task=%s n=%d by=%s", task_id, len(task.team_member_mappings), actor.actor_id)
        return task

    def assign_employee(
        self,
        task_id: str,
        employee_id: str,
        client_ids: Iterable[str],
        *,
        actor: Viewer,
    ) -> RecurringTask:
        self._require_privileged(actor, "edit team mappings")
        task = add_or_update_mapping(self._tasks.load(task_id), employee_id, client_ids)
        return self._touch(task)

    def unassign_employee(self, task_id: str, employee_id: str, *, actor: Viewer) -> RecurringTask:
        self._require_privileged(actor, "edit team mappings")
        task = self._tasks.load(task_id)
        updated = remove_mapping(task, employee_id)
        if updated is task:
            return task
        return self._touch(updated)

    def pause_task(self, task_id: str, *, actor: Viewer) -> RecurringTask:
        self._require_privileged(actor, "pause tasks")
        task = self._touch(self._tasks.load(task_id), is_paused=True)
        logger.info("Task paused id=%s by=%s", task_id, actor.actor_id)
        return task

    def resume_task(self, task_id: str, *, actor: Viewer) -> RecurringTask:
        self._require_privileged(actor, "resume tasks")
        task = self._touch(self._tasks.load(task_id), is_paused=False)
        logger.info("Task resumed id=%s by=%s", task_id, actor.actor_id)
        return task

    def delete_task(self, task_id: str, *, actor: Viewer) -> None:
        """Hard delete, only while no completion history references the task."""
        self._require_privileged(actor, "delete tasks")
        self._tasks.load(task_id)
        n = self._matrix.count_records(task_id)
        if n:
            raise TaskHasHistory(task_id, n)
        self._tasks.delete(task_id)

    def complete_cycle(self, task_id: str, *, actor: Viewer) -> RecurringTask:
        """
        Close the current cycle: record who closed it and advance next_occurrence.

        Once the following occurrence would fall after end_date the task is
        marked completed and next_occurrence stays put.
        """
        task = self._tasks.load(task_id)
        if not is_task_visible(task, actor):
            raise Unauthorized(actor.actor_id, f"complete a cycle of task {task_id}")
        if task.is_paused:
            raise TaskPaused(task_id)

        closed = CycleCompletion(completed_at=self._now(), completed_by=actor.actor_id)
        history = [*task.completion_history, closed]
        current = task.next_occurrence or task.start_date
        nxt = next_occurrence(task.recurrence_pattern, current)

        if task.end_date is not None and nxt > task.end_date:
            task = self._touch(task, status=TaskStatus.COMPLETED, completion_history=history)
            logger.info("Task %s finished its schedule (end_date=%s)", task_id, task.end_date)
        else:
            task = self._touch(task, next_occurrence=nxt, status=TaskStatus.PENDING, completion_history=history)
            logger.info("Task %s -> next occurrence %s", task_id, nxt)
        return task

    def completion_rate(self, task_id: str, *, viewer: Viewer) -> int:
        """
        Closed cycles as a whole percent of the cycles due so far.

        Cycles due are the occurrences from start_date up to (not including)
        next_occurrence, plus the last one once the task has completed.
        """
        task = self._tasks.load(task_id)
        if not is_task_visible(task, viewer):
            raise Unauthorized(viewer.actor_id, f"view task {task_id}")
        upto = task.next_occurrence or task.start_date
        due = occurrence_count(task.recurrence_pattern, task.start_date, upto)
        if task.status is not TaskStatus.COMPLETED:
            due -= 1
        return min(100, percentage(len(task.completion_history), due))

    def update_task(
        self,
        task_id: str,
        *,
        actor: Viewer,
        title: str | None = None,
        description: str | None = None,
        recurrence_pattern: RecurrencePattern | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        clear_end_date: bool = False,
        priority: TaskPriority | None = None,
        requires_arn: bool | None = None,
        category_id: str | None = None,
        assigned_client_ids: Iterable[str] | None = None,
    ) -> RecurringTask:
        """
        Edit task fields; None leaves a field unchanged (clear_end_date drops the end date).

        Validation matches create_task. Narrowing assigned_client_ids below what
        a mapping references raises InvalidClientReference. Moving start_date
        past next_occurrence moves next_occurrence along.
        """
        self._require_privileged(actor, "edit recurring tasks")
        task = self._tasks.load(task_id)

        changes: dict[str, object] = {}
        if title is not None:
            changes["title"] = title.strip()
            if not changes["title"]:
                raise ValueError("title is required")
        if description is not None:
            changes["description"] = description.strip()
        if recurrence_pattern is not None:
            changes["recurrence_pattern"] = RecurrencePattern.parse(recurrence_pattern)
        if start_date is not None:
            changes["start_date"] = start_date
        if clear_end_date:
            changes["end_date"] = None
        elif end_date is not None:
            changes["end_date"] = end_date
        if priority is not None:
            changes["priority"] = TaskPriority(priority)
        if requires_arn is not None:
            changes["requires_arn"] = bool(requires_arn)
        if category_id is not None:
            changes["category_id"] = category_id or None
        if assigned_client_ids is not None:
            changes["assigned_client_ids"] = frozenset(assigned_client_ids)
        if not changes:
            return task

        updated = dataclasses.replace(task, **changes)
        if updated.end_date is not None and updated.end_date < updated.start_date:
            raise ValueError("end_date must not be before start_date")
        if "assigned_client_ids" in changes:
            updated = replace_mappings(updated, updated.team_member_mappings)
        nxt = updated.next_occurrence
        if "start_date" in changes and (nxt is None or nxt < updated.start_date):
            updated.next_occurrence = updated.start_date

        updated = self._touch(updated)
        logger.info("Task updated id=%s fields=%s by=%s", task_id, ",".join(sorted(changes)), actor.actor_id)
        return updated

    # ---- views ----

    def _view(self, task: RecurringTask, viewer: Viewer) -> TaskView:
        names = {m.employee_id: self._names.name_or_id(m.employee_id) for m in task.team_member_mappings}
        return TaskView(task=task, visible_client_ids=visible_client_ids(task, viewer), assignee_names=names)

    def get_visible_tasks_for_viewer(
        self,
        viewer: Viewer,
        *,
        filter: TaskFilter | None = None,
        include_paused: bool = False,
    ) -> list[TaskView]:
        f = filter or TaskFilter()
        if not include_paused and f.is_paused is None:
            f = dataclasses.replace(f, is_paused=False)
        return [self._view(t, viewer) for t in self._tasks.list(f) if is_task_visible(t, viewer)]

    # ---- completion ----

    def record_completion(
        self,
        task_id: str,
        client_id: str,
        period_key: str,
        completed: bool,
        actor_id: str,
        *,
        arn_number: str | None = None,
        arn_name: str | None = None,
    ) -> CompletionRecord:
        task = self._tasks.load(task_id)
        actor = self.resolve_viewer(actor_id)
        try:
            record = self._matrix.set_completion(
                task,
                client_id,
                period_key,
                completed,
                actor,
                arn_number=arn_number,
                arn_name=arn_name,
            )
        except TaskboardError as e:
            logger.warning(
                "Completion rejected task=%s client=%s period=%s actor=%s: %s",
                task_id,
                client_id,
                period_key,
                actor_id,
                e,
            )
            raise
        logger.info(
            "Completion recorded task=%s client=%s period=%s completed=%s by=%s",
            task_id,
            client_id,
            period_key,
            completed,
            actor_id,
        )
        return record

    def bulk_set_completion(
        self,
        task_id: str,
        entries: Iterable[CompletionEntry],
        actor_id: str,
    ) -> list[CompletionRecord]:
        """Several cells of one task in one call; nothing is written if any entry is rejected."""
        task = self._tasks.load(task_id)
        actor = self.resolve_viewer(actor_id)
        entries = list(entries)
        try:
            records = self._matrix.bulk_set_completion(task, entries, actor)
        except TaskboardError as e:
            logger.warning("Bulk completion rejected task=%s n=%d actor=%s: %s", task_id, len(entries), actor_id, e)
            raise
        logger.info("Bulk completion recorded task=%s n=%d by=%s", task_id, len(records), actor_id)
        return records

    def get_completion_status(
        self,
        task_id: str,
        client_id: str,
        period_key: str,
        *,
        viewer: Viewer,
    ) -> CompletionStatus:
        task = self._tasks.load(task_id)
        if client_id not in visible_client_ids(task, viewer):
            raise Unauthorized(viewer.actor_id, "view completion", client_id)
        return self._matrix.get_completion_status(task, client_id, period_key)

    def completion_summary(
        self,
        task_id: str,
        *,
        viewer: Viewer,
        fiscal_year: int | None = None,
    ) -> CompletionSummary:
        task = self._tasks.load(task_id)
        return self._matrix.completion_summary(task, viewer, fiscal_year=fiscal_year)

    def completion_grid(
        self,
        task_id: str,
        fiscal_year: int,
        *,
        viewer: Viewer,
    ) -> dict[str, dict[str, CompletionStatus]]:
        task = self._tasks.load(task_id)
        return self._matrix.completion_grid(task, viewer, fiscal_year)
