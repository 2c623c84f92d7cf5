# src/taskboard/recurring/completion.py

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime

from ..core.errors import InapplicablePeriod, MissingArn, Unauthorized
from ..core.ports import CompletionStore
from .assignment import visible_client_ids
from .fiscal import (
    applicable_periods,
    fiscal_year_of,
    is_future_period,
    parse_period_key,
    periods_through,
)
from .models import (
    CompletionEntry,
    CompletionRecord,
    CompletionStatus,
    CompletionSummary,
    RecurringTask,
    Viewer,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def percentage(done: int, total: int) -> int:
    """Whole percent of done/total, halves rounded up (1/8 -> 13); 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * done + total) // (2 * total)


def _same_state(
    rec: CompletionRecord,
    is_completed: bool,
    actor_id: str,
    arn_number: str | None,
    arn_name: str | None,
) -> bool:
    if not is_completed:
        return not rec.is_completed
    return (
        rec.is_completed
        and rec.completed_by == actor_id
        and rec.arn_number == arn_number
        and rec.arn_name == arn_name
    )


class CompletionMatrix:
    """
    Sparse (task, client, period) -> completion map on top of a CompletionStore.

    Writes are validated against the task's pattern (period must be applicable)
    and the actor's visibility (client must be one they can see).
    Un-marking keeps the record with its completion fields cleared; only the
    latest state is stored.

    `today` and `now` are injectable so period classification is deterministic.
    """

    def __init__(
        self,
        store: CompletionStore,
        *,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._today = today
        self._now = now

    def _checked(
        self,
        task: RecurringTask,
        entry: CompletionEntry,
        actor: Viewer,
    ) -> CompletionEntry:
        """Validate one cell write; returns the entry with ARN fields normalized."""
        parse_period_key(entry.period_key)
        pattern = task.recurrence_pattern
        if entry.period_key not in applicable_periods(pattern, fiscal_year_of(entry.period_key)):
            raise InapplicablePeriod(entry.period_key, pattern.value)

        if entry.client_id not in visible_client_ids(task, actor):
            raise Unauthorized(actor.actor_id, "mark completion", entry.client_id)

        arn_number = (entry.arn_number or "").strip() or None
        arn_name = (entry.arn_name or "").strip() or None
        if entry.is_completed and task.requires_arn and not (arn_number and arn_name):
            raise MissingArn(task.id)
        return dataclasses.replace(entry, arn_number=arn_number, arn_name=arn_name)

    def _write(self, task: RecurringTask, entry: CompletionEntry, actor: Viewer) -> CompletionRecord:
        existing = self._store.get(task.id, entry.client_id, entry.period_key)
        if existing is not None and _same_state(
            existing, entry.is_completed, actor.actor_id, entry.arn_number, entry.arn_name
        ):
            return existing

        ts = self._now()
        if entry.is_completed:
            record = CompletionRecord(
                recurring_task_id=task.id,
                client_id=entry.client_id,
                period_key=entry.period_key,
                is_completed=True,
                completed_by=actor.actor_id,
                completed_at=ts,
                arn_number=entry.arn_number,
                arn_name=entry.arn_name,
                updated_at=ts,
            )
        else:
            record = CompletionRecord(
                recurring_task_id=task.id,
                client_id=entry.client_id,
                period_key=entry.period_key,
                is_completed=False,
                updated_at=ts,
            )

        self._store.put(record)
        logger.debug(
            "Completion set task=%s client=%s period=%s completed=%s by=%s",
            task.id,
            entry.client_id,
            entry.period_key,
            entry.is_completed,
            actor.actor_id,
        )
        return record

    def set_completion(
        self,
        task: RecurringTask,
        client_id: str,
        period_key: str,
        is_completed: bool,
        actor: Viewer,
        *,
        arn_number: str | None = None,
        arn_name: str | None = None,
    ) -> CompletionRecord:
        entry = CompletionEntry(client_id, period_key, is_completed, arn_number, arn_name)
        return self._write(task, self._checked(task, entry, actor), actor)

    def bulk_set_completion(
        self,
        task: RecurringTask,
        entries: Iterable[CompletionEntry],
        actor: Viewer,
    ) -> list[CompletionRecord]:
        """
        Apply several cell writes for one task.

        Every entry is validated before anything is written, so a rejected entry
        leaves the whole batch unapplied.
        """
        checked = [self._checked(task, e, actor) for e in entries]
        return [self._write(task, e, actor) for e in checked]

    def get_record(self, task: RecurringTask, client_id: str, period_key: str) -> CompletionRecord | None:
        """Direct key lookup; works for past periods too."""
        return self._store.get(task.id, client_id, period_key)

    def get_completion_status(self, task: RecurringTask, client_id: str, period_key: str) -> CompletionStatus:
        # A stray record for a future period does not override "not yet due".
        if is_future_period(period_key, self._today()):
            return CompletionStatus.NOT_YET_DUE
        rec = self._store.get(task.id, client_id, period_key)
        if rec is not None and rec.is_completed:
            return CompletionStatus.COMPLETED
        return CompletionStatus.INCOMPLETE

    def completion_summary(
        self,
        task: RecurringTask,
        viewer: Viewer,
        *,
        fiscal_year: int | None = None,
    ) -> CompletionSummary:
        """
        Completed vs expected (client, period) cells for this viewer.

        Only periods up to and including the current month count; the fiscal
        year defaults to the one containing today.
        """
        today = self._today()
        fy = fiscal_year_of(today) if fiscal_year is None else fiscal_year
        periods = set(periods_through(task.recurrence_pattern, fy, today))
        clients = visible_client_ids(task, viewer)

        total = len(clients) * len(periods)
        done = sum(
            1
            for r in self._store.query(task.id)
            if r.is_completed and r.client_id in clients and r.period_key in periods
        )
        return CompletionSummary(completed_count=done, total_expected=total, percentage=percentage(done, total))

    def completion_grid(
        self,
        task: RecurringTask,
        viewer: Viewer,
        fiscal_year: int,
    ) -> dict[str, dict[str, CompletionStatus]]:
        """Status per visible client and applicable period: {client_id: {period_key: status}}."""
        today = self._today()
        periods = applicable_periods(task.recurrence_pattern, fiscal_year)
        done = {
            (r.client_id, r.period_key)
            for r in self._store.query(task.id)
            if r.is_completed
        }

        grid: dict[str, dict[str, CompletionStatus]] = {}
        for client_id in sorted(visible_client_ids(task, viewer)):
            row: dict[str, CompletionStatus] = {}
            for key in periods:
                if is_future_period(key, today):
                    row[key] = CompletionStatus.NOT_YET_DUE
                elif (client_id, key) in done:
                    row[key] = CompletionStatus.COMPLETED
                else:
                    row[key] = CompletionStatus.INCOMPLETE
            grid[client_id] = row
        return grid

    def count_records(self, task_id: str) -> int:
        return len(self._store.query(task_id))
