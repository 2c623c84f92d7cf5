# src/taskboard/recurring/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum

from ..core.errors import InvalidPattern


class RecurrencePattern(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half-yearly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, raw: object) -> RecurrencePattern:
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            raise InvalidPattern(raw)
        s = raw.strip().lower().replace("_", "-")
        try:
            return cls(s)
        except ValueError:
            raise InvalidPattern(raw) from None


class Role(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"

    @property
    def is_privileged(self) -> bool:
        return self in (Role.ADMIN, Role.MANAGER)


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class CompletionStatus(StrEnum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    NOT_YET_DUE = "not-yet-due"


@dataclass(frozen=True, slots=True)
class Viewer:
    """
    Who is looking at / acting on a task.

    Only built by a trusted boundary (ActorDirectory lookups, the console's
    configured operator), never from caller-supplied role claims.
    """

    actor_id: str
    role: Role


@dataclass(frozen=True, slots=True)
class TeamMemberMapping:
    employee_id: str
    client_ids: frozenset[str]


@dataclass(frozen=True, slots=True)
class CycleCompletion:
    """One closed cycle of a recurring task."""

    completed_at: datetime
    completed_by: str


@dataclass(slots=True)
class RecurringTask:
    id: str
    title: str
    recurrence_pattern: RecurrencePattern
    start_date: date
    end_date: date | None = None

    assigned_client_ids: frozenset[str] = frozenset()
    team_member_mappings: list[TeamMemberMapping] = field(default_factory=list)

    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    next_occurrence: date | None = None
    is_paused: bool = False
    requires_arn: bool = False
    category_id: str | None = None
    completion_history: list[CycleCompletion] = field(default_factory=list)

    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_mapped(self) -> bool:
        return bool(self.team_member_mappings)


@dataclass(frozen=True, slots=True)
class CompletionRecord:
    recurring_task_id: str
    client_id: str
    period_key: str
    is_completed: bool
    completed_by: str | None = None
    completed_at: datetime | None = None
    arn_number: str | None = None
    arn_name: str | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.recurring_task_id, self.client_id, self.period_key)


@dataclass(frozen=True, slots=True)
class CompletionEntry:
    """One cell of a bulk completion update."""

    client_id: str
    period_key: str
    is_completed: bool
    arn_number: str | None = None
    arn_name: str | None = None


@dataclass(frozen=True, slots=True)
class CompletionSummary:
    completed_count: int
    total_expected: int
    percentage: int


@dataclass(frozen=True, slots=True)
class TaskView:
    """A task as served to one viewer: only the clients they may see."""

    task: RecurringTask
    visible_client_ids: frozenset[str]
    assignee_names: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class TaskSpec:
    """Input for creating a recurring task."""

    title: str
    recurrence_pattern: RecurrencePattern | str
    start_date: date
    end_date: date | None = None
    assigned_client_ids: frozenset[str] | set[str] | list[str] = frozenset()
    team_member_mappings: list[TeamMemberMapping] = field(default_factory=list)
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    requires_arn: bool = False
    category_id: str | None = None
    task_id: str | None = None


@dataclass(frozen=True, slots=True)
class TaskFilter:
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    category_id: str | None = None
    is_paused: bool | None = None
    search: str | None = None
    limit: int | None = None

    def matches(self, task: RecurringTask) -> bool:
        if self.status is not None and task.status != self.status:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.category_id is not None and task.category_id != self.category_id:
            return False
        if self.is_paused is not None and task.is_paused != self.is_paused:
            return False
        if self.search:
            needle = self.search.strip().lower()
            if needle not in task.title.lower() and needle not in (task.description or "").lower():
                return False
        return True
