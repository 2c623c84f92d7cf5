# src/taskboard/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from ..core.errors import TaskboardError, friendly_error_message
from ..core.state import AppState
from ..recurring.fiscal import display_periods, fiscal_year_of
from ..recurring.models import Role, TaskFilter, TaskSpec, TaskStatus, Viewer
from ..recurring.scheduler import describe_pattern, next_occurrences
from .bootstrap import build_orchestrator

CommandHandler = Callable[[AppState, list[str], Viewer], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the operator console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, viewer: Viewer) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Business errors become user-facing messages; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args, viewer)
        except TaskboardError as e:
            logger.debug("/%s rejected: %s", name, e)
            return friendly_error_message(e)
        except ValueError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _split_ids(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


def cmd_help(state: AppState, args: list[str], viewer: Viewer) -> str:
    return registry.build_help()


def cmd_whoami(state: AppState, args: list[str], viewer: Viewer) -> str:
    name = state.actors.display_name(viewer.actor_id) or viewer.actor_id
    return f"{name} ({viewer.actor_id}), role: {viewer.role.value}"


def cmd_tasks(state: AppState, args: list[str], viewer: Viewer) -> str:
    """
    /tasks            -> active tasks you can see
    /tasks all        -> include paused tasks
    /tasks <text>     -> search title/description
    """
    include_paused = bool(args) and args[0].lower() == "all"
    search = " ".join(args[1:] if include_paused else args) or None

    orch = build_orchestrator(state)
    views = orch.get_visible_tasks_for_viewer(
        viewer,
        filter=TaskFilter(search=search),
        include_paused=include_paused,
    )
    if not views:
        return "No recurring tasks."

    lines = ["Recurring tasks:"]
    for v in views:
        t = v.task
        paused = " [paused]" if t.is_paused else ""
        lines.append(
            f"  {t.id}  {t.title} ({t.recurrence_pattern.value}, next {t.next_occurrence}) "
            f"clients={len(v.visible_client_ids)}{paused}"
        )
    return "\n".join(lines)


def cmd_task(state: AppState, args: list[str], viewer: Viewer) -> str:
    if not args:
        return "Usage: /task <task_id>"
    v = build_orchestrator(state).get_task(args[0], viewer=viewer)
    t = v.task
    upcoming = next_occurrences(t.recurrence_pattern, t.next_occurrence or t.start_date, 3)
    lines = [
        f"{t.title} [{t.id}]",
        f"  Schedule: {describe_pattern(t.recurrence_pattern)} from {t.start_date}"
        + (f" until {t.end_date}" if t.end_date else ""),
        f"  Status: {t.status.value}{' (paused)' if t.is_paused else ''}, priority {t.priority.value}",
        f"  Next: {', '.join(d.isoformat() for d in upcoming)}",
        f"  Your clients: {', '.join(sorted(v.visible_client_ids)) or '-'}",
    ]
    for m in t.team_member_mappings:
        name = v.assignee_names.get(m.employee_id, m.employee_id)
        lines.append(f"  {name}: {', '.join(sorted(m.client_ids))}")
    return "\n".join(lines)


def cmd_new(state: AppState, args: list[str], viewer: Viewer) -> str:
    """/new <pattern> <YYYY-MM-DD> <client,client,...> <title...>"""
    if len(args) < 4:
        return "Usage: /new <pattern> <start YYYY-MM-DD> <client,client,...> <title>"
    spec = TaskSpec(
        title=" ".join(args[3:]),
        recurrence_pattern=args[0],
        start_date=date.fromisoformat(args[1]),
        assigned_client_ids=_split_ids(args[2]),
    )
    task = build_orchestrator(state).create_task(spec, actor=viewer)
    return f"Created {task.id}: {task.title} ({task.recurrence_pattern.value})."


def cmd_periods(state: AppState, args: list[str], viewer: Viewer) -> str:
    """/periods <task_id> -> periods open for new entries."""
    if not args:
        return "Usage: /periods <task_id>"
    v = build_orchestrator(state).get_task(args[0], viewer=viewer)
    horizon = int(getattr(state.settings, "display_horizon_years", 5))
    keys = display_periods(v.task.recurrence_pattern, date.today(), horizon)
    if not keys:
        return "This task is not tracked by month."
    return "Open periods: " + ", ".join(keys)


def cmd_grid(state: AppState, args: list[str], viewer: Viewer) -> str:
    """/grid <task_id> [fiscal_year]"""
    if not args:
        return "Usage: /grid <task_id> [fiscal_year]"
    fy = int(args[1]) if len(args) > 1 else fiscal_year_of(date.today())
    grid = build_orchestrator(state).completion_grid(args[0], fy, viewer=viewer)
    if not grid:
        return "No clients visible."
    marks = {"completed": "x", "incomplete": ".", "not-yet-due": " "}
    lines = [f"FY {fy}-{(fy + 1) % 100:02d}"]
    for client_id, row in grid.items():
        cells = " ".join(f"{k[5:]}[{marks[s.value]}]" for k, s in row.items())
        lines.append(f"  {client_id}: {cells}")
    return "\n".join(lines)


def _set(state: AppState, args: list[str], viewer: Viewer, completed: bool) -> str:
    task_id, client_id, key = args[0], args[1], args[2]
    arn_number = args[3] if len(args) > 3 else None
    arn_name = " ".join(args[4:]) or None
    build_orchestrator(state).record_completion(
        task_id,
        client_id,
        key,
        completed,
        viewer.actor_id,
        arn_number=arn_number,
        arn_name=arn_name,
    )
    verb = "completed" if completed else "not completed"
    return f"{client_id} {key}: marked {verb}."


def cmd_complete(state: AppState, args: list[str], viewer: Viewer) -> str:
    """/complete <task_id> <client> <YYYY-MM> [arn_number arn_name...]"""
    if len(args) < 3:
        return "Usage: /complete <task_id> <client> <YYYY-MM> [arn_number arn_name]"
    return _set(state, args, viewer, True)


def cmd_undo(state: AppState, args: list[str], viewer: Viewer) -> str:
    if len(args) < 3:
        return "Usage: /undo <task_id> <client> <YYYY-MM>"
    return _set(state, args[:3], viewer, False)


def cmd_summary(state: AppState, args: list[str], viewer: Viewer) -> str:
    if not args:
        return "Usage: /summary <task_id> [fiscal_year]"
    fy = int(args[1]) if len(args) > 1 else None
    s = build_orchestrator(state).completion_summary(args[0], viewer=viewer, fiscal_year=fy)
    return f"{s.completed_count}/{s.total_expected} done ({s.percentage}%)."


def cmd_map(state: AppState, args: list[str], viewer: Viewer) -> str:
    if len(args) < 3:
        return "Usage: /map <task_id> <employee_id> <client,client,...>"
    task = build_orchestrator(state).assign_employee(args[0], args[1], _split_ids(args[2]), actor=viewer)
    return f"{args[1]} now handles {len(_split_ids(args[2]))} client(s) on {task.id}."


def cmd_unmap(state: AppState, args: list[str], viewer: Viewer) -> str:
    if len(args) < 2:
        return "Usage: /unmap <task_id> <employee_id>"
    build_orchestrator(state).unassign_employee(args[0], args[1], actor=viewer)
    return f"{args[1]} unmapped from {args[0]}."


def cmd_pause(state: AppState, args: list[str], viewer: Viewer) -> str:
    if not args:
        return "Usage: /pause <task_id>"
    build_orchestrator(state).pause_task(args[0], actor=viewer)
    return f"Task {args[0]} paused."


def cmd_resume(state: AppState, args: list[str], viewer: Viewer) -> str:
    if not args:
        return "Usage: /resume <task_id>"
    build_orchestrator(state).resume_task(args[0], actor=viewer)
    return f"Task {args[0]} resumed."


def cmd_next(state: AppState, args: list[str], viewer: Viewer) -> str:
    """/next <task_id> -> close the current cycle and schedule the next one."""
    if not args:
        return "Usage: /next <task_id>"
    task = build_orchestrator(state).complete_cycle(args[0], actor=viewer)
    if task.status is TaskStatus.COMPLETED:
        return f"Task {task.id} has finished its schedule."
    return f"Task {task.id} next occurs on {task.next_occurrence}."


def cmd_rate(state: AppState, args: list[str], viewer: Viewer) -> str:
    """/rate <task_id> -> closed cycles vs cycles due so far."""
    if not args:
        return "Usage: /rate <task_id>"
    orch = build_orchestrator(state)
    rate = orch.completion_rate(args[0], viewer=viewer)
    closed = len(orch.get_task(args[0], viewer=viewer).task.completion_history)
    return f"{closed} cycle(s) closed, {rate}% of cycles due."


def cmd_actor(state: AppState, args: list[str], viewer: Viewer) -> str:
    """/actor <actor_id> <admin|manager|employee> [display name]"""
    if viewer.role is not Role.ADMIN:
        return "Only admins can register actors."
    if len(args) < 2:
        return "Usage: /actor <actor_id> <admin|manager|employee> [display name]"
    upsert = getattr(state.actors, "upsert_actor", None)
    if upsert is None:
        return "This actor directory is read-only."
    role = Role(args[1].lower())
    upsert(args[0], role, " ".join(args[2:]) or None)
    return f"Actor {args[0]} registered as {role.value}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("whoami", cmd_whoami, help_text="Show the acting user and role.")
registry.register("tasks", cmd_tasks, help_text="List visible tasks: /tasks [all] [search].")
registry.register("task", cmd_task, help_text="Task details: /task <id>.")
registry.register("new", cmd_new, help_text="Create: /new <pattern> <start> <clients> <title>.")
registry.register("periods", cmd_periods, help_text="Open tracking periods: /periods <id>.")
registry.register("grid", cmd_grid, help_text="Completion grid: /grid <id> [fiscal_year].")
registry.register("complete", cmd_complete, help_text="Mark done: /complete <id> <client> <YYYY-MM>.")
registry.register("undo", cmd_undo, help_text="Unmark: /undo <id> <client> <YYYY-MM>.")
registry.register("summary", cmd_summary, help_text="Client x period progress: /summary <id> [fiscal_year].")
registry.register("map", cmd_map, help_text="Assign clients: /map <id> <employee> <c1,c2>.")
registry.register("unmap", cmd_unmap, help_text="Remove mapping: /unmap <id> <employee>.")
registry.register("pause", cmd_pause, help_text="Pause a task: /pause <id>.")
registry.register("resume", cmd_resume, help_text="Resume a task: /resume <id>.")
registry.register("next", cmd_next, help_text="Close the cycle: /next <id>.")
registry.register("rate", cmd_rate, help_text="Cycle completion rate: /rate <id>.")
registry.register("actor", cmd_actor, help_text="Register actor: /actor <id> <role> [name].")
