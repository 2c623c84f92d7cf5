# src/taskboard/recurring/assignment.py

"""
Per-employee client visibility for shared recurring tasks.

Rules:
- admins/managers see every assigned client,
- a task without mappings is visible in full to everyone (mapping is opt-in),
- once a task has mappings, an employee sees only the clients mapped to them;
  an employee with no mapping sees nothing.

Mapping writes return a new RecurringTask; the caller saves it.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable

from ..core.errors import InvalidClientReference
from .models import RecurringTask, TeamMemberMapping, Viewer

logger = logging.getLogger(__name__)


def mapping_for(task: RecurringTask, employee_id: str) -> TeamMemberMapping | None:
    for m in task.team_member_mappings:
        if m.employee_id == employee_id:
            return m
    return None


def visible_client_ids(task: RecurringTask, viewer: Viewer) -> frozenset[str]:
    if viewer.role.is_privileged:
        return task.assigned_client_ids
    if not task.team_member_mappings:
        return task.assigned_client_ids
    m = mapping_for(task, viewer.actor_id)
    if m is None:
        return frozenset()
    return m.client_ids


def is_task_visible(task: RecurringTask, viewer: Viewer) -> bool:
    # Managers may see zero-client tasks for administrative purposes.
    return viewer.role.is_privileged or bool(visible_client_ids(task, viewer))


def unassigned_client_ids(task: RecurringTask) -> frozenset[str]:
    """Assigned clients that no mapping covers (empty for unmapped tasks)."""
    if not task.team_member_mappings:
        return frozenset()
    covered: set[str] = set()
    for m in task.team_member_mappings:
        covered |= m.client_ids
    return task.assigned_client_ids - covered


def _validated(task: RecurringTask, employee_id: str, client_ids: Iterable[str]) -> TeamMemberMapping:
    if not employee_id or not str(employee_id).strip():
        raise ValueError("employee_id is required")
    ids = frozenset(client_ids)
    unknown = ids - task.assigned_client_ids
    if unknown:
        raise InvalidClientReference(task.id, unknown)
    return TeamMemberMapping(employee_id=str(employee_id).strip(), client_ids=ids)


def add_or_update_mapping(
    task: RecurringTask,
    employee_id: str,
    client_ids: Iterable[str],
) -> RecurringTask:
    """
    Upsert one employee's mapping. Position in the list is kept on update.

    Clients shared with other employees are allowed.
    """
    new = _validated(task, employee_id, client_ids)
    mappings = list(task.team_member_mappings)
    for i, m in enumerate(mappings):
        if m.employee_id == new.employee_id:
            mappings[i] = new
            break
    else:
        mappings.append(new)

    logger.debug(
        "Mapping upsert task=%s employee=%s clients=%d",
        task.id,
        new.employee_id,
        len(new.client_ids),
    )
    return dataclasses.replace(task, team_member_mappings=mappings)


def remove_mapping(task: RecurringTask, employee_id: str) -> RecurringTask:
    """Drop an employee's mapping; a no-op if there is none."""
    mappings = [m for m in task.team_member_mappings if m.employee_id != employee_id]
    if len(mappings) == len(task.team_member_mappings):
        return task
    logger.debug("Mapping removed task=%s employee=%s", task.id, employee_id)
    return dataclasses.replace(task, team_member_mappings=mappings)


def replace_mappings(task: RecurringTask, mappings: Iterable[TeamMemberMapping]) -> RecurringTask:
    """
    Replace the whole mapping list (last writer wins over the list as a unit).

    Each entry is validated; a repeated employee keeps its last entry.
    """
    out = dataclasses.replace(task, team_member_mappings=[])
    for m in mappings:
        out = add_or_update_mapping(out, m.employee_id, m.client_ids)
    return out
