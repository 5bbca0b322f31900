"""Personal tasks authored locally and never synchronized."""

import time
from typing import Any, Callable

import structlog

from jira_flow_sync.jira.exceptions import NotFound
from jira_flow_sync.schemas.task import CanonicalColumn, TaskOrigin, TaskRecord
from jira_flow_sync.storage.tasks import TaskStore
from jira_flow_sync.utils.constants import PERSONAL_TASK_PREFIX

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def personal_task_key(now_ms: int) -> str:
    """Key for a personal task created at ``now_ms``."""
    return f"{PERSONAL_TASK_PREFIX}{str(now_ms)[-6:]}"


def is_personal_task_key(key: str) -> bool:
    """Whether a key belongs to a personal task."""
    return key.startswith(PERSONAL_TASK_PREFIX)


def create_personal_task(
    store: TaskStore,
    summary: str,
    priority: str = "Medium",
    due_date: str | None = None,
    description: str | None = None,
    column: CanonicalColumn = CanonicalColumn.FUNNEL,
    assignee_name: str | None = None,
    clock: Callable[[], float] = time.time,
) -> TaskRecord:
    """Create a local-origin task in ``column``."""
    if not summary.strip():
        raise ValueError("A personal task needs a summary")

    now_ms = int(clock() * 1000)
    key = personal_task_key(now_ms)
    while store.get(key) is not None:
        now_ms += 1
        key = personal_task_key(now_ms)

    record = TaskRecord(
        key=key,
        summary=summary.strip(),
        status=column.value,
        column=column,
        issuetype="Task",
        assignee_name=assignee_name,
        due_date=due_date,
        priority=priority,
        description=description,
        updated_at=str(now_ms),
        sync_epoch=now_ms,
        origin=TaskOrigin.LOCAL,
    )
    store.create_local(record)
    logger.info("Created personal task", key=key, column=column.value)
    return record


def _local_task(store: TaskStore, key: str) -> TaskRecord:
    record = store.get(key)
    if record is None:
        raise NotFound(f"Task {key} not found")
    if record.origin != TaskOrigin.LOCAL:
        raise ValueError(f"Task {key} is synchronized from Jira and cannot be changed as a personal task")
    return record


def update_personal_task(store: TaskStore, key: str, **values: Any) -> TaskRecord:
    """Update editable fields of a personal task (summary, priority, due_date, story_points, description)."""
    record = _local_task(store, key)
    store.update_fields(key, values)
    logger.info("Updated personal task", key=key, fields=sorted(values))
    return record.model_copy(update=values)


def delete_personal_task(store: TaskStore, key: str) -> None:
    """Delete a personal task. Tasks synchronized from Jira are refused."""
    _local_task(store, key)
    store.delete_local(key)
    logger.info("Deleted personal task", key=key)
