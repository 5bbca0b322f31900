"""Edits of story points and due dates on board tasks."""

from typing import Any

import structlog

from jira_flow_sync.jira.abc import JiraClientBase
from jira_flow_sync.jira.exceptions import NotFound
from jira_flow_sync.schemas.task import TaskOrigin, TaskRecord
from jira_flow_sync.storage.settings import SettingsStore
from jira_flow_sync.storage.tasks import TaskStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

UNSET: Any = object()


def build_field_update(settings: SettingsStore, story_points: float | None = UNSET, due_date: str | None = UNSET) -> dict[str, Any]:
    """Map edits onto Jira field ids. A cleared due date is sent as an empty string."""
    fields: dict[str, Any] = {}
    if story_points is not UNSET:
        fields[settings.story_points_field] = story_points
    if due_date is not UNSET:
        fields[settings.planned_due_field] = due_date or ""
    return fields


async def update_task_fields(
    client: JiraClientBase | None,
    store: TaskStore,
    settings: SettingsStore,
    key: str,
    story_points: float | None = UNSET,
    due_date: str | None = UNSET,
) -> TaskRecord:
    """Update story points and/or the due date of a task.

    Remote tasks are updated in Jira first; the store mirrors the change only
    once Jira accepted it. Local tasks are updated in the store only and need no client.

    Raises:
        NotFound: If the task is unknown
    """
    record = store.get(key)
    if record is None:
        raise NotFound(f"Task {key} not found")

    local_values: dict[str, Any] = {}
    if story_points is not UNSET:
        local_values["story_points"] = story_points
    if due_date is not UNSET:
        local_values["due_date"] = due_date or None
    if not local_values:
        logger.info("No fields to update", key=key)
        return record

    if record.origin == TaskOrigin.REMOTE:
        if client is None:
            raise ValueError(f"Updating Jira issue {key} requires a Jira client")
        await client.update_issue(key, build_field_update(settings, story_points, due_date))
    store.update_fields(key, local_values)
    logger.info("Updated task fields", key=key, fields=sorted(local_values))
    return record.model_copy(update=local_values)
