"""Builds the board view of stored task records."""

import json
from datetime import date, timedelta
from typing import Any

import structlog

from jira_flow_sync.schemas.task import BoardTask, CanonicalColumn, TaskLink, TaskRecord
from jira_flow_sync.storage.tasks import TaskStore
from jira_flow_sync.utils.constants import DUE_SOON_DAYS

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

TERMINAL_COLUMNS = frozenset({CanonicalColumn.DONE, CanonicalColumn.CLOSED})


def parse_due_date(value: str | None) -> date | None:
    """Parse the date part of a due date value. Unparseable values yield None."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.debug("Ignoring unparseable due date", due_date=value)
        return None


def _load_raw(record: TaskRecord) -> dict[str, Any]:
    if not record.raw_json:
        return {}
    try:
        raw = json.loads(record.raw_json)
    except ValueError:
        logger.warning("Stored raw snapshot is not valid JSON", key=record.key)
        return {}
    return raw if isinstance(raw, dict) else {}


def _links(fields: dict[str, Any]) -> list[TaskLink]:
    links = []
    for link in fields.get("issuelinks") or []:
        other = link.get("outwardIssue") or link.get("inwardIssue") or {}
        if not other.get("key"):
            continue
        links.append(
            TaskLink(
                key=other["key"],
                summary=(other.get("fields") or {}).get("summary") or "",
                type=(link.get("type") or {}).get("name") or "",
            )
        )
    return links


def build_board_task(record: TaskRecord, today: date) -> BoardTask:
    """Project a stored record onto the board, computing its due-date flags."""
    fields = _load_raw(record).get("fields") or {}
    due = parse_due_date(record.due_date)
    is_terminal = record.column in TERMINAL_COLUMNS
    return BoardTask(
        key=record.key,
        summary=record.summary,
        status=record.status,
        column=record.column,
        issuetype=record.issuetype,
        sprint=record.sprint,
        sprint_state=record.sprint_state,
        priority=(record.priority or "medium").lower(),
        assignee_name=record.assignee_name,
        assignee_avatar=record.assignee_avatar,
        due_date=record.due_date,
        is_overdue=due is not None and due < today and not is_terminal,
        is_due_soon=due is not None and today <= due <= today + timedelta(days=DUE_SOON_DAYS),
        description=record.description or fields.get("description") or "",
        parent=(fields.get("parent") or {}).get("key") or "",
        links=_links(fields),
        story_points=record.story_points,
        origin=record.origin,
    )


def get_board_tasks(store: TaskStore, today: date | None = None) -> list[BoardTask]:
    """Every stored task as it appears on the board."""
    today = today or date.today()
    return [build_board_task(record, today) for record in store.all()]


def group_by_column(tasks: list[BoardTask]) -> dict[CanonicalColumn, list[BoardTask]]:
    """Group tasks by column. Every column is present, in board order."""
    grouped: dict[CanonicalColumn, list[BoardTask]] = {column: [] for column in CanonicalColumn}
    for task in tasks:
        grouped[task.column].append(task)
    return grouped
