"""Merges the sprint and backlog record sets of a run."""

from typing import Iterable

import structlog

from jira_flow_sync.schemas.task import TaskRecord

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def merge_task_records(backlog: Iterable[TaskRecord], sprint: Iterable[TaskRecord]) -> list[TaskRecord]:
    """Return one record per key, with the sprint copy winning over the backlog copy."""
    merged: dict[str, TaskRecord] = {}
    for record in backlog:
        merged[record.key] = record
    overlapping = 0
    for record in sprint:
        if record.key in merged:
            overlapping += 1
        merged[record.key] = record
    if overlapping:
        logger.debug("Sprint records replaced backlog copies", count=overlapping)
    return list(merged.values())
