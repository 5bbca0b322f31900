"""Removes remote records that a run did not refresh."""

import sqlite3

import structlog

from jira_flow_sync.storage.tasks import TaskStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def prune_stale_tasks(store: TaskStore, epoch: int) -> int:
    """Delete remote-origin records stamped with an epoch older than ``epoch``.

    Local-origin records are never touched.

    Raises:
        sqlite3.Error: If the delete fails
    """
    try:
        deleted = store.delete_stale(epoch)
    except sqlite3.Error as exc:
        logger.error("Failed to prune stale tasks", epoch=epoch, error=str(exc))
        raise
    logger.info("Pruned stale tasks", epoch=epoch, deleted=deleted)
    return deleted
