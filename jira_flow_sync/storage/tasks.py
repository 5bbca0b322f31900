"""Task record storage on top of the local SQLite database."""

import sqlite3
from typing import Any, Iterable

import structlog

from jira_flow_sync.schemas.task import CanonicalColumn, TaskOrigin, TaskRecord

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_COLUMNS = (
    "key",
    "summary",
    "status",
    "mapped_column",
    "issuetype",
    "sprint",
    "sprint_state",
    "assignee_name",
    "assignee_avatar",
    "due_date",
    "priority",
    "story_points",
    "description",
    "updated_at",
    "sync_epoch",
    "origin",
    "raw_json",
)

_INSERT = f"INSERT INTO t_tasks ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' for _ in _COLUMNS)})"

# Remote upserts never overwrite a record authored locally.
_UPSERT_REMOTE = (
    _INSERT
    + " ON CONFLICT(key) DO UPDATE SET "
    + ", ".join(f"{column} = excluded.{column}" for column in _COLUMNS if column != "key")
    + " WHERE t_tasks.origin = 'remote'"
)


def _to_row(record: TaskRecord) -> tuple[Any, ...]:
    return (
        record.key,
        record.summary,
        record.status,
        record.column.value,
        record.issuetype,
        record.sprint,
        record.sprint_state,
        record.assignee_name,
        record.assignee_avatar,
        record.due_date,
        record.priority,
        record.story_points,
        record.description,
        record.updated_at,
        record.sync_epoch,
        record.origin.value,
        record.raw_json,
    )


def _from_row(row: sqlite3.Row) -> TaskRecord:
    try:
        column = CanonicalColumn(row["mapped_column"])
    except ValueError:
        logger.warning("Stored task has an unknown column", key=row["key"], column=row["mapped_column"])
        column = CanonicalColumn.TO_DO
    return TaskRecord(
        key=row["key"],
        summary=row["summary"],
        status=row["status"],
        column=column,
        issuetype=row["issuetype"],
        sprint=row["sprint"],
        sprint_state=row["sprint_state"],
        assignee_name=row["assignee_name"],
        assignee_avatar=row["assignee_avatar"],
        due_date=row["due_date"],
        priority=row["priority"],
        story_points=row["story_points"],
        description=row["description"],
        updated_at=row["updated_at"],
        sync_epoch=row["sync_epoch"],
        origin=TaskOrigin(row["origin"]),
        raw_json=row["raw_json"],
    )


class TaskStore:
    """SQLite-backed store for task records."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize the store with an open connection (see ``open_database``)."""
        self.conn = conn

    def upsert(self, record: TaskRecord) -> None:
        """Insert or replace a remote-origin record by key."""
        self.upsert_many([record])

    def upsert_many(self, records: Iterable[TaskRecord]) -> int:
        """Insert or replace remote-origin records in a single transaction.

        Records whose key already belongs to a local-origin task are skipped.
        Returns the number of records actually written, skipped ones excluded.
        """
        rows = []
        for record in records:
            if record.origin != TaskOrigin.REMOTE:
                raise ValueError(f"Only remote-origin records can be upserted, got {record.key} with origin {record.origin.value}")
            rows.append(_to_row(record))
        with self.conn:
            cursor = self.conn.executemany(_UPSERT_REMOTE, rows)
        written = max(cursor.rowcount, 0)
        if written < len(rows):
            logger.info("Skipped records whose keys belong to local tasks", skipped=len(rows) - written)
        logger.debug("Upserted task records", count=written)
        return written

    def create_local(self, record: TaskRecord) -> TaskRecord:
        """Insert a locally-authored record. Fails if the key already exists."""
        if record.origin != TaskOrigin.LOCAL:
            raise ValueError(f"Task {record.key} is not a local-origin record")
        with self.conn:
            self.conn.execute(_INSERT, _to_row(record))
        return record

    def get(self, key: str) -> TaskRecord | None:
        """Get a record by key."""
        row = self.conn.execute("SELECT * FROM t_tasks WHERE key = ?", (key,)).fetchone()
        return _from_row(row) if row is not None else None

    def all(self) -> list[TaskRecord]:
        """All records, most recently synced first."""
        rows = self.conn.execute("SELECT * FROM t_tasks ORDER BY sync_epoch DESC, key").fetchall()
        return [_from_row(row) for row in rows]

    def query_by_column(self, column: CanonicalColumn) -> list[TaskRecord]:
        """All records placed in the given board column."""
        rows = self.conn.execute("SELECT * FROM t_tasks WHERE mapped_column = ? ORDER BY key", (column.value,)).fetchall()
        return [_from_row(row) for row in rows]

    def delete_stale(self, epoch: int) -> int:
        """Delete remote-origin records whose epoch is older than ``epoch``. Returns the count."""
        with self.conn:
            cursor = self.conn.execute(
                "DELETE FROM t_tasks WHERE sync_epoch < ? AND origin = ?",
                (epoch, TaskOrigin.REMOTE.value),
            )
        return cursor.rowcount

    def update_status(self, key: str, status: str, column: CanonicalColumn, updated_at: str | None) -> bool:
        """Record a new remote status for a task. Returns whether a row changed."""
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE t_tasks SET status = ?, mapped_column = ?, updated_at = COALESCE(?, updated_at) WHERE key = ?",
                (status, column.value, updated_at, key),
            )
        return cursor.rowcount > 0

    def update_column(self, key: str, column: CanonicalColumn) -> bool:
        """Move a task to another column without touching its status."""
        with self.conn:
            cursor = self.conn.execute("UPDATE t_tasks SET mapped_column = ? WHERE key = ?", (column.value, key))
        return cursor.rowcount > 0

    def update_fields(self, key: str, values: dict[str, Any]) -> bool:
        """Update editable columns on a task. Unknown column names are rejected."""
        editable = {"summary", "status", "priority", "due_date", "story_points", "description"}
        unknown = set(values) - editable
        if unknown:
            raise ValueError(f"Cannot update task columns: {', '.join(sorted(unknown))}")
        if not values:
            return False
        assignments = ", ".join(f"{name} = ?" for name in values)
        with self.conn:
            cursor = self.conn.execute(f"UPDATE t_tasks SET {assignments} WHERE key = ?", (*values.values(), key))
        return cursor.rowcount > 0

    def delete_local(self, key: str) -> bool:
        """Delete a locally-authored task. Remote-origin records are left alone."""
        with self.conn:
            cursor = self.conn.execute("DELETE FROM t_tasks WHERE key = ? AND origin = ?", (key, TaskOrigin.LOCAL.value))
        return cursor.rowcount > 0
