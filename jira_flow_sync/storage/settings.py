"""String-keyed settings persisted in the local SQLite database."""

import sqlite3
import time

import structlog

from jira_flow_sync.schemas.issue import DEFAULT_PLANNED_DUE_FIELD, DEFAULT_STORY_POINTS_FIELD, BoardDescriptor, SprintDescriptor
from jira_flow_sync.utils.helpers import normalize_label

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

ASSIGNEE_KEY = "jira_username"
STORY_POINTS_FIELD_KEY = "jira_storyPointsField"
PLANNED_DUE_FIELD_KEY = "jira_plannedDueField"
BOARD_ID_KEY = "jira_boardId"
BOARD_NAME_KEY = "jira_boardName"
SPRINT_ID_KEY = "jira_activeSprintId"
SPRINT_NAME_KEY = "jira_activeSprintName"
SPRINT_STATE_KEY = "jira_activeSprintState"
LAST_SYNC_KEY = "jira_lastSync"
LAST_SYNC_EPOCH_KEY = "jira_lastSyncEpoch"
SYNC_METHOD_KEY = "jira_syncMethod"
STATUS_OVERRIDE_PREFIX = "status_map_"


def status_override_key(label: str) -> str:
    """Settings key under which the override for a status label is stored."""
    return f"{STATUS_OVERRIDE_PREFIX}{normalize_label(label)}"


class SettingsStore:
    """Key/value settings table with typed accessors for the sync engine."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize the store with an open connection (see ``open_database``)."""
        self.conn = conn

    def get(self, key: str) -> str | None:
        """Get a raw setting value."""
        row = self.conn.execute("SELECT s_value FROM t_settings WHERE s_key = ?", (key,)).fetchone()
        return row["s_value"] if row is not None else None

    def set(self, key: str, value: str) -> None:
        """Set a raw setting value."""
        with self.conn:
            self.conn.execute("INSERT OR REPLACE INTO t_settings (s_key, s_value) VALUES (?, ?)", (key, value))

    def delete(self, key: str) -> None:
        """Delete a setting if present."""
        with self.conn:
            self.conn.execute("DELETE FROM t_settings WHERE s_key = ?", (key,))

    # Sync inputs
    @property
    def assignee(self) -> str | None:
        """Identity used to filter fetched issues, or None for unfiltered fetches."""
        return self.get(ASSIGNEE_KEY) or None

    @property
    def story_points_field(self) -> str:
        """Deployment-specific field id carrying story points."""
        return self.get(STORY_POINTS_FIELD_KEY) or DEFAULT_STORY_POINTS_FIELD

    @property
    def planned_due_field(self) -> str:
        """Deployment-specific field id carrying the planned due date."""
        return self.get(PLANNED_DUE_FIELD_KEY) or DEFAULT_PLANNED_DUE_FIELD

    # Status overrides
    def get_status_override(self, label: str) -> str | None:
        """The user-defined column for a status label, if any."""
        return self.get(status_override_key(label))

    def set_status_override(self, label: str, column: str) -> None:
        """Map a status label onto a column."""
        self.set(status_override_key(label), column)

    def remove_status_override(self, label: str) -> None:
        """Remove the override for a status label."""
        self.delete(status_override_key(label))

    def list_status_overrides(self) -> dict[str, str]:
        """All overrides, keyed by lower-cased label."""
        rows = self.conn.execute(
            "SELECT s_key, s_value FROM t_settings WHERE s_key LIKE ? ORDER BY s_key",
            (f"{STATUS_OVERRIDE_PREFIX}%",),
        ).fetchall()
        # LIKE treats "_" as a wildcard.
        return {row["s_key"][len(STATUS_OVERRIDE_PREFIX) :]: row["s_value"] for row in rows if row["s_key"].startswith(STATUS_OVERRIDE_PREFIX)}

    # Diagnostic metadata
    def record_board(self, board: BoardDescriptor) -> None:
        """Remember the last resolved board."""
        self.set(BOARD_ID_KEY, str(board.id))
        self.set(BOARD_NAME_KEY, board.name)

    def record_sprint(self, sprint: SprintDescriptor) -> None:
        """Remember the last resolved sprint."""
        self.set(SPRINT_ID_KEY, str(sprint.id))
        self.set(SPRINT_NAME_KEY, sprint.name)
        self.set(SPRINT_STATE_KEY, sprint.state)

    @property
    def last_sync_epoch(self) -> int:
        """Epoch of the last completed run, 0 if none."""
        value = self.get(LAST_SYNC_EPOCH_KEY)
        try:
            return int(value) if value else 0
        except ValueError:
            logger.warning("Ignoring malformed last sync epoch", value=value)
            return 0

    def record_sync(self, epoch: int, method: str) -> None:
        """Remember when and how the last run completed."""
        self.set(LAST_SYNC_KEY, str(int(time.time() * 1000)))
        self.set(LAST_SYNC_EPOCH_KEY, str(epoch))
        self.set(SYNC_METHOD_KEY, method)

    def sync_info(self) -> dict[str, str | None]:
        """Diagnostic metadata about the last run."""
        return {
            "board_id": self.get(BOARD_ID_KEY),
            "board_name": self.get(BOARD_NAME_KEY),
            "sprint_id": self.get(SPRINT_ID_KEY),
            "sprint_name": self.get(SPRINT_NAME_KEY),
            "sprint_state": self.get(SPRINT_STATE_KEY),
            "last_sync": self.get(LAST_SYNC_KEY),
            "last_sync_epoch": self.get(LAST_SYNC_EPOCH_KEY),
            "sync_method": self.get(SYNC_METHOD_KEY),
        }
