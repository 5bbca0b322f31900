"""Pydantic schema for task records mirrored into the local store."""

from enum import Enum

from pydantic import BaseModel


class CanonicalColumn(str, Enum):
    """The closed set of board columns a task can be placed in."""

    FUNNEL = "FUNNEL"
    DEFINING = "DEFINING"
    READY = "READY"
    TO_DO = "TO DO"
    EXECUTION = "EXECUTION"
    EXECUTED = "EXECUTED"
    TESTING_AND_REVIEW = "TESTING & REVIEW"
    TEST_DONE = "TEST DONE"
    VALIDATING = "VALIDATING"
    RESOLVED = "RESOLVED"
    DONE = "DONE"
    CLOSED = "CLOSED"


class TaskOrigin(str, Enum):
    """Where a task record was authored."""

    REMOTE = "remote"
    LOCAL = "local"


class TaskRecord(BaseModel):
    """Pydantic model for a task row in the local store."""

    key: str
    summary: str
    status: str
    column: CanonicalColumn
    issuetype: str | None = None
    sprint: str | None = None
    sprint_state: str | None = None
    assignee_name: str | None = None
    assignee_avatar: str | None = None
    due_date: str | None = None
    priority: str | None = None
    story_points: float | None = None
    description: str | None = None
    updated_at: str | None = None
    sync_epoch: int = 0
    origin: TaskOrigin = TaskOrigin.REMOTE
    raw_json: str | None = None


class TaskLink(BaseModel):
    """A link from a board task to another issue."""

    key: str
    summary: str
    type: str


class BoardTask(BaseModel):
    """Pydantic model for a task as presented on the board."""

    key: str
    summary: str
    status: str
    column: CanonicalColumn
    issuetype: str | None = None
    sprint: str | None = None
    sprint_state: str | None = None
    priority: str | None = None
    assignee_name: str | None = None
    assignee_avatar: str | None = None
    due_date: str | None = None
    is_overdue: bool = False
    is_due_soon: bool = False
    description: str = ""
    parent: str = ""
    links: list[TaskLink] = []
    story_points: float | None = None
    origin: TaskOrigin = TaskOrigin.REMOTE
