"""Enumerations describing synchronization runs."""

from enum import Enum


class SyncMethod(Enum):
    """How issues were fetched during a run."""

    AGILE = "agile"
    JQL = "jql"


class SyncStatus(Enum):
    """Overall outcome of a run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SyncStep(Enum):
    """Pipeline steps that can degrade a run."""

    BOARD = "board"
    SPRINT = "sprint"
    SPRINT_ISSUES = "sprint_issues"
    BACKLOG_ISSUES = "backlog_issues"
    FALLBACK = "fallback"
    PERSIST = "persist"
    PRUNE = "prune"
