"""Shared constants used across the application."""

# Fetch Constants
# ---------------

PAGE_SIZE = 100
"""Number of issues requested per page from search, sprint and backlog endpoints."""

ISSUE_FIELDS = (
    "summary",
    "status",
    "assignee",
    "priority",
    "issuetype",
    "sprint",
    "closedSprints",
    "created",
    "updated",
    "description",
    "parent",
    "issuelinks",
    "duedate",
)
"""Standard fields requested for every fetched issue. Deployment-specific field ids are appended at runtime."""

FALLBACK_JQL = "assignee = currentUser() ORDER BY updated DESC"
"""Query used when no board can be resolved for the project."""

SPRINT_STATES = ("active", "future", "closed")
"""Sprint states tried in order when resolving the sprint of a board."""

# Record Context Constants
# ------------------------

BACKLOG_SPRINT_NAME = "Backlog"
"""Sprint name given to issues fetched outside any sprint."""

BACKLOG_SPRINT_STATE = "future"
"""Sprint state given to backlog issues."""

FALLBACK_SPRINT_STATE = "unknown"
"""Sprint state given to issues fetched by the fallback query."""

# Board Constants
# ---------------

DUE_SOON_DAYS = 3
"""A task is due soon when its due date falls within this many days from today."""

PERSONAL_TASK_PREFIX = "ME-"
"""Key prefix for locally-authored personal tasks."""
