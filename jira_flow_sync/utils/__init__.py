"""Utility modules for shared functionality."""

from .constants import (
    BACKLOG_SPRINT_NAME,
    DUE_SOON_DAYS,
    FALLBACK_JQL,
    ISSUE_FIELDS,
    PAGE_SIZE,
)
from .helpers import normalize_label

__all__ = [
    "BACKLOG_SPRINT_NAME",
    "DUE_SOON_DAYS",
    "FALLBACK_JQL",
    "ISSUE_FIELDS",
    "PAGE_SIZE",
    "normalize_label",
]
