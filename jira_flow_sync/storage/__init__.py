"""SQLite-backed local task store and settings store."""

from .database import open_database
from .settings import SettingsStore
from .tasks import TaskStore

__all__ = [
    "open_database",
    "SettingsStore",
    "TaskStore",
]
