"""Opens the local SQLite database and ensures its tables exist."""

import sqlite3
from pathlib import Path

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS t_tasks (
    key TEXT PRIMARY KEY,
    summary TEXT NOT NULL,
    status TEXT NOT NULL,
    mapped_column TEXT NOT NULL,
    issuetype TEXT,
    sprint TEXT,
    sprint_state TEXT,
    assignee_name TEXT,
    assignee_avatar TEXT,
    due_date TEXT,
    priority TEXT,
    story_points REAL,
    description TEXT,
    updated_at TEXT,
    sync_epoch INTEGER NOT NULL DEFAULT 0,
    origin TEXT NOT NULL DEFAULT 'remote',
    raw_json TEXT
);
CREATE INDEX IF NOT EXISTS idx_tasks_mapped_column ON t_tasks(mapped_column);
CREATE INDEX IF NOT EXISTS idx_tasks_origin_epoch ON t_tasks(origin, sync_epoch);
CREATE TABLE IF NOT EXISTS t_settings (
    s_key TEXT PRIMARY KEY,
    s_value TEXT
);
"""


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open a connection in WAL mode and create the tables if they don't exist.

    ``":memory:"`` is accepted for throwaway stores.
    """
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    conn.executescript(SCHEMA)
    logger.debug("Opened local database", db_path=str(db_path))
    return conn
