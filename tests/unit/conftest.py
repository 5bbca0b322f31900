"""Fixtures for unit tests."""

import sqlite3
from pathlib import Path
from typing import Generator

import pytest
import structlog

from jira_flow_sync.storage import SettingsStore, TaskStore, open_database


@pytest.fixture(autouse=True)
def configure_structlog_for_caplog() -> Generator[None, None, None]:
    """Configure structlog for use with caplog."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def db_connection(tmp_path: Path) -> Generator[sqlite3.Connection, None, None]:
    """A fresh SQLite database in a temporary directory."""
    conn = open_database(tmp_path / "jira-flow.db")
    yield conn
    conn.close()


@pytest.fixture
def task_store(db_connection: sqlite3.Connection) -> TaskStore:
    """Task store backed by the temporary database."""
    return TaskStore(db_connection)


@pytest.fixture
def settings_store(db_connection: sqlite3.Connection) -> SettingsStore:
    """Settings store backed by the temporary database."""
    return SettingsStore(db_connection)
