"""Models for configuration between CLI arguments and environment variables."""

from dataclasses import dataclass
from pathlib import Path


@dataclass
class JiraConnectionConfig:
    """Resolved connection settings for a Jira instance."""

    host: str
    username: str
    password: str
    timeout: float = 30.0
    verify_ssl: bool = True


@dataclass
class SyncConfig:
    """Configuration for the sync command."""

    connection: JiraConnectionConfig
    project_key: str
    db_path: Path
    debug: bool = False
