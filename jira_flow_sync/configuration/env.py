"""Pydantic Settings model for application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment variable settings for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Generic application-wide settings
    DEBUG: bool = False
    JIRA_DB_PATH: Path = Path.home() / ".local" / "share" / "jira-flow-sync" / "jira-flow.db"

    # Jira connection settings
    JIRA_HOST: str | None = None
    JIRA_USERNAME: str | None = None
    JIRA_PASSWORD: str | None = None
    JIRA_PROJECT_KEY: str | None = None
    JIRA_TIMEOUT: float = 30.0
    JIRA_VERIFY_SSL: bool = True
