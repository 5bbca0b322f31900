"""Reconcile Jira connection configuration."""

from pathlib import Path

from jira_flow_sync.configuration.exceptions import NotConfigured, RequiredConfigurationElementError
from jira_flow_sync.configuration.models import JiraConnectionConfig, SyncConfig


async def validate_jira_connection_configuration(
    jira_host: str | None,
    jira_username: str | None,
    jira_password: str | None,
    jira_timeout: float = 30.0,
    jira_verify_ssl: bool = True,
) -> JiraConnectionConfig:
    """Validates the Jira connection configuration.

    Args:
        jira_host (str | None): The Jira base URL.
        jira_username (str | None): The Jira account name or e-mail.
        jira_password (str | None): The Jira password or personal access token.
        jira_timeout (float): Per-call timeout in seconds.
        jira_verify_ssl (bool): Whether to verify the server's TLS certificate.

    Raises:
        NotConfigured: If any connection setting is missing or the timeout is not positive.

    Returns:
        JiraConnectionConfig: The resolved connection configuration.
    """
    missing_settings: list[dict[str, str]] = []
    if not jira_host:
        missing_settings.append({"name": "Jira host", "cli_name": "--jira-host", "env_name": "JIRA_HOST"})
    if not jira_username:
        missing_settings.append({"name": "Jira username", "cli_name": "--jira-username", "env_name": "JIRA_USERNAME"})
    if not jira_password:
        missing_settings.append({"name": "Jira password or token", "cli_name": "--jira-password", "env_name": "JIRA_PASSWORD"})

    if len(missing_settings) == 1:
        raise RequiredConfigurationElementError(**missing_settings[0])
    if missing_settings:
        msg = "Incomplete Jira configuration - missing settings include " + ", ".join(
            f"{setting['name']} (command line option {setting['cli_name']}, environment variable {setting['env_name']})"
            for setting in missing_settings
        )
        raise NotConfigured(msg)

    if jira_timeout <= 0:
        raise NotConfigured(f"Jira timeout must be positive, got {jira_timeout}")

    return JiraConnectionConfig(
        host=jira_host,  # type: ignore[arg-type]
        username=jira_username,  # type: ignore[arg-type]
        password=jira_password,  # type: ignore[arg-type]
        timeout=jira_timeout,
        verify_ssl=jira_verify_ssl,
    )


async def reconcile_sync_configuration(
    connection: JiraConnectionConfig,
    project_key: str | None,
    db_path: Path,
    debug: bool = False,
) -> SyncConfig:
    """Combine a validated connection with the sync-specific settings."""
    if not project_key:
        raise RequiredConfigurationElementError("Jira project key", "PROJECT_KEY", "JIRA_PROJECT_KEY")
    return SyncConfig(connection=connection, project_key=project_key, db_path=db_path, debug=debug)
