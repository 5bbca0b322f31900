"""Unit tests for validate_jira_connection_configuration and reconcile_sync_configuration."""

from pathlib import Path

import pytest

from jira_flow_sync.configuration.exceptions import NotConfigured, RequiredConfigurationElementError
from jira_flow_sync.configuration.models import JiraConnectionConfig
from jira_flow_sync.configuration.reconcile import reconcile_sync_configuration, validate_jira_connection_configuration


@pytest.mark.asyncio
async def test_valid_connection_configuration() -> None:
    """Test that a complete connection configuration is returned as-is."""
    # When
    connection = await validate_jira_connection_configuration(
        jira_host="https://jira.example.com",
        jira_username="jdoe",
        jira_password="secret",
        jira_timeout=10.0,
        jira_verify_ssl=False,
    )

    # Then
    assert connection == JiraConnectionConfig(host="https://jira.example.com", username="jdoe", password="secret", timeout=10.0, verify_ssl=False)


@pytest.mark.asyncio
async def test_single_missing_setting() -> None:
    """Test that a single missing setting names its option and environment variable."""
    # When/Then
    with pytest.raises(RequiredConfigurationElementError) as exc_info:
        await validate_jira_connection_configuration(jira_host="https://jira.example.com", jira_username="jdoe", jira_password=None)

    assert exc_info.value.cli_name == "--jira-password"
    assert exc_info.value.env_name == "JIRA_PASSWORD"


@pytest.mark.asyncio
async def test_multiple_missing_settings() -> None:
    """Test that every missing setting is listed."""
    # When/Then
    with pytest.raises(NotConfigured) as exc_info:
        await validate_jira_connection_configuration(jira_host=None, jira_username="", jira_password="secret")

    assert not isinstance(exc_info.value, RequiredConfigurationElementError)
    assert "JIRA_HOST" in str(exc_info.value)
    assert "JIRA_USERNAME" in str(exc_info.value)
    assert "JIRA_PASSWORD" not in str(exc_info.value)


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout", [0.0, -5.0])
async def test_non_positive_timeout(timeout: float) -> None:
    """Test that the per-call timeout must be positive."""
    with pytest.raises(NotConfigured, match="timeout"):
        await validate_jira_connection_configuration("https://jira.example.com", "jdoe", "secret", jira_timeout=timeout)


@pytest.mark.asyncio
async def test_sync_configuration_requires_project_key(tmp_path: Path) -> None:
    """Test that the sync configuration needs a project key."""
    connection = JiraConnectionConfig(host="https://jira.example.com", username="jdoe", password="secret")

    with pytest.raises(RequiredConfigurationElementError, match="JIRA_PROJECT_KEY"):
        await reconcile_sync_configuration(connection, None, tmp_path / "jira-flow.db")

    config = await reconcile_sync_configuration(connection, "PROJ", tmp_path / "jira-flow.db")
    assert config.project_key == "PROJ"
    assert config.connection is connection
