"""Contains exceptions raised when reconciling application configuration."""

from jira_flow_sync.jira.exceptions import JiraFlowError


class NotConfigured(JiraFlowError):
    """Raised when the Jira connection or a required setting is undefined."""

    pass


class RequiredConfigurationElementError(NotConfigured):
    """Raised when a required configuration element is missing."""

    def __init__(self, name: str, cli_name: str, env_name: str) -> None:
        """Initializes the exception with the name of the missing element."""
        super().__init__(f"Missing required configuration element: {name} (command line option {cli_name}, environment variable {env_name})")
        self.name = name
        self.cli_name = cli_name
        self.env_name = env_name
