"""Contains the error taxonomy shared by the Jira client and the sync pipeline."""


class JiraFlowError(Exception):
    """Base class for all errors raised by jira-flow-sync."""

    pass


class AuthenticationFailed(JiraFlowError):
    """Raised when Jira rejects the configured credentials."""

    pass


class NotFound(JiraFlowError):
    """Raised when a board, sprint or issue does not exist."""

    pass


class Timeout(JiraFlowError):
    """Raised when a Jira call exceeds its per-call timeout."""

    pass


class NetworkError(JiraFlowError):
    """Raised when Jira cannot be reached at the transport level."""

    pass


class ServerError(JiraFlowError):
    """Raised when Jira answers with an unexpected non-2xx status."""

    def __init__(self, status: int, message: str) -> None:
        """Initializes the exception with the HTTP status and Jira's message."""
        super().__init__(f"Jira returned HTTP {status}: {message}")
        self.status = status
        self.message = message


class ValidationError(JiraFlowError):
    """Raised when Jira rejects a request because of a specific field."""

    def __init__(self, field: str, message: str) -> None:
        """Initializes the exception with the offending field and Jira's message."""
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class PartialFailure(JiraFlowError):
    """Records a pipeline step that degraded while the run still produced output."""

    def __init__(self, step: str, cause: JiraFlowError) -> None:
        """Initializes the exception with the degraded step and its underlying error."""
        super().__init__(f"Step '{step}' degraded: {cause}")
        self.step = step
        self.cause = cause
