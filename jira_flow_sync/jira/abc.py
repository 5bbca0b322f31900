"""Base ABC for Jira clients."""

from abc import ABC, abstractmethod
from typing import Any

from jira_flow_sync.schemas.issue import BoardDescriptor, Identity, SprintDescriptor, Transition


class JiraClientBase(ABC):
    """Base ABC for Jira clients."""

    # Identity
    @abstractmethod
    async def test_connection(self) -> Identity:
        """Return the identity the client is authenticated as."""
        pass

    # Issue CRUD
    @abstractmethod
    async def search_issues(
        self,
        jql: str,
        fields: list[str] | None = None,
        start_at: int = 0,
        max_results: int = 100,
    ) -> tuple[list[dict[str, Any]], int]:
        """Run a JQL search and return one page of raw issues plus the reported total."""
        pass

    @abstractmethod
    async def get_issue(self, issue_key: str) -> dict[str, Any]:
        """Get a single raw issue."""
        pass

    @abstractmethod
    async def update_issue(self, issue_key: str, fields: dict[str, Any]) -> None:
        """Update fields on an issue."""
        pass

    # Workflow
    @abstractmethod
    async def get_transitions(self, issue_key: str) -> list[Transition]:
        """List the transitions currently available on an issue."""
        pass

    @abstractmethod
    async def transition_issue(self, issue_key: str, transition_id: str) -> None:
        """Execute a transition on an issue."""
        pass

    # Agile
    @abstractmethod
    async def list_boards(self, project_key: str) -> list[BoardDescriptor]:
        """List the boards associated with a project."""
        pass

    @abstractmethod
    async def list_sprints(self, board_id: int, state: str) -> list[SprintDescriptor]:
        """List the sprints of a board in the given state."""
        pass

    @abstractmethod
    async def list_sprint_issues(
        self,
        sprint_id: int,
        jql: str | None = None,
        fields: list[str] | None = None,
        start_at: int = 0,
        max_results: int = 100,
    ) -> tuple[list[dict[str, Any]], int]:
        """Return one page of raw issues in a sprint plus the reported total."""
        pass

    @abstractmethod
    async def list_backlog_issues(
        self,
        board_id: int,
        jql: str | None = None,
        fields: list[str] | None = None,
        start_at: int = 0,
        max_results: int = 100,
    ) -> tuple[list[dict[str, Any]], int]:
        """Return one page of raw backlog issues plus the reported total."""
        pass
