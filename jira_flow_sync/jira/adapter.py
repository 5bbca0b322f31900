"""Jira client adapter built on httpx."""

import json
from functools import wraps
from typing import Any, Awaitable, Callable, Self, TypeVar

import httpx
import structlog

from jira_flow_sync.schemas.issue import BoardDescriptor, Identity, SprintDescriptor, Transition

from .abc import JiraClientBase
from .client import DEFAULT_TIMEOUT_SECONDS, get_jira_client
from .exceptions import AuthenticationFailed, JiraFlowError, NetworkError, NotFound, ServerError, Timeout, ValidationError

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def decode_body(content: bytes) -> Any:
    """Decode a response body as UTF-8 JSON, ignoring any content-type charset.

    Status names and summaries routinely mix scripts, and a guessed charset
    silently corrupts them. Empty bodies (e.g. 204 No Content) decode to None.
    """
    if not content or not content.strip():
        return None
    return json.loads(content.decode("utf-8"))


def extract_error_message(response: httpx.Response) -> tuple[str, dict[str, str]]:
    """Pull the most specific error message and any field errors out of a Jira error response."""
    try:
        body = decode_body(response.content)
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return response.reason_phrase or f"HTTP {response.status_code}", {}

    field_errors: dict[str, str] = {str(k): str(v) for k, v in (body.get("errors") or {}).items()}
    error_messages = body.get("errorMessages") or []
    if error_messages:
        return str(error_messages[0]), field_errors
    if body.get("message"):
        return str(body["message"]), field_errors
    if field_errors:
        return ", ".join(f"{field}: {err}" for field, err in field_errors.items()), field_errors
    return response.reason_phrase or f"HTTP {response.status_code}", field_errors


def classify_response_error(response: httpx.Response) -> JiraFlowError:
    """Map a non-2xx Jira response onto the error taxonomy."""
    message, field_errors = extract_error_message(response)
    status = response.status_code
    if status in (401, 403):
        return AuthenticationFailed(message)
    if status == 404:
        return NotFound(message)
    if status == 400 and field_errors:
        field, field_message = next(iter(field_errors.items()))
        return ValidationError(field, field_message)
    return ServerError(status, message)


def handle_jira_errors(func: F) -> F:
    """Decorator translating httpx failures into typed jira-flow-sync errors, logging the details."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except httpx.HTTPStatusError as exc:
            error = classify_response_error(exc.response)
            logger.error(
                "Jira request failed",
                function=func.__name__,
                status_code=exc.response.status_code,
                error_type=type(error).__name__,
                error=str(error),
                url=str(exc.request.url),
            )
            raise error from exc
        except httpx.TimeoutException as exc:
            logger.error("Jira request timed out", function=func.__name__, error=str(exc))
            raise Timeout(f"Jira request timed out in {func.__name__}") from exc
        except httpx.TransportError as exc:
            logger.error("Jira request could not be sent", function=func.__name__, error=str(exc), error_type=type(exc).__name__)
            raise NetworkError(f"Jira is unreachable: {exc}") from exc

    return wrapper  # type: ignore


class JiraHttpxAdapter(JiraClientBase):
    """Jira client adapter for the httpx library."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Initialize the Jira client adapter with an already-initialized client."""
        self.client = client

    @classmethod
    def create(
        cls,
        host: str | None,
        username: str | None,
        password: str | None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        verify_ssl: bool = True,
    ) -> Self:
        """Create a new Jira client adapter.

        Args:
            host: Jira base URL, e.g. https://jira.example.com
            username: Account name or e-mail
            password: Password or personal access token
            timeout: Per-call timeout in seconds
            verify_ssl: Whether to verify the server's TLS certificate

        Returns:
            Configured JiraHttpxAdapter instance

        Raises:
            NotConfigured: If any connection setting is missing
        """
        logger.info("Creating client for Jira instance", host=host, username=username, timeout=timeout, verify_ssl=verify_ssl)
        return cls(get_jira_client(host, username, password, timeout=timeout, verify_ssl=verify_ssl))

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the UTF-8 decoded JSON body."""
        response = await self.client.request(method, path, **kwargs)
        response.raise_for_status()
        try:
            return decode_body(response.content)
        except ValueError as exc:
            raise ServerError(response.status_code, "Response body is not valid UTF-8 JSON") from exc

    @staticmethod
    def _page_params(jql: str | None, fields: list[str] | None, start_at: int, max_results: int) -> dict[str, Any]:
        params: dict[str, Any] = {"startAt": start_at, "maxResults": max_results}
        if jql:
            params["jql"] = jql
        if fields:
            params["fields"] = ",".join(fields)
        return params

    @staticmethod
    def _page(data: Any) -> tuple[list[dict[str, Any]], int]:
        data = data or {}
        return list(data.get("issues") or []), int(data.get("total") or 0)

    # Identity
    @handle_jira_errors
    async def test_connection(self) -> Identity:
        """Return the identity the client is authenticated as."""
        data = await self._request("GET", "/rest/api/2/myself") or {}
        return Identity(
            display_name=data.get("displayName") or data.get("name") or "",
            name=data.get("name"),
            account_id=data.get("accountId"),
            email_address=data.get("emailAddress"),
        )

    # Issue CRUD
    @handle_jira_errors
    async def search_issues(
        self,
        jql: str,
        fields: list[str] | None = None,
        start_at: int = 0,
        max_results: int = 100,
    ) -> tuple[list[dict[str, Any]], int]:
        """Run a JQL search and return one page of raw issues plus the reported total."""
        data = await self._request("GET", "/rest/api/2/search", params=self._page_params(jql, fields, start_at, max_results))
        return self._page(data)

    @handle_jira_errors
    async def get_issue(self, issue_key: str) -> dict[str, Any]:
        """Get a single raw issue."""
        data = await self._request("GET", f"/rest/api/2/issue/{issue_key}")
        if not data:
            raise NotFound(f"Issue {issue_key} returned an empty body")
        return data  # type: ignore[no-any-return]

    @handle_jira_errors
    async def update_issue(self, issue_key: str, fields: dict[str, Any]) -> None:
        """Update fields on an issue. An empty field map is a no-op."""
        if not fields:
            logger.info("No fields to update", issue_key=issue_key)
            return
        logger.info("Updating issue", issue_key=issue_key, fields=fields)
        await self._request("PUT", f"/rest/api/2/issue/{issue_key}", json={"fields": fields})

    # Workflow
    @handle_jira_errors
    async def get_transitions(self, issue_key: str) -> list[Transition]:
        """List the transitions currently available on an issue."""
        data = await self._request("GET", f"/rest/api/2/issue/{issue_key}/transitions") or {}
        return [
            Transition(id=str(t["id"]), name=t.get("name", ""), to_status=(t.get("to") or {}).get("name"))
            for t in data.get("transitions") or []
        ]

    @handle_jira_errors
    async def transition_issue(self, issue_key: str, transition_id: str) -> None:
        """Execute a transition on an issue."""
        await self._request("POST", f"/rest/api/2/issue/{issue_key}/transitions", json={"transition": {"id": transition_id}})

    # Agile
    @handle_jira_errors
    async def list_boards(self, project_key: str) -> list[BoardDescriptor]:
        """List the boards associated with a project."""
        data = await self._request("GET", "/rest/agile/1.0/board", params={"projectKeyOrId": project_key}) or {}
        return [BoardDescriptor(id=b["id"], name=b.get("name", ""), type=b.get("type") or "") for b in data.get("values") or []]

    @handle_jira_errors
    async def list_sprints(self, board_id: int, state: str) -> list[SprintDescriptor]:
        """List the sprints of a board in the given state."""
        data = await self._request("GET", f"/rest/agile/1.0/board/{board_id}/sprint", params={"state": state}) or {}
        return [SprintDescriptor(id=s["id"], name=s.get("name", ""), state=s.get("state") or state) for s in data.get("values") or []]

    @handle_jira_errors
    async def list_sprint_issues(
        self,
        sprint_id: int,
        jql: str | None = None,
        fields: list[str] | None = None,
        start_at: int = 0,
        max_results: int = 100,
    ) -> tuple[list[dict[str, Any]], int]:
        """Return one page of raw issues in a sprint plus the reported total."""
        data = await self._request(
            "GET",
            f"/rest/agile/1.0/sprint/{sprint_id}/issue",
            params=self._page_params(jql, fields, start_at, max_results),
        )
        return self._page(data)

    @handle_jira_errors
    async def list_backlog_issues(
        self,
        board_id: int,
        jql: str | None = None,
        fields: list[str] | None = None,
        start_at: int = 0,
        max_results: int = 100,
    ) -> tuple[list[dict[str, Any]], int]:
        """Return one page of raw backlog issues plus the reported total."""
        data = await self._request(
            "GET",
            f"/rest/agile/1.0/board/{board_id}/backlog",
            params=self._page_params(jql, fields, start_at, max_results),
        )
        return self._page(data)
