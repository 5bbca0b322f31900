"""Contains paginated fetching and conversion of Jira issues."""

import json
import time
from typing import Any, Awaitable, Callable, NamedTuple

import structlog

from jira_flow_sync.jira.abc import JiraClientBase
from jira_flow_sync.jira.exceptions import JiraFlowError
from jira_flow_sync.schemas.issue import DEFAULT_PLANNED_DUE_FIELD, DEFAULT_STORY_POINTS_FIELD, RemoteIssue
from jira_flow_sync.schemas.task import TaskOrigin, TaskRecord
from jira_flow_sync.synchronize.results import StepResult
from jira_flow_sync.synchronize.status import StatusNormalizer
from jira_flow_sync.utils.constants import ISSUE_FIELDS, PAGE_SIZE

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

PageFetcher = Callable[[int, int], Awaitable[tuple[list[dict[str, Any]], int]]]


class FetchedIssues(NamedTuple):
    """Issues returned by a fetch, plus the keys a guard excluded."""

    issues: list[RemoteIssue]
    excluded: tuple[str, ...] = ()


def build_issue_fields(story_points_field: str = DEFAULT_STORY_POINTS_FIELD, planned_due_field: str = DEFAULT_PLANNED_DUE_FIELD) -> list[str]:
    """The standard issue fields plus the deployment-specific ones."""
    fields = list(ISSUE_FIELDS)
    for extra in (story_points_field, planned_due_field):
        if extra and extra not in fields:
            fields.append(extra)
    return fields


def quote_jql(value: str) -> str:
    """Quote a value as a JQL string literal, escaping backslashes and double quotes."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_jql(assignee: str | None = None, project_key: str | None = None) -> str | None:
    """Combine the assignee and project filters. Returns None when there is nothing to filter on."""
    conditions = []
    if assignee:
        conditions.append(f"assignee={quote_jql(assignee)}")
    if project_key:
        conditions.append(f"project={quote_jql(project_key)}")
    return " AND ".join(conditions) or None


async def paginate(fetch_page: PageFetcher, page_size: int = PAGE_SIZE, label: str = "issues") -> list[dict[str, Any]]:
    """Collect every page of a paginated endpoint.

    The total reported by the first response is authoritative: the loop
    stops once that many items have accumulated, regardless of page length.
    A page with no items also ends the loop. Each request starts after the
    items actually served, so a server that caps pages below ``page_size``
    costs one request per served page.
    """
    collected: list[dict[str, Any]] = []
    total: int | None = None
    start_at = 0
    requests = 0
    while True:
        page, page_total = await fetch_page(start_at, page_size)
        requests += 1
        if total is None:
            total = page_total
        collected.extend(page)
        start_at += len(page)
        logger.debug("Fetched page", label=label, start_at=start_at, page_length=len(page), total=total)
        if not page or len(collected) >= total:
            break
    logger.info("Fetched all pages", label=label, fetched=len(collected), total=total, requests=requests)
    return collected


def exclude_sprint_associated(issues: list[RemoteIssue]) -> tuple[list[RemoteIssue], list[str]]:
    """Split off issues tied to a live or closed sprint. Returns the kept issues and the excluded keys."""
    kept: list[RemoteIssue] = []
    excluded: list[str] = []
    for issue in issues:
        if issue.has_sprint_association:
            excluded.append(issue.key)
        else:
            kept.append(issue)
    return kept, excluded


def convert_issue(
    issue: RemoteIssue,
    normalizer: StatusNormalizer,
    epoch: int,
    sprint_name: str | None = None,
    sprint_state: str | None = None,
) -> TaskRecord:
    """Convert a fetched issue into a remote-origin task record stamped with ``epoch``.

    The issue's own sprint association wins over the fetch context.
    """
    if issue.sprint is not None:
        sprint_name, sprint_state = issue.sprint.name, issue.sprint.state
    return TaskRecord(
        key=issue.key,
        summary=issue.summary,
        status=issue.status,
        column=normalizer.normalize(issue.status),
        issuetype=issue.issuetype,
        sprint=sprint_name,
        sprint_state=sprint_state,
        assignee_name=issue.assignee_name,
        assignee_avatar=issue.assignee_avatar,
        due_date=issue.due_date,
        priority=issue.priority,
        story_points=issue.story_points,
        description=issue.description,
        updated_at=issue.updated,
        sync_epoch=epoch,
        origin=TaskOrigin.REMOTE,
        raw_json=json.dumps(issue.raw, ensure_ascii=False),
    )


class IssueFetcher:
    """Fetches sprint, backlog and fallback issue sets for one run."""

    def __init__(
        self,
        client: JiraClientBase,
        assignee: str | None = None,
        story_points_field: str = DEFAULT_STORY_POINTS_FIELD,
        planned_due_field: str = DEFAULT_PLANNED_DUE_FIELD,
        page_size: int = PAGE_SIZE,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: Jira client to fetch through
            assignee: Identity issues are filtered on; None fetches unfiltered
            story_points_field: Field id carrying story points
            planned_due_field: Field id carrying the planned due date
            page_size: Items requested per page
        """
        self.client = client
        self.assignee = assignee
        self.story_points_field = story_points_field
        self.planned_due_field = planned_due_field
        self.page_size = page_size
        self.fields = build_issue_fields(story_points_field, planned_due_field)

    def _parse(self, payloads: list[dict[str, Any]]) -> list[RemoteIssue]:
        return [RemoteIssue.from_payload(p, self.story_points_field, self.planned_due_field) for p in payloads]

    async def fetch_sprint_issues(self, sprint_id: int) -> StepResult[FetchedIssues]:
        """Fetch every issue in a sprint, filtered by assignee when one is configured."""
        jql = build_jql(self.assignee)

        async def fetch_page(start_at: int, max_results: int) -> tuple[list[dict[str, Any]], int]:
            return await self.client.list_sprint_issues(sprint_id, jql=jql, fields=self.fields, start_at=start_at, max_results=max_results)

        start_time = time.time()
        try:
            payloads = await paginate(fetch_page, self.page_size, label="sprint")
        except JiraFlowError as exc:
            logger.warning("Could not fetch sprint issues", sprint_id=sprint_id, error=str(exc), error_type=type(exc).__name__)
            return StepResult.failure(exc)
        issues = self._parse(payloads)
        logger.info("Fetched sprint issues", sprint_id=sprint_id, count=len(issues), duration=round(time.time() - start_time, 2))
        return StepResult.success(FetchedIssues(issues))

    async def fetch_backlog_issues(self, board_id: int, project_key: str) -> StepResult[FetchedIssues]:
        """Fetch every backlog issue of a board, restricted to the project.

        Issues that still carry a sprint or closed-sprint association are
        excluded and reported.
        """
        jql = build_jql(self.assignee, project_key)

        async def fetch_page(start_at: int, max_results: int) -> tuple[list[dict[str, Any]], int]:
            return await self.client.list_backlog_issues(board_id, jql=jql, fields=self.fields, start_at=start_at, max_results=max_results)

        start_time = time.time()
        try:
            payloads = await paginate(fetch_page, self.page_size, label="backlog")
        except JiraFlowError as exc:
            logger.warning("Could not fetch backlog issues", board_id=board_id, error=str(exc), error_type=type(exc).__name__)
            return StepResult.failure(exc)
        issues, excluded = exclude_sprint_associated(self._parse(payloads))
        if excluded:
            logger.warning("Excluded sprint-associated issues from backlog", board_id=board_id, issue_keys=excluded)
        logger.info("Fetched backlog issues", board_id=board_id, count=len(issues), excluded=len(excluded), duration=round(time.time() - start_time, 2))
        return StepResult.success(FetchedIssues(issues, tuple(excluded)))

    async def search_issues(self, jql: str) -> StepResult[FetchedIssues]:
        """Fetch every issue matching a JQL query."""

        async def fetch_page(start_at: int, max_results: int) -> tuple[list[dict[str, Any]], int]:
            return await self.client.search_issues(jql, fields=self.fields, start_at=start_at, max_results=max_results)

        start_time = time.time()
        try:
            payloads = await paginate(fetch_page, self.page_size, label="search")
        except JiraFlowError as exc:
            logger.warning("Could not search issues", jql=jql, error=str(exc), error_type=type(exc).__name__)
            return StepResult.failure(exc)
        issues = self._parse(payloads)
        logger.info("Searched issues", jql=jql, count=len(issues), duration=round(time.time() - start_time, 2))
        return StepResult.success(FetchedIssues(issues))
