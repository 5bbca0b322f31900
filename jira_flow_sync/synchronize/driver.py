"""Orchestrates the synchronization of Jira issues into the local task store."""

import asyncio
import sqlite3
import time
from typing import Callable

import structlog

from jira_flow_sync.jira.abc import JiraClientBase
from jira_flow_sync.jira.exceptions import NotFound
from jira_flow_sync.schemas.task import TaskRecord
from jira_flow_sync.storage.settings import SettingsStore
from jira_flow_sync.storage.tasks import TaskStore
from jira_flow_sync.synchronize.boards import locate_board
from jira_flow_sync.synchronize.issues import IssueFetcher, convert_issue
from jira_flow_sync.synchronize.merge import merge_task_records
from jira_flow_sync.synchronize.models import SyncMethod, SyncStep
from jira_flow_sync.synchronize.prune import prune_stale_tasks
from jira_flow_sync.synchronize.results import SyncResult
from jira_flow_sync.synchronize.sprints import locate_sprint
from jira_flow_sync.synchronize.status import StatusNormalizer
from jira_flow_sync.utils.constants import (
    BACKLOG_SPRINT_NAME,
    BACKLOG_SPRINT_STATE,
    FALLBACK_JQL,
    FALLBACK_SPRINT_STATE,
    PAGE_SIZE,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class SyncOrchestrator:
    """Drives one synchronization run at a time.

    A run resolves the board and sprint, fetches sprint and backlog issues,
    merges them, persists every record under a freshly minted epoch and then
    prunes remote records from earlier epochs. When no board can be resolved
    the run falls back to a plain JQL search of the current user's issues.
    """

    def __init__(
        self,
        client: JiraClientBase,
        tasks: TaskStore,
        settings: SettingsStore,
        normalizer: StatusNormalizer | None = None,
        page_size: int = PAGE_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the orchestrator with its collaborators.

        Args:
            client: Jira client
            tasks: Local task store
            settings: Local settings store
            normalizer: Status normalizer; defaults to one reading overrides from ``settings``
            page_size: Items requested per page
            clock: Returns the current time in seconds
        """
        self.client = client
        self.tasks = tasks
        self.settings = settings
        self.normalizer = normalizer or StatusNormalizer(override_lookup=settings.get_status_override)
        self.page_size = page_size
        self.clock = clock
        self._lock = asyncio.Lock()

    def mint_epoch(self) -> int:
        """Millisecond timestamp strictly greater than the last persisted epoch."""
        now_ms = int(self.clock() * 1000)
        last_epoch = self.settings.last_sync_epoch
        if now_ms <= last_epoch:
            logger.warning("Clock is behind the last sync epoch", now=now_ms, last_epoch=last_epoch)
            return last_epoch + 1
        return now_ms

    async def run(self, project_key: str) -> SyncResult:
        """Run one synchronization for a project. Concurrent callers wait for the running sync."""
        if self._lock.locked():
            logger.info("Sync already running, waiting for it to finish", project_key=project_key)
        async with self._lock:
            start_time = time.time()
            epoch = self.mint_epoch()
            self.normalizer.reset_unmatched()
            logger.info("Starting sync", project_key=project_key, epoch=epoch)

            result = await self._run_pipeline(project_key, epoch)

            result.unmatched_statuses = sorted(self.normalizer.unmatched)
            if result.reason is None:
                self.settings.record_sync(epoch, result.method.value)
            logger.info(
                "Finished sync",
                project_key=project_key,
                epoch=epoch,
                status=result.status.value,
                method=result.method.value,
                upserted=result.upserted,
                pruned=result.pruned,
                degraded_steps=result.degraded_steps,
                unmatched_statuses=result.unmatched_statuses,
                reason=result.reason,
                duration=round(time.time() - start_time, 2),
            )
            return result

    def _fetcher(self) -> IssueFetcher:
        return IssueFetcher(
            self.client,
            assignee=self.settings.assignee,
            story_points_field=self.settings.story_points_field,
            planned_due_field=self.settings.planned_due_field,
            page_size=self.page_size,
        )

    async def _run_pipeline(self, project_key: str, epoch: int) -> SyncResult:
        result = SyncResult(epoch, SyncMethod.AGILE)
        fetcher = self._fetcher()

        # Step 1: board.
        board_result = await locate_board(self.client, project_key)
        if board_result.value is None:
            # A project without boards is served by the fallback; anything else degrades the run.
            if board_result.error is not None and not isinstance(board_result.error, NotFound):
                result.degrade(SyncStep.BOARD.value, board_result.error)
            return await self._run_fallback(fetcher, result)
        board = board_result.value
        result.board = board
        self.settings.record_board(board)

        # Step 2: sprint. Failure here is soft.
        sprint_result = await locate_sprint(self.client, board.id)
        if sprint_result.ok and sprint_result.value is not None:
            result.sprint = sprint_result.value
            self.settings.record_sprint(sprint_result.value)
        elif sprint_result.error is not None and not isinstance(sprint_result.error, NotFound):
            result.degrade(SyncStep.SPRINT.value, sprint_result.error)

        # Step 3: sprint issues.
        sprint_records: list[TaskRecord] = []
        if result.sprint is not None:
            sprint_fetch = await fetcher.fetch_sprint_issues(result.sprint.id)
            if sprint_fetch.ok and sprint_fetch.value is not None:
                sprint_records = [
                    convert_issue(issue, self.normalizer, epoch, result.sprint.name, result.sprint.state) for issue in sprint_fetch.value.issues
                ]
            elif sprint_fetch.error is not None:
                result.degrade(SyncStep.SPRINT_ISSUES.value, sprint_fetch.error)
        result.sprint_issue_count = len(sprint_records)

        # Step 4: backlog issues.
        backlog_records: list[TaskRecord] = []
        backlog_fetch = await fetcher.fetch_backlog_issues(board.id, project_key)
        if backlog_fetch.ok and backlog_fetch.value is not None:
            backlog_records = [
                convert_issue(issue, self.normalizer, epoch, BACKLOG_SPRINT_NAME, BACKLOG_SPRINT_STATE) for issue in backlog_fetch.value.issues
            ]
            result.excluded_backlog_keys = list(backlog_fetch.value.excluded)
        elif backlog_fetch.error is not None:
            result.degrade(SyncStep.BACKLOG_ISSUES.value, backlog_fetch.error)
        result.backlog_issue_count = len(backlog_records)

        merged = merge_task_records(backlog_records, sprint_records)
        result.fetched_issue_count = len(merged)
        self._persist_and_prune(merged, result)
        return result

    async def _run_fallback(self, fetcher: IssueFetcher, result: SyncResult) -> SyncResult:
        """Fetch the current user's issues with JQL when no board is available."""
        logger.info("Falling back to JQL search", jql=FALLBACK_JQL, epoch=result.epoch)
        result.method = SyncMethod.JQL

        search = await fetcher.search_issues(FALLBACK_JQL)
        if not search.ok or search.value is None:
            result.fail(f"Fallback search failed: {search.error}")
            return result

        records = [convert_issue(issue, self.normalizer, result.epoch, BACKLOG_SPRINT_NAME, FALLBACK_SPRINT_STATE) for issue in search.value.issues]
        result.fetched_issue_count = len(records)
        self._persist_and_prune(records, result)
        return result

    def _persist_and_prune(self, records: list[TaskRecord], result: SyncResult) -> None:
        """Upsert every record, then prune older remote records. Prune is skipped if persisting fails."""
        start_time = time.time()
        try:
            result.upserted = self.tasks.upsert_many(records)
        except sqlite3.Error as exc:
            logger.error("Failed to persist task records", epoch=result.epoch, count=len(records), error=str(exc))
            result.fail(f"Failed to persist task records: {exc}")
            return
        logger.info("Persisted task records", epoch=result.epoch, count=result.upserted, duration=round(time.time() - start_time, 2))

        try:
            result.pruned = prune_stale_tasks(self.tasks, result.epoch)
        except sqlite3.Error as exc:
            result.fail(f"Failed to prune stale task records: {exc}")


def get_sync_info(settings: SettingsStore) -> dict[str, str | None]:
    """Diagnostic metadata about the last run: board, sprint, time and method."""
    return settings.sync_info()
