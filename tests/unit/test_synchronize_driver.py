"""Unit tests for the sync orchestrator."""

import asyncio
import sqlite3
from typing import Callable
from unittest.mock import MagicMock

import pytest

from jira_flow_sync.jira.exceptions import AuthenticationFailed, NetworkError, NotFound, Timeout
from jira_flow_sync.schemas.issue import BoardDescriptor, SprintDescriptor
from jira_flow_sync.schemas.task import CanonicalColumn, TaskOrigin, TaskRecord
from jira_flow_sync.storage import SettingsStore, TaskStore
from jira_flow_sync.synchronize.driver import SyncOrchestrator, get_sync_info
from jira_flow_sync.synchronize.models import SyncMethod, SyncStatus

from .fakes import FakeJiraClient, make_issue

BOARD = BoardDescriptor(id=42, name="Team Board", type="scrum")
SPRINT = SprintDescriptor(id=10, name="Sprint 10", state="active")


def _agile_client(**kwargs: object) -> FakeJiraClient:
    return FakeJiraClient(boards=[BOARD], sprints={"active": [SPRINT]}, **kwargs)  # type: ignore[arg-type]


def _clock(seconds: float) -> Callable[[], float]:
    return lambda: seconds


def _stored_remote(key: str, epoch: int) -> TaskRecord:
    return TaskRecord(key=key, summary=key, status="To Do", column=CanonicalColumn.TO_DO, sync_epoch=epoch)


@pytest.mark.asyncio
async def test_run_agile_pipeline(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """A full run stores sprint and backlog issues under one epoch and records metadata."""
    client = _agile_client(
        sprint_issues=[make_issue("X-1", status="进行中"), make_issue("X-2", status="Build Done")],
        backlog_issues=[make_issue("X-3", status="Funnel 漏斗")],
    )
    orchestrator = SyncOrchestrator(client, task_store, settings_store, clock=_clock(1_000))

    result = await orchestrator.run("X")

    assert result.status == SyncStatus.SUCCESS
    assert result.method == SyncMethod.AGILE
    assert result.epoch == 1_000_000
    assert (result.sprint_issue_count, result.backlog_issue_count, result.upserted) == (2, 1, 3)
    columns = {record.key: record.column for record in task_store.all()}
    assert columns == {"X-1": CanonicalColumn.EXECUTION, "X-2": CanonicalColumn.EXECUTED, "X-3": CanonicalColumn.FUNNEL}
    assert {record.sync_epoch for record in task_store.all()} == {1_000_000}

    x1 = task_store.get("X-1")
    x3 = task_store.get("X-3")
    assert x1 is not None and (x1.sprint, x1.sprint_state) == ("Sprint 10", "active")
    assert x3 is not None and (x3.sprint, x3.sprint_state) == ("Backlog", "future")

    info = get_sync_info(settings_store)
    assert info["board_id"] == "42"
    assert info["sprint_id"] == "10"
    assert info["sync_method"] == "agile"
    assert info["last_sync_epoch"] == "1000000"


@pytest.mark.asyncio
async def test_run_selects_scrum_board(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """Issues are fetched from the scrum board when a kanban board is also present."""
    client = FakeJiraClient(
        boards=[BoardDescriptor(id=1, name="Kanban", type="kanban"), BOARD],
        sprints={"future": [SprintDescriptor(id=12, name="Sprint 12", state="future")]},
    )

    result = await SyncOrchestrator(client, task_store, settings_store).run("X")

    assert result.board == BOARD
    assert result.sprint is not None and (result.sprint.name, result.sprint.state) == ("Sprint 12", "future")
    assert [call["board_id"] for call in client.calls_to("list_backlog_issues")] == [42]
    assert [call["sprint_id"] for call in client.calls_to("list_sprint_issues")] == [12]


@pytest.mark.asyncio
async def test_run_sprint_copy_wins_over_backlog_copy(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """An issue fetched by both steps is stored once, with sprint fields."""
    client = _agile_client(
        sprint_issues=[make_issue("X-1", status="Testing 测试中")],
        backlog_issues=[make_issue("X-1", status="To Do 待办")],
    )

    result = await SyncOrchestrator(client, task_store, settings_store).run("X")

    assert result.upserted == 1
    records = task_store.all()
    assert len(records) == 1
    assert records[0].sprint == "Sprint 10"
    assert records[0].column == CanonicalColumn.TESTING_AND_REVIEW


@pytest.mark.asyncio
async def test_run_prunes_records_not_refreshed(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """A run fetching nothing removes remote records from earlier epochs and keeps local ones."""
    task_store.upsert(_stored_remote("X-5", 100))
    task_store.create_local(
        TaskRecord(key="ME-000001", summary="mine", status="FUNNEL", column=CanonicalColumn.FUNNEL, sync_epoch=100, origin=TaskOrigin.LOCAL)
    )
    settings_store.record_sync(100, "agile")

    result = await SyncOrchestrator(_agile_client(), task_store, settings_store, clock=_clock(0.2)).run("X")

    assert result.epoch == 200
    assert result.pruned == 1
    assert task_store.get("X-5") is None
    assert task_store.get("ME-000001") is not None


@pytest.mark.asyncio
async def test_run_excludes_sprint_associated_backlog_issues(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """Backlog issues carrying a sprint are reported and not stored as backlog items."""
    client = _agile_client(
        backlog_issues=[make_issue("X-1"), make_issue("X-2", closed_sprints=[{"name": "Sprint 9", "state": "closed"}])],
    )

    result = await SyncOrchestrator(client, task_store, settings_store).run("X")

    assert result.excluded_backlog_keys == ["X-2"]
    assert [record.key for record in task_store.all()] == ["X-1"]


@pytest.mark.asyncio
async def test_run_without_sprint_continues_with_backlog(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """A board without sprints is not a degradation; the backlog is still synced."""
    client = FakeJiraClient(boards=[BOARD], backlog_issues=[make_issue("X-1")])

    result = await SyncOrchestrator(client, task_store, settings_store).run("X")

    assert result.status == SyncStatus.SUCCESS
    assert result.sprint is None
    assert client.calls_to("list_sprint_issues") == []
    assert [record.key for record in task_store.all()] == ["X-1"]


@pytest.mark.asyncio
async def test_run_sprint_lookup_error_is_soft(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """A failing sprint lookup degrades the run but the backlog is still synced."""
    client = FakeJiraClient(boards=[BOARD], backlog_issues=[make_issue("X-1")], failures={"list_sprints": Timeout("slow")})

    result = await SyncOrchestrator(client, task_store, settings_store).run("X")

    assert result.status == SyncStatus.PARTIAL
    assert result.degraded_steps == ["sprint"]
    assert [record.key for record in task_store.all()] == ["X-1"]


@pytest.mark.asyncio
async def test_run_partial_failure_still_persists_and_prunes(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """A failed backlog fetch degrades the run; sprint issues are stored and stale records pruned."""
    task_store.upsert(_stored_remote("X-5", 100))
    settings_store.record_sync(100, "agile")
    client = _agile_client(sprint_issues=[make_issue("X-1")], failures={"list_backlog_issues": NetworkError("reset")})

    result = await SyncOrchestrator(client, task_store, settings_store, clock=_clock(0.2)).run("X")

    assert result.status == SyncStatus.PARTIAL
    assert result.degraded_steps == ["backlog_issues"]
    assert isinstance(result.degraded[0].cause, NetworkError)
    assert [record.key for record in task_store.all()] == ["X-1"]
    assert settings_store.last_sync_epoch == 200


@pytest.mark.asyncio
async def test_run_falls_back_to_jql_without_board(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """With no board the current user's issues are searched, stored and pruned under the same epoch."""
    task_store.upsert(_stored_remote("X-5", 100))
    settings_store.record_sync(100, "agile")
    client = FakeJiraClient(search_results=[make_issue(f"X-{i}") for i in range(1, 151)])

    result = await SyncOrchestrator(client, task_store, settings_store, clock=_clock(0.2)).run("X")

    assert result.status == SyncStatus.SUCCESS
    assert result.method == SyncMethod.JQL
    assert result.upserted == 150
    assert result.pruned == 1
    assert len(client.calls_to("search_issues")) == 2
    assert client.calls_to("search_issues")[0]["jql"] == "assignee = currentUser() ORDER BY updated DESC"
    stored = task_store.get("X-1")
    assert stored is not None and (stored.sprint, stored.sprint_state, stored.sync_epoch) == ("Backlog", "unknown", 200)
    assert get_sync_info(settings_store)["sync_method"] == "jql"


@pytest.mark.asyncio
async def test_run_board_error_falls_back_as_partial(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """A failing board lookup is recorded as degraded while the fallback serves the run."""
    client = FakeJiraClient(search_results=[make_issue("X-1")], failures={"list_boards": AuthenticationFailed("no agile access")})

    result = await SyncOrchestrator(client, task_store, settings_store).run("X")

    assert result.status == SyncStatus.PARTIAL
    assert result.method == SyncMethod.JQL
    assert result.degraded_steps == ["board"]


@pytest.mark.asyncio
async def test_run_fails_when_fallback_fails(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """If the fallback search fails the run fails and nothing is pruned."""
    task_store.upsert(_stored_remote("X-5", 100))
    client = FakeJiraClient(failures={"search_issues": NetworkError("down")})

    result = await SyncOrchestrator(client, task_store, settings_store).run("X")

    assert result.status == SyncStatus.FAILED
    assert result.reason is not None and "Fallback search failed" in result.reason
    assert task_store.get("X-5") is not None
    assert settings_store.last_sync_epoch == 0


@pytest.mark.asyncio
async def test_run_persist_failure_skips_prune(settings_store: SettingsStore) -> None:
    """When records cannot be stored the run fails before pruning."""
    tasks = MagicMock(spec=TaskStore)
    tasks.upsert_many.side_effect = sqlite3.OperationalError("disk I/O error")
    client = _agile_client(sprint_issues=[make_issue("X-1")])

    result = await SyncOrchestrator(client, tasks, settings_store).run("X")

    assert result.status == SyncStatus.FAILED
    tasks.delete_stale.assert_not_called()


@pytest.mark.asyncio
async def test_run_reports_unmatched_statuses(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """Statuses no rule knows are placed in TO DO and reported on the result."""
    client = _agile_client(sprint_issues=[make_issue("X-1", status="Parked")])
    orchestrator = SyncOrchestrator(client, task_store, settings_store)

    result = await orchestrator.run("X")
    assert result.unmatched_statuses == ["Parked"]

    client.sprint_issues = [make_issue("X-1", status="Done")]
    assert (await orchestrator.run("X")).unmatched_statuses == []


@pytest.mark.asyncio
async def test_run_honours_stored_status_overrides(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """The default normalizer reads overrides from the settings store."""
    settings_store.set_status_override("Parked", "READY")
    client = _agile_client(sprint_issues=[make_issue("X-1", status="Parked")])

    await SyncOrchestrator(client, task_store, settings_store).run("X")

    stored = task_store.get("X-1")
    assert stored is not None and stored.column == CanonicalColumn.READY


@pytest.mark.asyncio
async def test_run_filters_by_configured_assignee(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """The configured identity filters sprint and backlog fetches."""
    settings_store.set("jira_username", "jdoe")
    client = _agile_client()

    await SyncOrchestrator(client, task_store, settings_store).run("X")

    assert client.calls_to("list_sprint_issues")[0]["jql"] == 'assignee="jdoe"'
    assert client.calls_to("list_backlog_issues")[0]["jql"] == 'assignee="jdoe" AND project="X"'


def test_mint_epoch_is_strictly_increasing(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """A clock behind the last epoch still yields a larger epoch."""
    orchestrator = SyncOrchestrator(FakeJiraClient(), task_store, settings_store, clock=_clock(1.0))
    assert orchestrator.mint_epoch() == 1_000

    settings_store.record_sync(5_000, "agile")
    assert orchestrator.mint_epoch() == 5_001


@pytest.mark.asyncio
async def test_concurrent_runs_are_serialized(task_store: TaskStore, settings_store: SettingsStore) -> None:
    """Two concurrent runs do not overlap and get increasing epochs."""
    active = 0
    overlaps = 0

    class SlowClient(FakeJiraClient):
        async def list_boards(self, project_key: str) -> list[BoardDescriptor]:
            nonlocal active, overlaps
            active += 1
            overlaps += active > 1
            await asyncio.sleep(0.01)
            active -= 1
            raise NotFound("no boards")

    orchestrator = SyncOrchestrator(SlowClient(), task_store, settings_store, clock=_clock(1.0))

    first, second = await asyncio.gather(orchestrator.run("X"), orchestrator.run("X"))

    assert overlaps == 0
    assert second.epoch > first.epoch
