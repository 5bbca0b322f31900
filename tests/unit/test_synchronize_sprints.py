"""Unit tests for sprint resolution."""

import pytest

from jira_flow_sync.jira.exceptions import NotFound, Timeout
from jira_flow_sync.schemas.issue import SprintDescriptor
from jira_flow_sync.synchronize.sprints import locate_sprint

from .fakes import FakeJiraClient


@pytest.mark.asyncio
async def test_locate_sprint_prefers_active() -> None:
    """The first active sprint is chosen without querying other states."""
    client = FakeJiraClient(
        sprints={
            "active": [SprintDescriptor(id=10, name="Sprint 10", state="active")],
            "future": [SprintDescriptor(id=11, name="Sprint 11", state="future")],
        }
    )

    result = await locate_sprint(client, 42)

    assert result.value is not None
    assert result.value.id == 10
    assert [call["state"] for call in client.calls_to("list_sprints")] == ["active"]


@pytest.mark.asyncio
async def test_locate_sprint_falls_back_to_future_sprint() -> None:
    """With no active sprint the first future sprint is chosen."""
    client = FakeJiraClient(
        sprints={
            "future": [
                SprintDescriptor(id=11, name="Sprint 11", state="future"),
                SprintDescriptor(id=12, name="Sprint 12", state="future"),
            ],
            "closed": [SprintDescriptor(id=9, name="Sprint 9", state="closed")],
        }
    )

    result = await locate_sprint(client, 42)

    assert result.value is not None
    assert (result.value.id, result.value.state) == (11, "future")
    assert [call["state"] for call in client.calls_to("list_sprints")] == ["active", "future"]


@pytest.mark.asyncio
async def test_locate_sprint_falls_back_to_closed_sprint() -> None:
    """With only closed sprints the first closed sprint is chosen."""
    client = FakeJiraClient(sprints={"closed": [SprintDescriptor(id=9, name="Sprint 9", state="closed")]})

    result = await locate_sprint(client, 42)

    assert result.value is not None
    assert result.value.id == 9


@pytest.mark.asyncio
async def test_locate_sprint_without_sprints_is_soft_not_found() -> None:
    """No sprint in any state yields a NotFound result after trying every state."""
    client = FakeJiraClient()

    result = await locate_sprint(client, 42)

    assert isinstance(result.error, NotFound)
    assert [call["state"] for call in client.calls_to("list_sprints")] == ["active", "future", "closed"]


@pytest.mark.asyncio
async def test_locate_sprint_wraps_client_errors() -> None:
    """Client errors are returned, not raised."""
    client = FakeJiraClient(failures={"list_sprints": Timeout("slow")})

    result = await locate_sprint(client, 42)

    assert isinstance(result.error, Timeout)
