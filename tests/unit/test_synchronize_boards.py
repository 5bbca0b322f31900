"""Unit tests for board resolution."""

import pytest

from jira_flow_sync.jira.exceptions import AuthenticationFailed, NotFound
from jira_flow_sync.schemas.issue import BoardDescriptor
from jira_flow_sync.synchronize.boards import locate_board, select_board

from .fakes import FakeJiraClient


@pytest.mark.asyncio
async def test_locate_board_prefers_scrum_board() -> None:
    """A scrum board is chosen over a kanban board listed before it."""
    client = FakeJiraClient(
        boards=[
            BoardDescriptor(id=7, name="Flow", type="kanban"),
            BoardDescriptor(id=42, name="Team Sprint Board", type="scrum"),
        ]
    )

    result = await locate_board(client, "PROJ")

    assert result.ok
    assert result.value is not None
    assert result.value.id == 42
    assert client.calls_to("list_boards") == [{"project_key": "PROJ"}]


def test_select_board_is_case_insensitive_and_falls_back_to_first() -> None:
    """Board type comparison ignores case, and without a scrum board the first board wins."""
    assert select_board([BoardDescriptor(id=1, name="a", type="kanban"), BoardDescriptor(id=2, name="b", type="Scrum")]).id == 2  # type: ignore[union-attr]
    assert select_board([BoardDescriptor(id=3, name="c", type="kanban"), BoardDescriptor(id=4, name="d", type="simple")]).id == 3  # type: ignore[union-attr]
    assert select_board([]) is None


@pytest.mark.asyncio
async def test_locate_board_without_boards_is_not_found() -> None:
    """A project without boards yields a NotFound failure."""
    result = await locate_board(FakeJiraClient(), "PROJ")

    assert not result.ok
    assert isinstance(result.error, NotFound)


@pytest.mark.asyncio
async def test_locate_board_wraps_client_errors() -> None:
    """Client errors are returned, not raised."""
    client = FakeJiraClient(failures={"list_boards": AuthenticationFailed("bad credentials")})

    result = await locate_board(client, "PROJ")

    assert not result.ok
    assert isinstance(result.error, AuthenticationFailed)
