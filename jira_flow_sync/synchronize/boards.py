"""Resolves the Agile board a project's issues are fetched from."""

import structlog

from jira_flow_sync.jira.abc import JiraClientBase
from jira_flow_sync.jira.exceptions import JiraFlowError, NotFound
from jira_flow_sync.schemas.issue import BoardDescriptor
from jira_flow_sync.synchronize.results import StepResult

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def select_board(boards: list[BoardDescriptor]) -> BoardDescriptor | None:
    """Prefer the first scrum board, otherwise the first board."""
    for board in boards:
        if board.type.lower() == "scrum":
            return board
    return boards[0] if boards else None


async def locate_board(client: JiraClientBase, project_key: str) -> StepResult[BoardDescriptor]:
    """Find the board for a project.

    The board is re-resolved on every run; a project with no boards yields a
    NotFound failure so the caller can fall back to a plain JQL search.
    """
    try:
        boards = await client.list_boards(project_key)
    except JiraFlowError as exc:
        logger.warning("Could not list boards", project_key=project_key, error=str(exc), error_type=type(exc).__name__)
        return StepResult.failure(exc)

    board = select_board(boards)
    if board is None:
        logger.warning("No board found for project", project_key=project_key)
        return StepResult.failure(NotFound(f"No board found for project {project_key}"))

    logger.info("Located board", project_key=project_key, board_id=board.id, board_name=board.name, board_type=board.type, candidates=len(boards))
    return StepResult.success(board)
