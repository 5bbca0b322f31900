"""Resolves the sprint whose issues are fetched for a board."""

import structlog

from jira_flow_sync.jira.abc import JiraClientBase
from jira_flow_sync.jira.exceptions import JiraFlowError, NotFound
from jira_flow_sync.schemas.issue import SprintDescriptor
from jira_flow_sync.synchronize.results import StepResult
from jira_flow_sync.utils.constants import SPRINT_STATES

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


async def locate_sprint(client: JiraClientBase, board_id: int, states: tuple[str, ...] = SPRINT_STATES) -> StepResult[SprintDescriptor]:
    """Find the first sprint of the first state that has any sprints.

    States are tried in order (active, future, closed by default). When no
    state has a sprint the result carries a NotFound error, which callers
    treat as "no sprint" rather than a failure.
    """
    for state in states:
        try:
            sprints = await client.list_sprints(board_id, state)
        except JiraFlowError as exc:
            logger.warning("Could not list sprints", board_id=board_id, state=state, error=str(exc), error_type=type(exc).__name__)
            return StepResult.failure(exc)
        if sprints:
            sprint = sprints[0]
            logger.info("Located sprint", board_id=board_id, sprint_id=sprint.id, sprint_name=sprint.name, sprint_state=sprint.state)
            return StepResult.success(sprint)
        logger.debug("No sprints in state", board_id=board_id, state=state)

    logger.info("No sprint found for board", board_id=board_id, states=list(states))
    return StepResult.failure(NotFound(f"No sprint found for board {board_id}"))
