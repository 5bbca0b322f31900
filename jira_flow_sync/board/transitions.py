"""Moves board cards by executing Jira workflow transitions."""

from datetime import datetime, timezone

import structlog

from jira_flow_sync.jira.abc import JiraClientBase
from jira_flow_sync.jira.exceptions import NotFound, ValidationError
from jira_flow_sync.schemas.issue import RemoteIssue, Transition
from jira_flow_sync.schemas.task import CanonicalColumn, TaskOrigin, TaskRecord
from jira_flow_sync.storage.settings import SettingsStore
from jira_flow_sync.storage.tasks import TaskStore
from jira_flow_sync.synchronize.status import MatchSource, StatusNormalizer

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def _column_words(column: CanonicalColumn) -> list[str]:
    # Words shorter than three letters ("to", "do") match too much.
    return [word for word in column.value.lower().split() if len(word) >= 3]


def select_transition(transitions: list[Transition], target: CanonicalColumn, normalizer: StatusNormalizer) -> Transition | None:
    """Pick the transition that lands an issue in ``target``.

    A transition whose name or target status normalizes to the column wins;
    failing that, the first whose name contains a word of the column name.
    Labels that only reach a column through the default are not considered.
    """
    for transition in transitions:
        for label in (transition.name, transition.to_status):
            match = normalizer.resolve(label)
            if match.source != MatchSource.DEFAULT and match.column == target:
                return transition

    words = _column_words(target)
    for transition in transitions:
        name = transition.name.lower()
        if any(word in name for word in words):
            return transition
    return None


async def move_task_to_column(
    client: JiraClientBase | None,
    store: TaskStore,
    normalizer: StatusNormalizer,
    key: str,
    target: CanonicalColumn,
) -> TaskRecord:
    """Move a card to a column.

    Local tasks are moved in the store only and need no client. Remote
    tasks are transitioned in Jira, then the issue is fetched again so the
    stored status reflects what Jira actually recorded.

    Raises:
        NotFound: If the task is unknown or no transition reaches the column
        ValidationError: If Jira requires input the transition cannot supply
    """
    record = store.get(key)
    if record is None:
        raise NotFound(f"Task {key} not found")

    if record.origin == TaskOrigin.LOCAL:
        store.update_column(key, target)
        logger.info("Moved local task", key=key, column=target.value)
        return record.model_copy(update={"column": target})
    if client is None:
        raise ValueError(f"Moving Jira issue {key} requires a Jira client")

    transitions = await client.get_transitions(key)
    transition = select_transition(transitions, target, normalizer)
    if transition is None:
        available = ", ".join(t.name for t in transitions) or "none"
        raise NotFound(f"No transition moves {key} to {target.value}. Available transitions: {available}")

    logger.info("Transitioning issue", key=key, transition_id=transition.id, transition_name=transition.name, column=target.value)
    try:
        await client.transition_issue(key, transition.id)
    except ValidationError as exc:
        if exc.field == "resolution":
            raise ValidationError(
                "resolution",
                f"Moving {key} to {target.value} requires a resolution; change this status in Jira directly",
            ) from exc
        raise

    issue = RemoteIssue.from_payload(await client.get_issue(key))
    column = normalizer.normalize(issue.status)
    updated_at = issue.updated or datetime.now(timezone.utc).isoformat()
    store.update_status(key, issue.status, column, updated_at)
    if column != target:
        logger.warning("Issue landed in a different column than requested", key=key, status=issue.status, column=column.value, requested=target.value)
    return record.model_copy(update={"status": issue.status, "column": column, "updated_at": updated_at})


def default_normalizer(settings: SettingsStore) -> StatusNormalizer:
    """A normalizer honoring the user's status overrides."""
    return StatusNormalizer(override_lookup=settings.get_status_override)
