"""Contains results of synchronization steps and runs."""

from typing import Generic, TypeVar

from jira_flow_sync.jira.exceptions import JiraFlowError, PartialFailure
from jira_flow_sync.schemas.issue import BoardDescriptor, SprintDescriptor
from jira_flow_sync.synchronize.models import SyncMethod, SyncStatus

T = TypeVar("T")


class StepResult(Generic[T]):
    """Outcome of a single pipeline step: either a value or the error that prevented it."""

    def __init__(self, value: T | None = None, error: JiraFlowError | None = None) -> None:
        """Initialize the result with a value or an error."""
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        """Whether the step succeeded."""
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "StepResult[T]":
        """Build a successful result."""
        return cls(value=value)

    @classmethod
    def failure(cls, error: JiraFlowError) -> "StepResult[T]":
        """Build a failed result."""
        return cls(error=error)

    def __repr__(self) -> str:
        if self.ok:
            return f"StepResult(value={self.value!r})"
        return f"StepResult(error={self.error!r})"


class SyncResult:
    """Contains results of one synchronization run."""

    def __init__(self, epoch: int, method: SyncMethod = SyncMethod.AGILE) -> None:
        """Initialize an empty result for the run minted with ``epoch``."""
        self.epoch = epoch
        self.method = method
        self.board: BoardDescriptor | None = None
        self.sprint: SprintDescriptor | None = None
        self.sprint_issue_count = 0
        self.backlog_issue_count = 0
        self.excluded_backlog_keys: list[str] = []
        self.fetched_issue_count = 0
        self.upserted = 0
        self.pruned = 0
        self.degraded: list[PartialFailure] = []
        self.unmatched_statuses: list[str] = []
        self.reason: str | None = None

    @property
    def status(self) -> SyncStatus:
        """Failed when a reason is set, partial when any step degraded, success otherwise."""
        if self.reason is not None:
            return SyncStatus.FAILED
        if self.degraded:
            return SyncStatus.PARTIAL
        return SyncStatus.SUCCESS

    @property
    def degraded_steps(self) -> list[str]:
        """Names of the steps that degraded the run."""
        return [failure.step for failure in self.degraded]

    def degrade(self, step: str, cause: JiraFlowError) -> None:
        """Record a step whose failure was absorbed by the run."""
        self.degraded.append(PartialFailure(step, cause))

    def fail(self, reason: str) -> None:
        """Mark the run as failed."""
        self.reason = reason
