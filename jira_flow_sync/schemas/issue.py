"""Pydantic schemas for Jira issues, boards, sprints and users."""

from typing import Any

from pydantic import BaseModel, ConfigDict

DEFAULT_STORY_POINTS_FIELD = "customfield_10016"
DEFAULT_PLANNED_DUE_FIELD = "customfield_10329"


class SprintRef(BaseModel):
    """A sprint association carried on an issue."""

    model_config = ConfigDict(frozen=True)

    name: str
    state: str | None = None


class IssueLinkRef(BaseModel):
    """A link from one issue to another."""

    model_config = ConfigDict(frozen=True)

    key: str
    summary: str = ""
    type: str = ""


class RemoteIssue(BaseModel):
    """Immutable snapshot of one Jira issue at fetch time."""

    model_config = ConfigDict(frozen=True)

    key: str
    summary: str
    status: str
    issuetype: str | None = None
    assignee_name: str | None = None
    assignee_avatar: str | None = None
    due_date: str | None = None
    priority: str | None = None
    story_points: float | None = None
    description: str | None = None
    sprint: SprintRef | None = None
    closed_sprints: tuple[SprintRef, ...] = ()
    parent: str | None = None
    links: tuple[IssueLinkRef, ...] = ()
    updated: str | None = None
    raw: dict[str, Any] = {}

    @property
    def has_sprint_association(self) -> bool:
        """Whether the issue is tied to a live or closed sprint."""
        return self.sprint is not None or len(self.closed_sprints) > 0

    @classmethod
    def from_payload(
        cls,
        payload: dict[str, Any],
        story_points_field: str = DEFAULT_STORY_POINTS_FIELD,
        planned_due_field: str = DEFAULT_PLANNED_DUE_FIELD,
    ) -> "RemoteIssue":
        """Build a snapshot from a raw Jira issue payload.

        Missing or null fields are tolerated. The due date prefers the
        deployment's planned-due-date field over the standard ``duedate``.
        """
        fields: dict[str, Any] = payload.get("fields") or {}

        assignee = fields.get("assignee") or {}
        assignee_name = assignee.get("displayName") or assignee.get("name") or None
        assignee_avatar = (assignee.get("avatarUrls") or {}).get("48x48") or None

        sprint_payload = fields.get("sprint")
        sprint = SprintRef(name=sprint_payload.get("name", ""), state=sprint_payload.get("state")) if sprint_payload else None
        closed_sprints = tuple(SprintRef(name=s.get("name", ""), state=s.get("state")) for s in fields.get("closedSprints") or [])

        links: list[IssueLinkRef] = []
        for link in fields.get("issuelinks") or []:
            other = link.get("outwardIssue") or link.get("inwardIssue") or {}
            if not other.get("key"):
                continue
            links.append(
                IssueLinkRef(
                    key=other["key"],
                    summary=(other.get("fields") or {}).get("summary", ""),
                    type=(link.get("type") or {}).get("name", ""),
                )
            )

        return cls(
            key=payload["key"],
            summary=fields.get("summary") or "(no summary)",
            status=(fields.get("status") or {}).get("name") or "Unknown",
            issuetype=(fields.get("issuetype") or {}).get("name"),
            assignee_name=assignee_name,
            assignee_avatar=assignee_avatar,
            due_date=fields.get(planned_due_field) or fields.get("duedate") or None,
            priority=(fields.get("priority") or {}).get("name"),
            story_points=_parse_story_points(fields.get(story_points_field)),
            description=fields.get("description"),
            sprint=sprint,
            closed_sprints=closed_sprints,
            parent=(fields.get("parent") or {}).get("key"),
            links=tuple(links),
            updated=fields.get("updated"),
            raw=payload,
        )


def _parse_story_points(value: Any) -> float | None:
    """Story points arrive as numbers, numeric strings, or not at all."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


class Identity(BaseModel):
    """The Jira user the client is authenticated as."""

    display_name: str
    name: str | None = None
    account_id: str | None = None
    email_address: str | None = None


class Transition(BaseModel):
    """A workflow transition available on an issue."""

    id: str
    name: str
    to_status: str | None = None


class BoardDescriptor(BaseModel):
    """An Agile board resolved for a project."""

    id: int
    name: str
    type: str = ""


class SprintDescriptor(BaseModel):
    """A sprint resolved for a board."""

    id: int
    name: str
    state: str
