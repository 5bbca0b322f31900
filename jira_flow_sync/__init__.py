"""Mirror Jira work items into a local kanban store."""

__version__ = "0.1.0"
