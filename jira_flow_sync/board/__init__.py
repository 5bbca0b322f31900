"""Board operations on the local task store: view, card moves, field edits and personal tasks."""
