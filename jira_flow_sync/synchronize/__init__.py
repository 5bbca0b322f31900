"""Synchronization of Jira work items into the local task store."""
