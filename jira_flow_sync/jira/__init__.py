"""Jira REST and Agile API access."""
