"""Pydantic schemas for Jira payloads and local task records."""
