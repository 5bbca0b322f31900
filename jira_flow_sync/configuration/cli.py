"""Defines the Command Line Interface (CLI) using Typer."""

import asyncio
import logging
import sqlite3
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, NoReturn, TypeVar

import structlog
import typer
from dotenv import load_dotenv
from typer import Argument, Option
from typing_extensions import Annotated

from jira_flow_sync.board.fields import update_task_fields
from jira_flow_sync.board.personal import create_personal_task, delete_personal_task
from jira_flow_sync.board.transitions import default_normalizer, move_task_to_column
from jira_flow_sync.board.view import get_board_tasks, group_by_column
from jira_flow_sync.configuration.env import Settings
from jira_flow_sync.configuration.models import JiraConnectionConfig
from jira_flow_sync.configuration.reconcile import reconcile_sync_configuration, validate_jira_connection_configuration
from jira_flow_sync.jira.adapter import JiraHttpxAdapter
from jira_flow_sync.jira.exceptions import JiraFlowError
from jira_flow_sync.schemas.task import CanonicalColumn, TaskOrigin
from jira_flow_sync.storage import SettingsStore, TaskStore, open_database
from jira_flow_sync.storage.settings import ASSIGNEE_KEY
from jira_flow_sync.synchronize.driver import SyncOrchestrator, get_sync_info
from jira_flow_sync.synchronize.models import SyncStatus
from jira_flow_sync.utils.yaml import load_status_overrides

load_dotenv()

T = TypeVar("T")

typer_app = typer.Typer(pretty_exceptions_show_locals=False, help="Mirror Jira work items onto a local kanban board.")


def configure_logging(debug: bool = False) -> None:
    """Configure structlog to render to stderr at INFO, or DEBUG when ``debug`` is set."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


def parse_column(value: str) -> CanonicalColumn:
    """Parse a column name given on the command line, e.g. "testing & review" or "TO_DO"."""
    normalized = " ".join(value.replace("_", " ").split()).upper()
    try:
        return CanonicalColumn(normalized)
    except ValueError as exc:
        valid = ", ".join(c.value for c in CanonicalColumn)
        raise typer.BadParameter(f"Unknown column {value!r}. Valid columns: {valid}") from exc


def _fail(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(1)


def _open_stores(ctx: typer.Context) -> tuple[sqlite3.Connection, TaskStore, SettingsStore]:
    conn = open_database(ctx.obj["db_path"])
    return conn, TaskStore(conn), SettingsStore(conn)


def _connection(ctx: typer.Context) -> JiraConnectionConfig:
    try:
        return asyncio.run(
            validate_jira_connection_configuration(
                jira_host=ctx.obj["jira_host"],
                jira_username=ctx.obj["jira_username"],
                jira_password=ctx.obj["jira_password"],
                jira_timeout=ctx.obj["jira_timeout"],
                jira_verify_ssl=ctx.obj["jira_verify_ssl"],
            )
        )
    except JiraFlowError as exc:
        _fail(str(exc))


def _run_with_adapter(connection: JiraConnectionConfig, work: Callable[[JiraHttpxAdapter], Awaitable[T]]) -> T:
    """Create an adapter, run ``work`` with it and always close it."""

    async def runner() -> T:
        adapter = JiraHttpxAdapter.create(
            host=connection.host,
            username=connection.username,
            password=connection.password,
            timeout=connection.timeout,
            verify_ssl=connection.verify_ssl,
        )
        try:
            return await work(adapter)
        finally:
            await adapter.aclose()

    try:
        return asyncio.run(runner())
    except JiraFlowError as exc:
        _fail(f"Error: {exc}")


@typer_app.callback()
def main_callback(
    ctx: typer.Context,
    jira_host: Annotated[str | None, Option(envvar="JIRA_HOST", help="Jira base URL, e.g. https://jira.example.com.")] = None,
    jira_username: Annotated[str | None, Option(envvar="JIRA_USERNAME", help="Jira account name or e-mail.")] = None,
    jira_password: Annotated[str | None, Option(envvar="JIRA_PASSWORD", help="Jira password or personal access token.")] = None,
    jira_timeout: Annotated[float | None, Option(envvar="JIRA_TIMEOUT", help="Per-call timeout in seconds.")] = None,
    jira_verify_ssl: Annotated[bool | None, Option(envvar="JIRA_VERIFY_SSL", help="Verify the server's TLS certificate.")] = None,
    db_path: Annotated[Path | None, Option(envvar="JIRA_DB_PATH", help="Path to the local SQLite database.")] = None,
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug logging.")] = False,
) -> None:
    """Resolve connection and storage settings for the current context."""
    env = Settings()
    ctx.ensure_object(dict)
    ctx.obj["jira_host"] = jira_host or env.JIRA_HOST
    ctx.obj["jira_username"] = jira_username or env.JIRA_USERNAME
    ctx.obj["jira_password"] = jira_password or env.JIRA_PASSWORD
    ctx.obj["jira_project_key"] = env.JIRA_PROJECT_KEY
    ctx.obj["jira_timeout"] = jira_timeout if jira_timeout is not None else env.JIRA_TIMEOUT
    ctx.obj["jira_verify_ssl"] = jira_verify_ssl if jira_verify_ssl is not None else env.JIRA_VERIFY_SSL
    ctx.obj["db_path"] = db_path or env.JIRA_DB_PATH
    ctx.obj["debug"] = debug or env.DEBUG
    configure_logging(ctx.obj["debug"])


@typer_app.command(name="test-connection")
def test_connection_cli(ctx: typer.Context) -> None:
    """Check the Jira credentials and print the authenticated identity."""
    connection = _connection(ctx)
    identity = _run_with_adapter(connection, lambda adapter: adapter.test_connection())
    typer.echo(f"Connected to {connection.host} as {identity.display_name}" + (f" ({identity.name})" if identity.name else ""))


@typer_app.command(name="sync")
def sync_cli(
    ctx: typer.Context,
    project_key: Annotated[str | None, Argument(envvar="JIRA_PROJECT_KEY", help="Key of the Jira project to synchronize.")] = None,
    assignee: Annotated[
        str | None, Option(help="Only fetch issues assigned to this user. Remembered for later runs; defaults to the Jira username.")
    ] = None,
) -> None:
    """Synchronize Jira issues into the local board."""
    connection = _connection(ctx)
    try:
        config = asyncio.run(
            reconcile_sync_configuration(connection, project_key or ctx.obj["jira_project_key"], ctx.obj["db_path"], ctx.obj["debug"])
        )
    except JiraFlowError as exc:
        _fail(str(exc))

    conn, tasks, settings = _open_stores(ctx)
    try:
        if assignee:
            settings.set(ASSIGNEE_KEY, assignee)
        elif settings.assignee is None:
            settings.set(ASSIGNEE_KEY, connection.username)
        result = _run_with_adapter(connection, lambda adapter: SyncOrchestrator(adapter, tasks, settings).run(config.project_key))
    finally:
        conn.close()

    typer.echo(
        f"Sync {result.status.value} ({result.method.value}): {result.upserted} task(s) stored, {result.pruned} stale task(s) removed"
    )
    if result.board is not None:
        typer.echo(f"Board: {result.board.name} ({result.board.id})")
    if result.sprint is not None:
        typer.echo(f"Sprint: {result.sprint.name} [{result.sprint.state}]")
    if result.excluded_backlog_keys:
        typer.echo(f"Excluded from backlog (sprint-associated): {', '.join(result.excluded_backlog_keys)}")
    for failure in result.degraded:
        typer.echo(f"Degraded step {failure.step}: {failure.cause}", err=True)
    if result.unmatched_statuses:
        typer.echo(f"Unmapped statuses placed in TO DO: {', '.join(result.unmatched_statuses)}", err=True)
    if result.status == SyncStatus.FAILED:
        _fail(f"Sync failed: {result.reason}")


@typer_app.command(name="board")
def board_cli(
    ctx: typer.Context,
    column: Annotated[str | None, Option(help="Only show this column.")] = None,
) -> None:
    """Print the local board grouped by column."""
    only = parse_column(column) if column else None
    conn, tasks, _ = _open_stores(ctx)
    try:
        grouped = group_by_column(get_board_tasks(tasks))
    finally:
        conn.close()

    for board_column, board_tasks in grouped.items():
        if only is not None and board_column != only:
            continue
        typer.echo(f"== {board_column.value} ({len(board_tasks)})")
        for task in board_tasks:
            flags = []
            if task.is_overdue:
                flags.append("overdue")
            elif task.is_due_soon:
                flags.append("due soon")
            due = f" due {task.due_date[:10]}" if task.due_date else ""
            suffix = f" [{', '.join(flags)}]" if flags else ""
            typer.echo(f"  {task.key}  {task.summary} ({task.status}, {task.priority}){due}{suffix}")


@typer_app.command(name="info")
def info_cli(ctx: typer.Context) -> None:
    """Print metadata about the last sync."""
    conn, _, settings = _open_stores(ctx)
    try:
        info = get_sync_info(settings)
    finally:
        conn.close()
    for name, value in info.items():
        typer.echo(f"{name}: {value if value is not None else '-'}")


@typer_app.command(name="move")
def move_cli(
    ctx: typer.Context,
    key: Annotated[str, Argument(help="Task key, e.g. PROJ-123 or ME-123456.")],
    column: Annotated[str, Argument(help="Target column, e.g. EXECUTION or 'TESTING & REVIEW'.")],
) -> None:
    """Move a task to another column, transitioning it in Jira when it is a Jira issue."""
    target = parse_column(column)
    conn, tasks, settings = _open_stores(ctx)
    try:
        record = tasks.get(key)
        if record is None:
            _fail(f"Task {key} not found")
        normalizer = default_normalizer(settings)
        if record.origin == TaskOrigin.LOCAL:
            moved = asyncio.run(move_task_to_column(None, tasks, normalizer, key, target))
        else:
            connection = _connection(ctx)
            moved = _run_with_adapter(connection, lambda adapter: move_task_to_column(adapter, tasks, normalizer, key, target))
    finally:
        conn.close()
    typer.echo(f"Moved {key} to {moved.column.value} ({moved.status})")


@typer_app.command(name="edit")
def edit_cli(
    ctx: typer.Context,
    key: Annotated[str, Argument(help="Task key.")],
    story_points: Annotated[float | None, Option(help="New story points.")] = None,
    due_date: Annotated[str | None, Option(help="New due date (YYYY-MM-DD).")] = None,
    clear_due_date: Annotated[bool, Option(help="Remove the due date.")] = False,
) -> None:
    """Update story points and/or due date of a task."""
    updates: dict[str, Any] = {}
    if story_points is not None:
        updates["story_points"] = story_points
    if clear_due_date:
        updates["due_date"] = None
    elif due_date is not None:
        updates["due_date"] = due_date
    if not updates:
        _fail("Nothing to update: pass --story-points, --due-date or --clear-due-date")

    conn, tasks, settings = _open_stores(ctx)
    try:
        record = tasks.get(key)
        if record is None:
            _fail(f"Task {key} not found")
        if record.origin == TaskOrigin.LOCAL:
            asyncio.run(update_task_fields(None, tasks, settings, key, **updates))
        else:
            connection = _connection(ctx)
            _run_with_adapter(connection, lambda adapter: update_task_fields(adapter, tasks, settings, key, **updates))
    finally:
        conn.close()
    typer.echo(f"Updated {key}: {', '.join(sorted(updates))}")


@typer_app.command(name="add-task")
def add_task_cli(
    ctx: typer.Context,
    summary: Annotated[str, Argument(help="Summary of the personal task.")],
    column: Annotated[str, Option(help="Initial column.")] = CanonicalColumn.FUNNEL.value,
    priority: Annotated[str, Option(help="Priority label.")] = "Medium",
    due_date: Annotated[str | None, Option(help="Due date (YYYY-MM-DD).")] = None,
    description: Annotated[str | None, Option(help="Longer description.")] = None,
) -> None:
    """Create a personal task that lives only on the local board."""
    target = parse_column(column)
    conn, tasks, settings = _open_stores(ctx)
    try:
        record = create_personal_task(
            tasks,
            summary,
            priority=priority,
            due_date=due_date,
            description=description,
            column=target,
            assignee_name=settings.assignee,
        )
    except ValueError as exc:
        _fail(str(exc))
    finally:
        conn.close()
    typer.echo(f"Created {record.key} in {record.column.value}")


@typer_app.command(name="delete-task")
def delete_task_cli(
    ctx: typer.Context,
    key: Annotated[str, Argument(help="Key of the personal task.")],
) -> None:
    """Delete a personal task."""
    conn, tasks, _ = _open_stores(ctx)
    try:
        delete_personal_task(tasks, key)
    except (JiraFlowError, ValueError) as exc:
        _fail(str(exc))
    finally:
        conn.close()
    typer.echo(f"Deleted {key}")


# --- Status overrides ---
status_map_app = typer.Typer(help="Map Jira status labels onto board columns.")


@status_map_app.command(name="set")
def status_map_set_cli(
    ctx: typer.Context,
    label: Annotated[str, Argument(help="Jira status label, e.g. 'Waiting for QA'.")],
    column: Annotated[str, Argument(help="Board column.")],
) -> None:
    """Map a status label onto a column."""
    target = parse_column(column)
    conn, _, settings = _open_stores(ctx)
    try:
        settings.set_status_override(label, target.value)
    finally:
        conn.close()
    typer.echo(f"Mapped {label!r} to {target.value}")


@status_map_app.command(name="remove")
def status_map_remove_cli(
    ctx: typer.Context,
    label: Annotated[str, Argument(help="Jira status label.")],
) -> None:
    """Remove the mapping for a status label."""
    conn, _, settings = _open_stores(ctx)
    try:
        settings.remove_status_override(label)
    finally:
        conn.close()
    typer.echo(f"Removed mapping for {label!r}")


@status_map_app.command(name="list")
def status_map_list_cli(ctx: typer.Context) -> None:
    """List all status mappings."""
    conn, _, settings = _open_stores(ctx)
    try:
        overrides = settings.list_status_overrides()
    finally:
        conn.close()
    if not overrides:
        typer.echo("No status mappings defined")
        return
    for label, column in overrides.items():
        typer.echo(f"{label} -> {column}")


@status_map_app.command(name="import")
def status_map_import_cli(
    ctx: typer.Context,
    yaml_path: Annotated[Path, Argument(help="YAML file mapping status labels to columns.")],
) -> None:
    """Import status mappings from a YAML file."""
    try:
        overrides = load_status_overrides(yaml_path)
    except (FileNotFoundError, ValueError) as exc:
        _fail(str(exc))
    conn, _, settings = _open_stores(ctx)
    try:
        for label, column in overrides.items():
            settings.set_status_override(label, column.value)
    finally:
        conn.close()
    typer.echo(f"Imported {len(overrides)} status mapping(s) from {yaml_path}")


typer_app.add_typer(status_map_app, name="status-map")


if __name__ == "__main__":
    typer_app()
