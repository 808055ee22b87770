"""pogo-update - Command-line interface for the data update pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from .config import get_settings
from .data.database import DatabaseManager
from .data.models import UpdateStatus, UpdateTask
from .exceptions import SourceNotFoundError
from .updates import DataUpdateManager, GitHubFeedClient

console = Console()

T = TypeVar("T")

# =============================================================================
# Update manager context
# =============================================================================


class UpdateContext:
    """Lazy database and update manager for one CLI invocation."""

    def __init__(self) -> None:
        self._settings = get_settings()
        self._db_manager: DatabaseManager | None = None
        self._feed: GitHubFeedClient | None = None
        self._updates: DataUpdateManager | None = None

    async def get_updates(self) -> DataUpdateManager:
        """Get the update manager, connecting and loading source state if needed."""
        if self._updates is None:
            self._db_manager = DatabaseManager(self._settings)
            await self._db_manager.start()
            self._feed = GitHubFeedClient(self._settings)
            self._updates = DataUpdateManager(self._db_manager.db, self._settings, feed=self._feed)
            await self._updates.registry.persist(self._db_manager.db)
            await self._updates.registry.load_state(self._db_manager.db)
        return self._updates

    async def close(self) -> None:
        """Stop the manager and close connections."""
        if self._updates is not None:
            await self._updates.shutdown()
            self._updates = None
        if self._feed is not None:
            await self._feed.close()
            self._feed = None
        if self._db_manager is not None:
            await self._db_manager.stop()
            self._db_manager = None


def run_with_updates(body: Callable[[DataUpdateManager], Awaitable[T]]) -> T:
    """Run an async command body against a fresh update manager."""
    ctx = UpdateContext()

    async def _run() -> T:
        try:
            return await body(await ctx.get_updates())
        finally:
            await ctx.close()

    return asyncio.run(_run())


def output_json(data: Any) -> None:
    """Output data as JSON (plain text, no Rich formatting)."""
    print(json.dumps(data, indent=2, default=str))


def _setup_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _status_markup(status: UpdateStatus) -> str:
    style = {UpdateStatus.COMPLETED: "green", UpdateStatus.FAILED: "red"}.get(status, "yellow")
    return f"[{style}]{status.value}[/]"


def _task_dict(task: UpdateTask) -> dict[str, Any]:
    return {
        "id": task.id,
        "source_id": task.source_id,
        "status": task.status.value,
        "records_added": task.records_added,
        "records_modified": task.records_modified,
        "records_skipped": task.records_skipped,
        "version_marker": task.version_marker,
        "error_message": task.error_message,
        "duration": task.duration,
    }


def _print_tasks(tasks: list[UpdateTask]) -> None:
    table = Table(title="Update Results")
    table.add_column("Source", style="cyan")
    table.add_column("Status")
    table.add_column("Added", justify="right")
    table.add_column("Modified", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Duration", justify="right")

    for task in tasks:
        table.add_row(
            task.source_id,
            _status_markup(task.status),
            str(task.records_added),
            str(task.records_modified),
            str(task.records_skipped),
            f"{task.duration:.2f}s",
        )
    console.print(table)

    for task in tasks:
        if task.error_message:
            console.print(f"[red]{task.source_id}:[/] {task.error_message}")


# =============================================================================
# Main CLI app
# =============================================================================

cli = typer.Typer(
    name="pogo-update",
    help="Pokemon GO data updates - check sources, force loads and inspect history.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@cli.command()
def status(
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """Show every data source and its last known state."""
    data = run_with_updates(lambda updates: updates.status())

    if as_json:
        output_json(data)
        return

    table = Table(title="Data Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Kind")
    table.add_column("Priority", justify="right")
    table.add_column("Active")
    table.add_column("Every", justify="right")
    table.add_column("Last checked")
    table.add_column("Last updated")
    table.add_column("Version")

    for source in data["sources"]:
        marker = source["version_marker"]
        table.add_row(
            source["id"],
            source["kind"],
            str(source["priority"]),
            "[green]yes[/]" if source["is_active"] else "[dim]no[/]",
            f"{source['check_interval'] / 3600:g}h",
            str(source["last_checked_at"] or "-"),
            str(source["last_updated_at"] or "-"),
            marker[:10] if marker else "-",
        )
    console.print(table)


@cli.command()
def history(
    source: Annotated[str | None, typer.Option("-s", "--source", help="Source id")] = None,
    update_status: Annotated[
        UpdateStatus | None, typer.Option("--status", help="Filter by status")
    ] = None,
    limit: Annotated[int, typer.Option("-n", "--limit", help="Max records")] = 20,
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """Show recent update history, newest first."""
    try:
        records = run_with_updates(
            lambda updates: updates.history(source_id=source, status=update_status, limit=limit)
        )
    except SourceNotFoundError as e:
        console.print(f"[red]Error:[/] {e.message}")
        raise typer.Exit(1) from None

    if as_json:
        output_json(
            [
                {
                    "id": r.id,
                    "source_id": r.source_id,
                    "status": r.status.value,
                    "records_added": r.records_added,
                    "records_modified": r.records_modified,
                    "version_marker": r.version_marker,
                    "error_message": r.error_message,
                    "created_at": r.created_at,
                    "completed_at": r.completed_at,
                }
                for r in records
            ]
        )
        return

    if not records:
        console.print("[dim]No updates recorded yet.[/]")
        return

    table = Table(title="Update History")
    table.add_column("When")
    table.add_column("Source", style="cyan")
    table.add_column("Status")
    table.add_column("Added", justify="right")
    table.add_column("Modified", justify="right")
    table.add_column("Error")
    for r in records:
        table.add_row(
            r.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            r.source_id,
            _status_markup(r.status),
            str(r.records_added),
            str(r.records_modified),
            r.error_message or "",
        )
    console.print(table)


@cli.command()
def force(
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """Load every active source now, ignoring version markers."""
    _setup_logging()
    tasks = run_with_updates(lambda updates: updates.force_update(wait=True))

    if as_json:
        output_json([_task_dict(task) for task in tasks])
    else:
        _print_tasks(tasks)

    if any(task.status is UpdateStatus.FAILED for task in tasks):
        raise typer.Exit(1)


@cli.command()
def check(
    source_id: Annotated[str, typer.Argument(help="Source id")],
    update: Annotated[
        bool, typer.Option("--update", help="Load the source if it changed")
    ] = False,
) -> None:
    """Check one source for a new version."""
    _setup_logging()

    async def _check(updates: DataUpdateManager) -> tuple[bool, list[UpdateTask]]:
        source = updates.registry.get(source_id)
        changed = await updates.detector.detect(source)
        tasks: list[UpdateTask] = []
        if changed and update:
            tasks.append(updates.queue.enqueue(source))
            await updates.processor.drain()
        return changed, tasks

    try:
        changed, tasks = run_with_updates(_check)
    except SourceNotFoundError as e:
        console.print(f"[red]Error:[/] {e.message}")
        raise typer.Exit(1) from None

    if changed:
        console.print(f"[yellow]{source_id}[/] has a new version")
    else:
        console.print(f"[green]{source_id}[/] is up to date")
    if tasks:
        _print_tasks(tasks)


@cli.command()
def run() -> None:
    """Run the scheduler until interrupted."""
    _setup_logging()

    async def _serve_forever(updates: DataUpdateManager) -> None:
        await updates.initialize()
        console.print("[green]Scheduler running.[/] Press Ctrl+C to stop.")
        await asyncio.Event().wait()

    try:
        run_with_updates(_serve_forever)
    except KeyboardInterrupt:
        console.print("Stopped.")


@cli.command()
def serve(
    host: Annotated[str, typer.Option(help="Host to bind to")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on")] = 8766,
) -> None:
    """Start the HTTP API server."""
    from .api.server import serve as serve_api

    serve_api(host, port)


if __name__ == "__main__":
    cli()
