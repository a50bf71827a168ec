"""Log command implementation."""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from gittimer.core.config import Config
from gittimer.tracking.errors import AuthenticationError, GittimerError, PartialLogFailure
from gittimer.tracking.models import LoggedTimeEntry
from gittimer.tracking.time_logger import DualDestinationLogger, raise_for_partial_failure
from gittimer.utils.durations import parse_duration

console = Console()


async def _log(
    config: Config, ticket: str, project: str, minutes: int, message: str
) -> LoggedTimeEntry:
    time_logger = DualDestinationLogger.from_config(config)
    try:
        return await time_logger.log_time(ticket, project, minutes, message)
    finally:
        await time_logger.close()


def command(
    ticket: str = typer.Argument(..., help="Jira ticket key, e.g. PROJ-42"),
    duration: str = typer.Argument(..., help="Time spent: '1h 30m', '1.5h', '90m' or '90'"),
    message: Optional[str] = typer.Option(
        None, "--message", "-m", help="Worklog comment / time entry note"
    ),
    project: Optional[str] = typer.Option(
        None, "--project", "-p", help="Jira project key used to pick the Productive project"
    ),
):
    """Log time manually to Jira and, when configured, Productive."""
    ticket = ticket.upper()
    try:
        minutes = parse_duration(duration)
    except ValueError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1)

    project_key = (project or ticket.split("-", 1)[0]).upper()
    description = message or f"Work on {ticket}"

    try:
        with console.status(f"[bold cyan]Logging {minutes}m to {ticket}...[/bold cyan]"):
            entry = asyncio.run(_log(Config(), ticket, project_key, minutes, description))
    except AuthenticationError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        console.print(
            "[yellow]Hint:[/yellow] Check the [jira] section of ~/.config/gittimer/config.toml"
        )
        raise typer.Exit(code=1)
    except GittimerError as e:
        console.print(f"[red]ERROR:[/red] Failed to log time: {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Logged {minutes}m to {ticket} in Jira")
    try:
        raise_for_partial_failure(entry)
    except PartialLogFailure:
        console.print(f"[yellow]⚠ Productive failed:[/yellow] {entry.secondary_error}")
        console.print(
            "[yellow]Hint:[/yellow] Set productive.default_service_id or "
            "[productive.project_mapping] to skip discovery"
        )
        # Jira has the worklog; retrying the command would log it twice
        raise typer.Exit(code=2)

    if not entry.secondary_attempted:
        console.print("[dim]Productive not configured, skipped[/dim]")
    else:
        result = entry.productive_result
        console.print(
            f"[green]✓[/green] Productive entry {result.entry_id}: "
            f"project {result.project.name} ({result.project.confidence.value}), "
            f"service {result.service.name} ({result.service.confidence.value})"
        )
