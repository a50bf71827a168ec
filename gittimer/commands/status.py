"""Status command implementation."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from gittimer.core.config import Config
from gittimer.core.context import WorkspaceContext
from gittimer.tracking.errors import AuthenticationError
from gittimer.tracking.git_watcher import RepositoryStateWatcher
from gittimer.tracking.jira_client import JiraClient
from gittimer.tracking.models import BranchInfo, TicketInfo
from gittimer.tracking.state_store import WorkspaceStateStore
from gittimer.tracking.ticket_resolver import BranchTicketResolver, extract_ticket_key

console = Console()


async def _lookup(config: Config, branches: list[str]) -> dict[str, Optional[TicketInfo]]:
    credentials = config.jira_credentials()
    if credentials is None:
        return {}
    async with JiraClient(credentials) as jira:
        resolver = BranchTicketResolver(jira)
        return {branch: await resolver.find_linked_ticket(branch) for branch in branches}


def command(
    path: Optional[Path] = typer.Option(
        None, "--path", "-p", help="Workspace folder (default: auto-detect)"
    ),
    offline: bool = typer.Option(False, "--offline", help="Do not query Jira"),
):
    """Show watched repositories, their branches and linked tickets."""
    try:
        config = Config()
        context = WorkspaceContext(roots=[path] if path else None)
    except Exception as e:
        console.print(f"[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1)

    watcher = RepositoryStateWatcher()
    repositories = sorted(watcher.discover_repositories(context.roots))
    if not repositories:
        console.print(f"[yellow]No git repositories found in:[/yellow] {', '.join(map(str, context.roots))}")
        raise typer.Exit(code=1)

    infos: list[BranchInfo] = [
        info for info in (watcher.get_current_branch_info(repo) for repo in repositories) if info
    ]

    tickets: dict[str, Optional[TicketInfo]] = {}
    if not offline:
        if config.jira_credentials() is None:
            console.print(
                "[yellow]Hint:[/yellow] Jira credentials not configured; showing ticket keys only"
            )
        else:
            try:
                with console.status("[bold cyan]Resolving tickets...[/bold cyan]"):
                    tickets = asyncio.run(_lookup(config, [info.branch for info in infos]))
            except AuthenticationError as e:
                console.print(f"[red]ERROR:[/red] {e}")
                raise typer.Exit(code=1)

    table = Table(title="Repositories")
    table.add_column("Repository")
    table.add_column("Branch", style="cyan")
    table.add_column("Commit", style="dim")
    table.add_column("Ticket", style="bold")
    table.add_column("Summary")
    for info in infos:
        ticket = tickets.get(info.branch)
        table.add_row(
            str(info.path),
            info.branch,
            (info.last_commit or "")[:8],
            ticket.ticket_id if ticket else (extract_ticket_key(info.branch) or "-"),
            ticket.summary if ticket else "",
        )
    console.print(table)

    store = WorkspaceStateStore(config.state_dir, context.workspace_key)
    settings = store.load_auto_timer_settings()
    if settings is None:
        automation = config.automation_settings()
        console.print(
            f"\n[dim]No saved settings for this workspace "
            f"(defaults: auto start {automation.enable_auto_start}, "
            f"auto log {automation.enable_auto_stop})[/dim]"
        )
        return

    console.print(f"\n[bold]Auto start:[/bold] {settings.auto_start}")
    console.print(f"[bold]Auto log:[/bold]   {settings.auto_log}")
    if settings.last_branch_info:
        last = settings.last_branch_info
        console.print(f"[bold]Last ticket:[/bold] {last.ticket_id} on {last.branch}")
