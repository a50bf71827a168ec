"""Resolve command implementation."""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from gittimer.core.config import Config
from gittimer.tracking.errors import AuthenticationError, GittimerError, TicketNotFoundError
from gittimer.tracking.jira_client import JiraClient
from gittimer.tracking.models import TicketInfo
from gittimer.tracking.ticket_resolver import BranchTicketResolver, extract_ticket_key

console = Console()


async def _resolve(config: Config, ticket_key: str) -> TicketInfo:
    credentials = config.jira_credentials()
    if credentials is None:
        raise AuthenticationError("Jira credentials are not configured")
    async with JiraClient(credentials) as jira:
        return await BranchTicketResolver(jira).resolve_ticket(ticket_key)


def command(
    branch: str = typer.Argument(..., help="Branch name, e.g. feature/PROJ-42-add-login"),
    offline: bool = typer.Option(
        False, "--offline", help="Only extract the ticket key, do not query Jira"
    ),
):
    """Show which Jira ticket a branch name links to."""
    ticket_key: Optional[str] = extract_ticket_key(branch)
    if ticket_key is None:
        console.print(f"[yellow]No ticket key found in branch:[/yellow] {branch}")
        console.print(
            "[yellow]Hint:[/yellow] Branch names should contain a key like "
            "'feature/PROJ-42-add-login' or 'PROJ-42-fix'"
        )
        raise typer.Exit(code=1)

    console.print(f"[bold]Ticket key:[/bold] {ticket_key}")
    if offline:
        return

    try:
        with console.status("[bold cyan]Looking up ticket in Jira...[/bold cyan]"):
            ticket = asyncio.run(_resolve(Config(), ticket_key))
    except TicketNotFoundError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1)
    except AuthenticationError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        console.print(
            "[yellow]Hint:[/yellow] Run 'gittimer init' and set [jira] credentials, "
            "or export JIRA_BASE_URL, JIRA_EMAIL and JIRA_API_TOKEN"
        )
        raise typer.Exit(code=1)
    except GittimerError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[bold]Summary:[/bold]    {ticket.summary}")
    console.print(f"[bold]Status:[/bold]     {ticket.status}")
    console.print(f"[bold]Project:[/bold]    {ticket.project_key}")
