"""Init command implementation."""

import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from gittimer.core.config import Config

console = Console()


def _tracker_table(config: Config) -> Table:
    """Summarize which time trackers are usable right now."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Tracker")
    table.add_column("Role")
    table.add_column("Credentials")

    jira = config.jira_credentials()
    table.add_row(
        "Jira",
        "primary",
        f"[green]{jira.email}[/green]" if jira else "[red]missing[/red]",
    )
    productive = config.productive_credentials()
    table.add_row(
        "Productive",
        "secondary",
        (
            f"[green]org {productive.organization_id}[/green]"
            if productive
            else "[dim]not configured[/dim]"
        ),
    )
    return table


def command(
    force: bool = typer.Option(
        False, "--force", "-f", help="Replace an existing config.toml with the defaults"
    ),
    show_config: bool = typer.Option(
        False, "--show", help="Print the default config.toml and exit"
    ),
):
    """Write ~/.config/gittimer/config.toml and create the state directory.

    Credentials may stay empty in the file when JIRA_* / PRODUCTIVE_*
    environment variables are exported instead.
    """
    config = Config()

    if show_config:
        console.print(
            Syntax(Config.get_default_config(), "toml", theme="monokai", line_numbers=True)
        )
        console.print(f"\n[dim]Target: {config.config_file}[/dim]")
        return

    if config.exists():
        if not force:
            console.print(
                Panel(
                    f"{config.config_file}\n\n"
                    "Pass [bold]--force[/bold] to reset it to the defaults",
                    title="Config already present",
                    border_style="yellow",
                )
            )
            raise typer.Exit(code=1)
        config.config_file.unlink()

    try:
        config_path = config.create_default()
        dirs = config.create_directories()
    except OSError as e:
        console.print(f"[red]ERROR:[/red] Could not write configuration: {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Config: [bold]{config_path}[/bold]")
    console.print(f"[green]✓[/green] State:  [bold]{dirs['state']}[/bold]\n")
    reloaded = Config()
    console.print(_tracker_table(reloaded))

    if reloaded.jira_credentials() is None:
        console.print(
            "\n[yellow]Hint:[/yellow] Fill in the [jira] section or export "
            "JIRA_BASE_URL, JIRA_EMAIL and JIRA_API_TOKEN before running 'gittimer watch'"
        )
