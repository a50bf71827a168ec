"""Watch command implementation.

Runs the automation orchestrator in the foreground until interrupted,
printing notifications and timer transitions.
"""

import asyncio
import signal
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from gittimer.core.config import AutomationSettings, Config
from gittimer.core.context import WorkspaceContext
from gittimer.tracking.errors import AuthenticationError
from gittimer.tracking.git_watcher import RepositoryStateWatcher
from gittimer.tracking.models import NotificationLevel, TimerStateSnapshot
from gittimer.tracking.orchestrator import AutomationOrchestrator
from gittimer.tracking.state_store import WorkspaceStateStore
from gittimer.tracking.ticket_resolver import BranchTicketResolver
from gittimer.tracking.time_logger import DualDestinationLogger
from gittimer.tracking.timer import TimerStateMachine
from gittimer.utils.durations import format_elapsed

console = Console()

NOTIFICATION_STYLES = {
    NotificationLevel.INFO: "[cyan]•[/cyan]",
    NotificationLevel.SUCCESS: "[green]✓[/green]",
    NotificationLevel.WARNING: "[yellow]⚠[/yellow]",
    NotificationLevel.ERROR: "[red]✗[/red]",
}


def _print_notification(level: NotificationLevel, message: str) -> None:
    console.print(f"{NOTIFICATION_STYLES[level]} {message}")


class _StatePrinter:
    """Print timer transitions, not every tick."""

    def __init__(self):
        self._last: Optional[tuple] = None

    def __call__(self, state: TimerStateSnapshot) -> None:
        key = (state.is_active, state.current_ticket, state.branch_name)
        if key == self._last:
            return
        self._last = key
        if state.is_active:
            console.print(
                f"[bold green]▶[/bold green] Timing {state.current_ticket} "
                f"on {state.branch_name} ({format_elapsed(state.elapsed_time_millis)})"
            )
        elif state.current_ticket:
            console.print(
                f"[bold]■[/bold] {state.current_ticket} idle "
                f"({format_elapsed(state.elapsed_time_millis)} unlogged)"
            )
        else:
            console.print(f"[dim]No ticket for branch {state.branch_name or '-'}[/dim]")


async def _watch(config: Config, context: WorkspaceContext, automation: AutomationSettings) -> None:
    time_logger = DualDestinationLogger.from_config(config)
    watcher = RepositoryStateWatcher(
        poll_interval=automation.poll_interval, debounce=automation.debounce
    )
    orchestrator = AutomationOrchestrator(
        watcher=watcher,
        resolver=BranchTicketResolver(time_logger.jira),
        timer=TimerStateMachine(),
        time_logger=time_logger,
        store=WorkspaceStateStore(config.state_dir, context.workspace_key),
        automation=automation,
    )
    orchestrator.set_on_notification(_print_notification)
    orchestrator.set_on_state_change(_StatePrinter())

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt ends asyncio.run instead
            pass

    try:
        await orchestrator.activate(context.roots)
        repositories = watcher.watched_repositories
        if not repositories:
            console.print("[yellow]No git repositories found; nothing to watch[/yellow]")
            return
        console.print(f"[bold]Watching {len(repositories)} repositories[/bold] (Ctrl-C to stop)")
        for repo in repositories:
            console.print(f"  [dim]{repo}[/dim]")
        await stop.wait()
    finally:
        state = orchestrator.get_state()
        if state.current_ticket and state.elapsed_time_millis >= 60_000:
            console.print(
                f"[yellow]Unlogged:[/yellow] {format_elapsed(state.elapsed_time_millis)} "
                f"on {state.current_ticket}"
            )
            console.print(
                f"[yellow]Hint:[/yellow] gittimer log {state.current_ticket} "
                f"{int(state.elapsed_time_millis // 60_000)}m"
            )
        orchestrator.dispose()
        await time_logger.close()


def command(
    path: Optional[Path] = typer.Option(
        None, "--path", "-p", help="Workspace folder (default: auto-detect)"
    ),
    no_auto_start: bool = typer.Option(
        False, "--no-auto-start", help="Do not start the timer on branch switches"
    ),
    no_auto_log: bool = typer.Option(
        False, "--no-auto-log", help="Do not stop and log time on commits or branch switches"
    ),
):
    """Track time automatically from branch switches and commits."""
    try:
        config = Config()
        context = WorkspaceContext(roots=[path] if path else None)
    except Exception as e:
        console.print(f"[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1)

    automation = config.automation_settings()
    if no_auto_start:
        automation = replace(automation, auto_start_on_branch_switch=False)
    if no_auto_log:
        automation = replace(
            automation, auto_stop_on_commit=False, auto_stop_on_branch_switch=False
        )

    try:
        asyncio.run(_watch(config, context, automation))
    except AuthenticationError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        console.print(
            "[yellow]Hint:[/yellow] Run 'gittimer init' and set [jira] credentials, "
            "or export JIRA_BASE_URL, JIRA_EMAIL and JIRA_API_TOKEN"
        )
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")
