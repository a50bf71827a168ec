"""Automation orchestrator wiring git events to the timer and time logger.

This module provides the AutomationOrchestrator class, the single source of
truth for the current ticket, project and branch. It subscribes to the
repository watcher's event channel and drives the timer state machine and
the dual-destination logger:

- Branch change: optionally stop-and-log the running session, resolve the
  new branch's ticket, populate the timer and optionally auto-start it
- Commit: optionally stop-and-log the running session against the ticket of
  the branch the commit was made on

Every await is followed by a re-check of the state it depends on, since
other events may have been handled in between.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol, Union

from gittimer.core.config import AutomationSettings
from gittimer.tracking.errors import AuthenticationError, GittimerError, NoTicketSelectedError
from gittimer.tracking.events import GitEvent
from gittimer.tracking.git_watcher import RepositoryStateWatcher
from gittimer.tracking.models import (
    AutoTimerSettings,
    BranchChangeEvent,
    CommitEvent,
    LastBranchInfo,
    LoggedTimeEntry,
    NotificationLevel,
    TicketInfo,
    TimerStateSnapshot,
)
from gittimer.tracking.state_store import WorkspaceStateStore
from gittimer.tracking.ticket_resolver import BranchTicketResolver
from gittimer.tracking.time_logger import DualDestinationLogger
from gittimer.tracking.timer import TimerStateMachine

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[TimerStateSnapshot], None]
NotificationCallback = Callable[[NotificationLevel, str], None]


class AuthenticationProvider(Protocol):
    """External collaborator reporting whether tracker credentials are usable."""

    async def is_authenticated(self) -> bool:
        ...


class AutomationOrchestrator:
    """Drive the timer and time logging from repository events."""

    def __init__(
        self,
        watcher: RepositoryStateWatcher,
        resolver: BranchTicketResolver,
        timer: TimerStateMachine,
        time_logger: DualDestinationLogger,
        store: Optional[WorkspaceStateStore] = None,
        automation: Optional[AutomationSettings] = None,
        auth: Optional[AuthenticationProvider] = None,
        tick_interval: float = 1.0,
    ):
        """Initialize the orchestrator in the suspended state.

        Args:
            watcher: Repository watcher whose events drive automation
            resolver: Branch to ticket resolver
            timer: The workspace's timer
            time_logger: Logger used for stop-and-log
            store: Persistence for auto-timer settings; None keeps them in memory
            automation: Behaviour toggles from configuration
            auth: Authentication collaborator; None means always authenticated
            tick_interval: Seconds between UI state updates while running
        """
        self.watcher = watcher
        self.resolver = resolver
        self.timer = timer
        self.time_logger = time_logger
        self.store = store
        self.automation = automation or AutomationSettings()
        self.auth = auth
        self.tick_interval = tick_interval

        loaded = store.load_auto_timer_settings() if store else None
        self.settings = loaded or AutoTimerSettings(
            auto_start=self.automation.enable_auto_start,
            auto_log=self.automation.enable_auto_stop,
        )

        self._roots: list[Path] = []
        self._suspended = True
        self._disposed = False
        self._tick_task: Optional[asyncio.Task] = None
        self._checkout_head: Optional[tuple[Path, str, str]] = None
        self._on_state_change: Optional[StateChangeCallback] = None
        self._on_notification: Optional[NotificationCallback] = None
        self._unsubscribe = watcher.events.subscribe(self._handle_event)

    @property
    def suspended(self) -> bool:
        return self._suspended

    def set_on_state_change(self, callback: Optional[StateChangeCallback]) -> None:
        """Replace the single state-change callback."""
        self._on_state_change = callback

    def set_on_notification(self, callback: Optional[NotificationCallback]) -> None:
        self._on_notification = callback

    def get_state(self) -> TimerStateSnapshot:
        return self.timer.snapshot()

    def _emit_state(self) -> None:
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(self.timer.snapshot())
        except Exception as e:
            logger.error(f"State change callback failed: {e}")

    def _notify(self, level: NotificationLevel, message: str, automatic: bool = False) -> None:
        log_level = logging.WARNING if level in (NotificationLevel.WARNING, NotificationLevel.ERROR) else logging.INFO
        logger.log(log_level, message)
        if automatic and level == NotificationLevel.INFO and not self.automation.show_notifications:
            return
        if self._on_notification is None:
            return
        try:
            self._on_notification(level, message)
        except Exception as e:
            logger.error(f"Notification callback failed: {e}")

    async def activate(self, workspace_roots: Iterable[Union[str, Path]]) -> bool:
        """Start watching the workspace if authenticated.

        Returns:
            True if automation is running, False if suspended for authentication
        """
        self._roots = [Path(root) for root in workspace_roots]
        if not await self._check_authenticated():
            logger.warning("Not authenticated; automation suspended")
            self._notify(
                NotificationLevel.WARNING,
                "Sign in to Jira to enable automatic time tracking",
            )
            return False
        await self._resume()
        return True

    async def on_authentication_changed(self, authenticated: bool) -> None:
        """Resume on sign-in, suspend on sign-out."""
        if self._disposed:
            return
        if authenticated and self._suspended:
            logger.info("Authenticated; resuming automation")
            await self._resume()
        elif not authenticated and not self._suspended:
            logger.info("Authentication lost; suspending automation")
            self._suspend()

    async def _check_authenticated(self) -> bool:
        if self.auth is None:
            return True
        try:
            return bool(await self.auth.is_authenticated())
        except Exception as e:
            logger.warning(f"Authentication check failed: {e}")
            return False

    async def _resume(self) -> None:
        self._suspended = False
        await self.watcher.watch_workspace(self._roots)
        if self._suspended or self._disposed:
            return
        await self._initial_branch_check()

    def _suspend(self) -> None:
        self._suspended = True
        if self.timer.is_running:
            self.timer.stop()
        self._stop_tick()
        self.watcher.unwatch_all()
        self._emit_state()

    async def _initial_branch_check(self) -> None:
        """Populate the ticket for the current branch without starting the timer."""
        info = self.watcher.get_current_branch_info()
        if info is None:
            return
        branch = info.branch
        ticket = await self._resolve(branch)
        if self._suspended or self._disposed or self._is_stale(info.path, branch):
            return

        if ticket is None:
            last = self.settings.last_branch_info
            if last is None or last.branch != branch:
                self._emit_state()
                return
            # Offline start: reuse the last resolution for this branch
            ticket = TicketInfo(ticket_id=last.ticket_id, project_key=last.project_key)

        if not self.timer.is_running and self.timer.ticket_id is None:
            self.timer.set_ticket(ticket.ticket_id, ticket.project_key, branch)
            logger.info(f"Current branch {branch} linked to {ticket.ticket_id}")
        self._emit_state()

    def dispose(self) -> None:
        """Stop ticking, detach from the watcher and dispose it."""
        if self._disposed:
            return
        self._disposed = True
        self._stop_tick()
        self._unsubscribe()
        self.watcher.dispose()

    async def _handle_event(self, event: GitEvent) -> None:
        checkout_head, self._checkout_head = self._checkout_head, None
        if self._suspended or self._disposed:
            return
        try:
            if isinstance(event, BranchChangeEvent):
                state = self.watcher.get_state(event.repo_path)
                if state is not None:
                    self._checkout_head = (
                        event.repo_path, event.new_branch, state.current_commit_hash
                    )
                await self._on_branch_change(event)
            elif isinstance(event, CommitEvent):
                if checkout_head == (event.repo_path, event.branch, event.commit_hash):
                    # HEAD moved to the checked out branch's existing tip
                    logger.debug(f"Skipping commit {event.commit_hash[:8]} from checkout of {event.branch}")
                    return
                await self._on_commit(event)
        except GittimerError as e:
            logger.error(f"Failed to handle {type(event).__name__}: {e}")

    async def _on_branch_change(self, event: BranchChangeEvent) -> None:
        if (
            self.settings.auto_log
            and self.automation.auto_stop_on_branch_switch
            and self.timer.is_running
        ):
            await self._stop_and_log(
                f"Work on {self.timer.ticket_id} (logged on switch to {event.new_branch})"
            )

        ticket = await self._resolve(event.new_branch)
        if self._suspended or self._disposed:
            return
        if self._is_stale(event.repo_path, event.new_branch):
            logger.info(f"Dropping stale resolution for {event.new_branch}")
            return

        if ticket is None:
            if not self.timer.is_running and self.timer.elapsed_minutes < 1:
                self.timer.clear_ticket()
                self.timer.session.branch_name = event.new_branch
            self._emit_state()
            return

        self._remember_branch(event.new_branch, ticket)

        if self.timer.is_running:
            # Auto-log is off, so the session keeps its ticket
            self._emit_state()
            return

        if self.timer.ticket_id != ticket.ticket_id and self.timer.elapsed_minutes >= 1:
            self._notify(
                NotificationLevel.WARNING,
                f"{self.timer.format_elapsed()} on {self.timer.ticket_id} is not logged; "
                f"submit or clear it to track {ticket.ticket_id}",
                automatic=True,
            )
            self._emit_state()
            return

        self.timer.set_ticket(ticket.ticket_id, ticket.project_key, event.new_branch)
        if self.settings.auto_start and self.automation.auto_start_on_branch_switch:
            self.timer.start(auto_started=True)
            self._start_tick()
            self._notify(
                NotificationLevel.INFO,
                f"Started timer for {ticket.ticket_id}: {ticket.summary}".rstrip(": "),
                automatic=True,
            )
        self._emit_state()

    async def _on_commit(self, event: CommitEvent) -> None:
        if not (self.settings.auto_log and self.automation.auto_stop_on_commit):
            return
        if not self.timer.is_running:
            return

        ticket_id = self.timer.ticket_id
        project_key = self.timer.project_key
        if event.branch != self.timer.branch_name:
            ticket = await self._resolve(event.branch)
            if self._suspended or self._disposed or not self.timer.is_running:
                return
            if ticket is not None:
                ticket_id, project_key = ticket.ticket_id, ticket.project_key

        description = event.commit_message or f"Commit {event.commit_hash[:8]}"
        await self._stop_and_log(description, ticket_id, project_key)

    def _is_stale(self, repo_path: Path, branch: str) -> bool:
        state = self.watcher.get_state(repo_path)
        return state is None or state.current_branch != branch

    async def _resolve(self, branch: str) -> Optional[TicketInfo]:
        try:
            return await self.resolver.find_linked_ticket(branch)
        except AuthenticationError as e:
            self._notify(NotificationLevel.ERROR, f"Jira authentication failed: {e}")
            if not self._suspended:
                self._suspend()
            return None

    def _remember_branch(self, branch: str, ticket: TicketInfo) -> None:
        self.settings.last_branch_info = LastBranchInfo(
            branch=branch, ticket_id=ticket.ticket_id, project_key=ticket.project_key
        )
        self._persist_settings()

    def _persist_settings(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save_auto_timer_settings(self.settings)
        except OSError as e:
            logger.error(f"Failed to save auto-timer settings: {e}")

    async def _stop_and_log(
        self,
        description: str,
        ticket_id: Optional[str] = None,
        project_key: Optional[str] = None,
    ) -> Optional[LoggedTimeEntry]:
        """Stop the timer and log whole minutes; sub-minute sessions are kept, not logged."""
        self.timer.stop()
        self._stop_tick()
        ticket_id = ticket_id or self.timer.ticket_id
        project_key = project_key if project_key is not None else self.timer.project_key
        minutes = self.timer.elapsed_minutes

        if ticket_id is None:
            self._emit_state()
            raise NoTicketSelectedError()

        if minutes < 1:
            self._notify(
                NotificationLevel.WARNING,
                f"Less than a minute on {ticket_id}; time not logged",
            )
            self._emit_state()
            return None

        self._emit_state()
        return await self._log(ticket_id, project_key or "", minutes, description)

    async def _log(
        self, ticket_id: str, project_key: str, minutes: int, description: str
    ) -> Optional[LoggedTimeEntry]:
        try:
            entry = await self.time_logger.log_time(ticket_id, project_key, minutes, description)
        except (GittimerError, ValueError) as e:
            # Session stays stopped with its elapsed time so it can be resubmitted
            self._notify(NotificationLevel.ERROR, f"Failed to log {minutes}m to {ticket_id} ({e})")
            if isinstance(e, AuthenticationError) and not self._suspended:
                self._suspend()
            self._emit_state()
            return None

        if self.timer.is_running:
            logger.warning(f"Timer restarted while logging {ticket_id}; keeping elapsed time")
        else:
            self.timer.reset_after_log()

        if not entry.secondary_attempted:
            self._notify(NotificationLevel.SUCCESS, f"Logged {minutes}m to {ticket_id} (Jira)")
        elif entry.secondary_succeeded:
            self._notify(
                NotificationLevel.SUCCESS,
                f"Logged {minutes}m to {ticket_id} (Jira and Productive)",
            )
        else:
            self._notify(
                NotificationLevel.WARNING,
                f"Logged {minutes}m to {ticket_id} in Jira only "
                f"(Productive failed: {entry.secondary_error})",
            )
        self._emit_state()
        return entry

    def _refuse_while_suspended(self) -> bool:
        if self._suspended:
            self._notify(NotificationLevel.WARNING, "Automation is suspended; sign in first")
        return self._suspended

    async def start_timer(self) -> bool:
        """Start timing the current ticket. Returns False if it could not start."""
        if self._refuse_while_suspended():
            return False
        if self.timer.is_running:
            return True
        try:
            self.timer.start()
        except NoTicketSelectedError as e:
            self._notify(NotificationLevel.ERROR, str(e))
            return False
        self._start_tick()
        self._emit_state()
        return True

    async def stop_timer(self) -> None:
        """Pause the timer without logging."""
        if self._refuse_while_suspended():
            return
        self.timer.stop()
        self._stop_tick()
        self._emit_state()

    async def submit_time(self, description: Optional[str] = None) -> Optional[LoggedTimeEntry]:
        """Stop the timer and log the accumulated time."""
        if self._refuse_while_suspended():
            return None
        ticket_id = self.timer.ticket_id
        if ticket_id is None:
            self._notify(NotificationLevel.ERROR, str(NoTicketSelectedError()))
            return None
        return await self._stop_and_log(description or f"Work on {ticket_id}")

    async def clear_current_ticket(self) -> None:
        """Stop without logging and forget the ticket and its elapsed time."""
        if self._refuse_while_suspended():
            return
        self._stop_tick()
        branch = self.timer.branch_name
        self.timer.clear_ticket()
        self.timer.session.branch_name = branch
        self._emit_state()

    def update_auto_timer_settings(
        self, auto_start: Optional[bool] = None, auto_log: Optional[bool] = None
    ) -> AutoTimerSettings:
        """Change the per-workspace toggles and persist them."""
        if auto_start is not None:
            self.settings.auto_start = auto_start
        if auto_log is not None:
            self.settings.auto_log = auto_log
        self._persist_settings()
        logger.info(
            f"Auto-timer settings: auto_start={self.settings.auto_start}, "
            f"auto_log={self.settings.auto_log}"
        )
        return self.settings

    def _start_tick(self) -> None:
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = asyncio.get_running_loop().create_task(self._tick())

    def _stop_tick(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    async def _tick(self) -> None:
        while self.timer.is_running:
            await asyncio.sleep(self.tick_interval)
            self._emit_state()
