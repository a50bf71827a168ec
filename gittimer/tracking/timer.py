"""Timer state machine for the single per-workspace timing session.

The timer has two states, IDLE and RUNNING. Elapsed time accumulates across
start/stop cycles for the same ticket and is only cleared by
``reset_after_log()`` or ``clear_ticket()``.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from gittimer.tracking.errors import NoTicketSelectedError, StateTransitionError
from gittimer.tracking.models import TimerSession, TimerState, TimerStateSnapshot
from gittimer.utils.durations import format_elapsed

logger = logging.getLogger(__name__)

MILLIS_PER_MINUTE = 60_000


def monotonic_millis() -> float:
    return time.monotonic() * 1000


class TimerStateMachine:
    """Idle/Running timer with an injectable millisecond clock."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """Initialize an idle timer with zero elapsed time.

        Args:
            clock: Returns the current time in milliseconds (monotonic by default)
        """
        self._clock = clock or monotonic_millis
        self.session = TimerSession()

    @property
    def state(self) -> TimerState:
        return self.session.state

    @property
    def is_running(self) -> bool:
        return self.session.is_active

    @property
    def ticket_id(self) -> Optional[str]:
        return self.session.ticket_id

    @property
    def project_key(self) -> Optional[str]:
        return self.session.project_key

    @property
    def branch_name(self) -> Optional[str]:
        return self.session.branch_name

    def set_ticket(
        self, ticket_id: str, project_key: str, branch_name: Optional[str] = None
    ) -> None:
        """Select the ticket the next start will time.

        Accumulated time belongs to the previous ticket, so it is dropped
        when the ticket changes.

        Raises:
            StateTransitionError: If the timer is running on another ticket
        """
        session = self.session
        if session.is_active and session.ticket_id != ticket_id:
            raise StateTransitionError(
                f"Cannot switch to {ticket_id} while timing {session.ticket_id}"
            )
        if session.ticket_id != ticket_id and session.elapsed_time_millis:
            logger.info(
                f"Discarding {format_elapsed(session.elapsed_time_millis)} "
                f"unlogged on {session.ticket_id}"
            )
            session.elapsed_time_millis = 0
        session.ticket_id = ticket_id
        session.project_key = project_key
        if branch_name is not None:
            session.branch_name = branch_name

    def clear_ticket(self) -> None:
        """Stop without logging, discard elapsed time and forget the ticket."""
        self.session = TimerSession()
        logger.info("Timer cleared")

    def start(
        self,
        ticket_id: Optional[str] = None,
        project_key: Optional[str] = None,
        branch_name: Optional[str] = None,
        auto_started: bool = False,
    ) -> None:
        """Transition IDLE -> RUNNING, preserving accumulated time.

        Raises:
            NoTicketSelectedError: If no ticket is given or selected
            StateTransitionError: If the timer is already running
        """
        if self.session.is_active:
            raise StateTransitionError(
                f"Timer already running for {self.session.ticket_id}"
            )
        if ticket_id:
            if project_key is None and ticket_id == self.session.ticket_id:
                project_key = self.session.project_key
            self.set_ticket(ticket_id, project_key or "", branch_name)
        elif branch_name is not None:
            self.session.branch_name = branch_name
        if not self.session.ticket_id:
            raise NoTicketSelectedError()

        self.session.start_time = self._clock()
        self.session.is_active = True
        self.session.auto_started = auto_started
        logger.info(
            f"Timer {TimerState.IDLE.value} -> {TimerState.RUNNING.value} "
            f"for {self.session.ticket_id}{' (auto)' if auto_started else ''}"
        )

    def stop(self) -> float:
        """Transition RUNNING -> IDLE and freeze elapsed time.

        Stopping an idle timer is a no-op.

        Returns:
            Total accumulated milliseconds
        """
        session = self.session
        if not session.is_active:
            return session.elapsed_time_millis

        session.elapsed_time_millis += max(0.0, self._clock() - session.start_time)
        session.start_time = None
        session.is_active = False
        logger.info(
            f"Timer {TimerState.RUNNING.value} -> {TimerState.IDLE.value} "
            f"for {session.ticket_id} at {self.format_elapsed()}"
        )
        return session.elapsed_time_millis

    def reset_after_log(self) -> None:
        """Zero elapsed time once it has been logged.

        Raises:
            StateTransitionError: If the timer is running
        """
        if self.session.is_active:
            raise StateTransitionError("Cannot reset a running timer")
        self.session.elapsed_time_millis = 0
        self.session.auto_started = False

    def elapsed_millis(self) -> float:
        """Accumulated time including the current running stretch."""
        session = self.session
        elapsed = session.elapsed_time_millis
        if session.is_active and session.start_time is not None:
            elapsed += max(0.0, self._clock() - session.start_time)
        return elapsed

    @property
    def elapsed_minutes(self) -> int:
        """Whole minutes elapsed; partial minutes are never rounded up."""
        return int(self.elapsed_millis() // MILLIS_PER_MINUTE)

    def format_elapsed(self) -> str:
        return format_elapsed(self.elapsed_millis())

    def snapshot(self) -> TimerStateSnapshot:
        session = self.session
        return TimerStateSnapshot(
            is_active=session.is_active,
            current_ticket=session.ticket_id,
            current_project=session.project_key,
            branch_name=session.branch_name,
            elapsed_time_millis=int(self.elapsed_millis()),
        )
