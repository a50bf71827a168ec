"""Type-safe data models and state enums for automatic time tracking.

This module provides the shared type system for the watcher, resolver, timer,
logger and orchestrator: repository state, git events, ticket metadata, the
timer session, logging results and the persisted auto-timer settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

UNKNOWN_BRANCH = "unknown"
DETACHED_BRANCH = "detached"


class TimerState(str, Enum):
    """Timer lifecycle states."""

    IDLE = "IDLE"
    RUNNING = "RUNNING"


class Confidence(str, Enum):
    """How reliable a discovered project/service mapping is."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class NotificationLevel(str, Enum):
    """Severity of a user-facing notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class RepositoryState:
    """Observed git state for one monitored repository root.

    ``last_observed_*`` values are only written by the reconciliation pass,
    so every transition is reported exactly once.
    """

    repo_path: Path
    git_dir: Path
    current_branch: str = UNKNOWN_BRANCH
    current_commit_hash: str = ""
    last_observed_branch: Optional[str] = None
    last_observed_commit_hash: Optional[str] = None


@dataclass(frozen=True)
class GitSnapshot:
    """Branch and commit read together from one HEAD read."""

    branch: str
    commit_hash: str


@dataclass(frozen=True)
class BranchChangeEvent:
    """Emitted once per genuine branch transition."""

    repo_path: Path
    old_branch: str
    new_branch: str
    timestamp_millis: int


@dataclass(frozen=True)
class CommitEvent:
    """Emitted once per newly observed commit hash in a repository."""

    repo_path: Path
    branch: str
    commit_hash: str
    commit_message: str
    timestamp_millis: int


@dataclass(frozen=True)
class BranchInfo:
    """Synchronous snapshot of a repository's current branch."""

    path: Path
    branch: str
    remote_url: Optional[str] = None
    last_commit: Optional[str] = None


@dataclass(frozen=True)
class TicketInfo:
    """Ticket metadata resolved from the issue tracker."""

    ticket_id: str
    project_key: str
    summary: str = ""
    status: str = ""


@dataclass
class TimerSession:
    """The single timing session of a workspace.

    ``start_time`` is a clock reading in milliseconds while running and
    ``None`` while idle.
    """

    ticket_id: Optional[str] = None
    project_key: Optional[str] = None
    branch_name: Optional[str] = None
    start_time: Optional[float] = None
    elapsed_time_millis: float = 0
    is_active: bool = False
    auto_started: bool = False

    @property
    def state(self) -> TimerState:
        return TimerState.RUNNING if self.is_active else TimerState.IDLE


@dataclass(frozen=True)
class TimerStateSnapshot:
    """State delivered to the UI on every change."""

    is_active: bool
    current_ticket: Optional[str]
    current_project: Optional[str]
    branch_name: Optional[str]
    elapsed_time_millis: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "isActive": self.is_active,
            "currentTicket": self.current_ticket,
            "currentProject": self.current_project,
            "branchName": self.branch_name,
            "elapsedTimeMillis": self.elapsed_time_millis,
        }


@dataclass(frozen=True)
class Discovery:
    """A project or service picked by a discovery strategy."""

    id: str
    name: str
    confidence: Confidence
    source: str


@dataclass(frozen=True)
class SecondaryLogResult:
    """Outcome of mirroring a worklog into the secondary tracker."""

    success: bool
    person_id: Optional[str] = None
    project: Optional[Discovery] = None
    service: Optional[Discovery] = None
    entry_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class LoggedTimeEntry:
    """Result of one stop-and-log cycle.

    Only produced when the primary worklog was created; primary failures
    propagate as exceptions instead.
    """

    ticket_id: str
    minutes: int
    description: str
    jira_result: dict[str, Any] = field(default_factory=dict)
    productive_result: Optional[SecondaryLogResult] = None

    @property
    def primary_succeeded(self) -> bool:
        return True

    @property
    def secondary_attempted(self) -> bool:
        return self.productive_result is not None

    @property
    def secondary_succeeded(self) -> bool:
        return self.productive_result is not None and self.productive_result.success

    @property
    def secondary_error(self) -> Optional[str]:
        if self.productive_result is None:
            return None
        return self.productive_result.error


@dataclass(frozen=True)
class LastBranchInfo:
    """Last branch that resolved to a ticket."""

    branch: str
    ticket_id: str
    project_key: str


@dataclass
class AutoTimerSettings:
    """Per-workspace automation toggles; the only state surviving restarts."""

    auto_start: bool = True
    auto_log: bool = True
    last_branch_info: Optional[LastBranchInfo] = None

    def to_dict(self) -> dict[str, Any]:
        last = self.last_branch_info
        return {
            "autoStart": self.auto_start,
            "autoLog": self.auto_log,
            "lastBranchInfo": {
                "branch": last.branch,
                "ticketId": last.ticket_id,
                "projectKey": last.project_key,
            } if last else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> AutoTimerSettings:
        if not data:
            return cls()
        last = data.get("lastBranchInfo")
        last_info = None
        if isinstance(last, dict) and last.get("ticketId"):
            last_info = LastBranchInfo(
                branch=last.get("branch", ""),
                ticket_id=last["ticketId"],
                project_key=last.get("projectKey", ""),
            )
        return cls(
            auto_start=bool(data.get("autoStart", True)),
            auto_log=bool(data.get("autoLog", True)),
            last_branch_info=last_info,
        )
