"""Exception taxonomy for tracker access, discovery and timer transitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from gittimer.tracking.models import LoggedTimeEntry


class GittimerError(Exception):
    """Base class for all gittimer errors."""

    pass


class AuthenticationError(GittimerError):
    """Credentials are missing or rejected by a tracker (HTTP 401)."""

    pass


class TicketNotFoundError(GittimerError):
    """The ticket key does not exist in the issue tracker (HTTP 404)."""

    def __init__(self, ticket_key: str):
        self.ticket_key = ticket_key
        super().__init__(f"Ticket {ticket_key} not found in Jira")


class NetworkError(GittimerError):
    """A tracker could not be reached."""

    pass


class TrackerAPIError(GittimerError):
    """A tracker answered with an unexpected error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ServiceDiscoveryError(GittimerError):
    """No secondary-tracker project or service could be resolved."""

    pass


class PartialLogFailure(GittimerError):
    """Primary worklog succeeded but the secondary entry failed."""

    def __init__(self, entry: "LoggedTimeEntry"):
        self.entry = entry
        super().__init__(
            f"Logged {entry.minutes}m to {entry.ticket_id} in Jira only: "
            f"{entry.secondary_error}"
        )


class NoTicketSelectedError(GittimerError):
    """A timer start was requested without a current ticket."""

    def __init__(self):
        super().__init__("No ticket selected for time tracking")


class StateTransitionError(GittimerError):
    """Exception raised when a timer state transition is not allowed."""

    pass
