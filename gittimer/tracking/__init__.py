"""Git watching, ticket resolution, timing and dual-destination time logging."""

from gittimer.tracking.git_watcher import RepositoryStateWatcher
from gittimer.tracking.jira_client import JiraClient
from gittimer.tracking.orchestrator import AutomationOrchestrator
from gittimer.tracking.productive_client import ProductiveClient
from gittimer.tracking.state_store import WorkspaceStateStore
from gittimer.tracking.ticket_resolver import BranchTicketResolver, extract_ticket_key
from gittimer.tracking.time_logger import DualDestinationLogger
from gittimer.tracking.timer import TimerStateMachine

__all__ = [
    "AutomationOrchestrator",
    "BranchTicketResolver",
    "DualDestinationLogger",
    "JiraClient",
    "ProductiveClient",
    "RepositoryStateWatcher",
    "TimerStateMachine",
    "WorkspaceStateStore",
    "extract_ticket_key",
]
