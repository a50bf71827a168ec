"""Branch name to Jira ticket resolution.

Ticket keys follow ``[A-Z0-9]+-\\d+`` so project keys may contain digits
(``CLUB59-234``). Branch prefixes are matched case-insensitively, the key
itself is not.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from gittimer.tracking.errors import (
    NetworkError,
    TicketNotFoundError,
    TrackerAPIError,
)
from gittimer.tracking.jira_client import JiraClient
from gittimer.tracking.models import TicketInfo

logger = logging.getLogger(__name__)

TICKET_KEY = r"([A-Z0-9]+-\d+)"

# Ordered: the first match wins, so specific prefixes come before generic forms
BRANCH_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("feature", re.compile(rf"(?:^|/)(?i:feature|bugfix|hotfix|release)/{TICKET_KEY}")),
    ("branch", re.compile(rf"(?:^|/)(?i:branch|b)/{TICKET_KEY}")),
    ("conventional", re.compile(rf"(?:^|/)(?i:feat|fix|chore|task|story|bug)/{TICKET_KEY}")),
    ("any-prefix", re.compile(rf"[A-Za-z0-9_.-]+/{TICKET_KEY}")),
    ("bare", re.compile(rf"^{TICKET_KEY}")),
    ("anywhere", re.compile(TICKET_KEY)),
]


def extract_ticket_key(branch_name: str) -> Optional[str]:
    """Return the ticket key embedded in a branch name, or None.

    Examples:
        >>> extract_ticket_key("feature/PROJ-42-add-login")
        'PROJ-42'
        >>> extract_ticket_key("OPS-7-quick-note")
        'OPS-7'
        >>> extract_ticket_key("main") is None
        True
    """
    if not branch_name:
        return None
    for name, pattern in BRANCH_PATTERNS:
        match = pattern.search(branch_name)
        if match:
            logger.debug(f"Branch '{branch_name}' matched {name} pattern: {match.group(1)}")
            return match.group(1)
    logger.debug(f"No ticket key in branch '{branch_name}'")
    return None


class BranchTicketResolver:
    """Resolves branch names to ticket metadata through Jira."""

    def __init__(self, jira: JiraClient):
        self.jira = jira

    @staticmethod
    def extract_ticket_key(branch_name: str) -> Optional[str]:
        return extract_ticket_key(branch_name)

    async def resolve_ticket(self, ticket_key: str) -> TicketInfo:
        """Fetch canonical metadata for a ticket key.

        Raises:
            TicketNotFoundError: Jira has no such issue
            AuthenticationError: Jira rejected the credentials
            NetworkError: Jira could not be reached
            TrackerAPIError: Jira returned another error status
        """
        return await self.jira.get_issue(ticket_key)

    async def find_linked_ticket(self, branch_name: str) -> Optional[TicketInfo]:
        """Extract and resolve the ticket for a branch.

        Returns None when the branch carries no key or the lookup fails for a
        non-fatal reason. AuthenticationError propagates to the caller.
        """
        ticket_key = extract_ticket_key(branch_name)
        if ticket_key is None:
            return None

        try:
            ticket = await self.resolve_ticket(ticket_key)
        except TicketNotFoundError:
            logger.warning(f"Ticket {ticket_key} from branch '{branch_name}' not found in Jira")
            return None
        except (NetworkError, TrackerAPIError) as e:
            logger.warning(f"Could not resolve {ticket_key}: {e}")
            return None

        logger.info(f"Branch '{branch_name}' linked to {ticket.ticket_id} ({ticket.summary})")
        return ticket
