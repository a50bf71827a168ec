"""Dual-destination time logging: Jira first, Productive best-effort.

The Jira worklog is authoritative. Productive is only attempted after Jira
succeeded, and a Productive failure never undoes or fails the Jira log; it
is reported as a partial success on the returned LoggedTimeEntry.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Optional

from gittimer.core.config import Config, ProductiveSettings
from gittimer.tracking.discovery import DiscoveryContext, discover_project, discover_service
from gittimer.tracking.errors import AuthenticationError, PartialLogFailure
from gittimer.tracking.jira_client import JiraClient
from gittimer.tracking.models import LoggedTimeEntry, SecondaryLogResult
from gittimer.tracking.productive_client import ProductiveClient

logger = logging.getLogger(__name__)


class DualDestinationLogger:
    """Logs time to Jira and mirrors it into Productive when configured."""

    def __init__(
        self,
        jira: JiraClient,
        productive: Optional[ProductiveClient] = None,
        settings: Optional[ProductiveSettings] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize the logger.

        Args:
            jira: Primary tracker client
            productive: Secondary tracker client; None disables mirroring
            settings: Project/service discovery preferences
            today: Returns the local calendar day used for time entries
        """
        self.jira = jira
        self.productive = productive
        self.settings = settings or ProductiveSettings()
        self._today = today

    @classmethod
    def from_config(cls, config: Config) -> DualDestinationLogger:
        """Build clients from configuration; Productive is optional.

        Raises:
            AuthenticationError: If Jira credentials are not configured
        """
        jira_credentials = config.jira_credentials()
        if jira_credentials is None:
            raise AuthenticationError("Jira credentials are not configured")
        productive_credentials = config.productive_credentials()
        return cls(
            jira=JiraClient(jira_credentials),
            productive=ProductiveClient(productive_credentials) if productive_credentials else None,
            settings=config.productive_settings(),
        )

    async def close(self) -> None:
        await self.jira.close()
        if self.productive is not None:
            await self.productive.close()

    @property
    def secondary_configured(self) -> bool:
        return self.productive is not None

    async def log_to_primary(self, ticket_id: str, minutes: int, description: str) -> dict[str, Any]:
        """Create the Jira worklog. Any failure propagates.

        Raises:
            ValueError: If minutes is less than one
            GittimerError: If Jira rejects or cannot receive the worklog
        """
        if minutes < 1:
            raise ValueError(f"Cannot log {minutes} minutes")
        return await self.jira.add_worklog(ticket_id, minutes, description)

    async def log_to_secondary(
        self, ticket_id: str, project_key: str, minutes: int, description: str
    ) -> SecondaryLogResult:
        """Resolve person, project and service, then create the Productive entry.

        Raises:
            ServiceDiscoveryError: If no project or service could be found
            GittimerError: If Productive fails or rejects the credentials
        """
        if self.productive is None:
            raise RuntimeError("Productive is not configured")

        person = await self.productive.get_authenticated_person(self.settings.person_id)
        context = DiscoveryContext(
            client=self.productive,
            settings=self.settings,
            ticket_id=ticket_id,
            project_key=project_key,
            person_id=person.id,
        )
        project = await discover_project(context)
        service = await discover_service(context)

        entry = await self.productive.create_time_entry(
            person_id=person.id,
            project_id=project.id,
            service_id=service.id,
            minutes=minutes,
            entry_date=self._today(),
            note=description,
            jira_issue_id=ticket_id,
            jira_organization=self.jira.credentials.base_url,
        )
        return SecondaryLogResult(
            success=True,
            person_id=person.id,
            project=project,
            service=service,
            entry_id=str(entry.get("id")) if entry.get("id") is not None else None,
        )

    async def log_time(
        self, ticket_id: str, project_key: str, minutes: int, description: str
    ) -> LoggedTimeEntry:
        """Log to Jira, then to Productive if configured.

        Returns:
            LoggedTimeEntry; secondary failures are recorded on it, not raised

        Raises:
            GittimerError: If the Jira worklog failed (Productive not attempted)
        """
        jira_result = await self.log_to_primary(ticket_id, minutes, description)
        logger.info(f"Logged {minutes}m to {ticket_id} in Jira")

        if not self.secondary_configured:
            logger.debug("Productive not configured, skipping secondary log")
            return LoggedTimeEntry(ticket_id, minutes, description, jira_result, None)

        try:
            secondary = await self.log_to_secondary(ticket_id, project_key, minutes, description)
        except Exception as e:
            logger.error(f"Productive logging failed for {ticket_id}: {e}")
            secondary = SecondaryLogResult(success=False, error=str(e) or type(e).__name__)
        else:
            logger.info(
                f"Logged {minutes}m to {ticket_id} in Productive "
                f"(project {secondary.project.name}, service {secondary.service.name})"
            )

        return LoggedTimeEntry(ticket_id, minutes, description, jira_result, secondary)


def raise_for_partial_failure(entry: LoggedTimeEntry) -> LoggedTimeEntry:
    """Return the entry unchanged unless its Productive mirror was attempted and failed.

    Raises:
        PartialLogFailure: If only the Jira worklog was created
    """
    if entry.secondary_attempted and not entry.secondary_succeeded:
        raise PartialLogFailure(entry)
    return entry
