"""Discovery strategy protocol and chains for Productive project and service lookup.

A Jira ticket carries no Productive ids, so the secondary logger has to
decide which project and service a time entry belongs to. Each decision is
made by an ordered chain of strategies; the first strategy returning a
Discovery wins and the chain stops.

How to implement a new strategy:
--------------------------------
1. Create a class with ``name`` and ``confidence`` attributes
2. Implement ``async discover(context)``
3. Return a Discovery on a match, or None to let the next strategy try
4. Let AuthenticationError propagate; other tracker errors are logged by the
   chain runner and treated as "no match"

Example:
--------
    class PinnedProjectStrategy:
        name = "pinned"
        confidence = Confidence.HIGH

        async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
            return Discovery("42", "Internal", self.confidence, self.name)

Confidence is diagnostic only; it is logged and reported but never blocks a
log attempt.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from gittimer.core.config import ProductiveSettings
from gittimer.tracking.errors import NetworkError, ServiceDiscoveryError, TrackerAPIError
from gittimer.tracking.models import Confidence, Discovery
from gittimer.tracking.productive_client import (
    ProductiveClient,
    ProductiveProject,
    ProductiveService,
)

logger = logging.getLogger(__name__)

_WORD_SPLIT = re.compile(r"[-_\s]+")


class DiscoveryStrategy(Protocol):
    """Protocol for one step of a project or service discovery chain."""

    name: str
    confidence: Confidence

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        """Return a match, or None to defer to the next strategy.

        Args:
            context: Discovery context with the client, settings and the
                ids resolved so far

        Raises:
            AuthenticationError: Credentials were rejected; aborts the chain
        """
        ...


@dataclass
class DiscoveryContext:
    """Context object providing strategies with the client and lookup inputs.

    Project and service listings are fetched at most once per context.
    """

    client: ProductiveClient
    settings: ProductiveSettings
    ticket_id: str
    project_key: str
    person_id: str
    project_id: Optional[str] = None
    _projects: Optional[list[ProductiveProject]] = field(default=None, repr=False)
    _services: Optional[list[ProductiveService]] = field(default=None, repr=False)

    async def projects(self) -> list[ProductiveProject]:
        if self._projects is None:
            self._projects = await self.client.list_projects()
            logger.debug(f"Found {len(self._projects)} Productive projects")
        return self._projects

    async def services(self) -> list[ProductiveService]:
        if self._services is None:
            self._services = await self.client.list_services()
            logger.debug(f"Found {len(self._services)} Productive services")
        return self._services


def _words(text: str) -> list[str]:
    return [word for word in _WORD_SPLIT.split(text.lower()) if len(word) > 1]


class ConfiguredProjectMapping:
    """Explicit ``[productive.project_mapping]`` entry for the Jira project key."""

    name = "configured-mapping"
    confidence = Confidence.HIGH

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        project_id = context.settings.project_mapping.get(context.project_key.upper())
        if not project_id:
            return None
        return Discovery(project_id, f"{context.project_key} (mapped)", self.confidence, self.name)


class ProjectNameMatch:
    """Project named exactly like the key, or whose first word is the key."""

    name = "name-match"
    confidence = Confidence.HIGH

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        key = context.project_key.lower()
        for project in await context.projects():
            project_name = project.name.lower()
            first_word = project_name.split(" ")[0]
            if project_name == key or (len(first_word) > 1 and first_word == key):
                return Discovery(project.id, project.name, self.confidence, self.name)
        return None


class ProjectSubstringMatch:
    """Key contained in the project name, or the name's first word in the key."""

    name = "substring-match"
    confidence = Confidence.MEDIUM

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        key = context.project_key.lower()
        if not key:
            return None
        for project in await context.projects():
            project_name = project.name.lower()
            first_word = project_name.split(" ")[0]
            if key in project_name or (len(first_word) > 1 and first_word in key):
                return Discovery(project.id, project.name, self.confidence, self.name)
        return None


class ProjectTokenOverlap:
    """Any word of the key overlapping any word of the project name."""

    name = "token-overlap"
    confidence = Confidence.MEDIUM

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        key_words = _words(context.project_key)
        if not key_words:
            return None
        for project in await context.projects():
            name_words = _words(project.name)
            if any(
                key_word in name_word or name_word in key_word
                for key_word in key_words
                for name_word in name_words
            ):
                return Discovery(project.id, project.name, self.confidence, self.name)
        return None


class DefaultProject:
    """Configured ``default_project_id``."""

    name = "default-project"
    confidence = Confidence.MEDIUM

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        project_id = context.settings.default_project_id
        if not project_id:
            return None
        return Discovery(project_id, "default project", self.confidence, self.name)


class FirstAvailableProject:
    name = "first-available"
    confidence = Confidence.LOW

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        projects = await context.projects()
        if not projects:
            return None
        project = projects[0]
        logger.warning(
            f"No Productive project matches {context.project_key}; "
            f"falling back to {project.name}"
        )
        return Discovery(project.id, project.name, self.confidence, self.name)


class ConfiguredService:
    """Configured ``default_service_id``, verified to exist."""

    name = "configured-service"
    confidence = Confidence.HIGH

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        service_id = context.settings.default_service_id
        if not service_id:
            return None
        service = await context.client.get_service(service_id)
        return Discovery(service.id, service.name, self.confidence, self.name)


def _rank(services: Sequence[ProductiveService], source: str) -> Optional[Discovery]:
    """Pick the most frequent service; HIGH when history holds only one."""
    if not services:
        return None
    counts = Counter(service.id for service in services)
    service_id, _ = counts.most_common(1)[0]
    service = next(s for s in services if s.id == service_id)
    confidence = Confidence.HIGH if len(counts) == 1 else Confidence.MEDIUM
    return Discovery(service.id, service.name, confidence, source)


class PersonHistoryService:
    """Service the person books most often on the discovered project."""

    name = "person-history"
    confidence = Confidence.MEDIUM

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        if not context.project_id:
            return None
        services = await context.client.recent_services(
            person_id=context.person_id, project_id=context.project_id
        )
        return _rank(services, self.name)


class ProjectHistoryService:
    """Service booked most often on the discovered project."""

    name = "project-history"
    confidence = Confidence.MEDIUM

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        if not context.project_id:
            return None
        services = await context.client.recent_services(project_id=context.project_id)
        return _rank(services, self.name)


class AnyAvailableService:
    name = "any-available"
    confidence = Confidence.LOW

    async def discover(self, context: DiscoveryContext) -> Optional[Discovery]:
        services = await context.services()
        if not services:
            return None
        service = services[0]
        logger.warning(f"No service history for {context.ticket_id}; using {service.name}")
        return Discovery(service.id, service.name, self.confidence, self.name)


def project_strategies() -> list[DiscoveryStrategy]:
    return [
        ConfiguredProjectMapping(),
        ProjectNameMatch(),
        ProjectSubstringMatch(),
        ProjectTokenOverlap(),
        DefaultProject(),
        FirstAvailableProject(),
    ]


def service_strategies(settings: ProductiveSettings) -> list[DiscoveryStrategy]:
    strategies: list[DiscoveryStrategy] = [
        ConfiguredService(),
        PersonHistoryService(),
        ProjectHistoryService(),
    ]
    if settings.service_fallback_enabled:
        strategies.append(AnyAvailableService())
    return strategies


async def run_chain(
    strategies: Sequence[DiscoveryStrategy], context: DiscoveryContext, kind: str
) -> Discovery:
    """Run strategies in order and return the first match.

    Raises:
        ServiceDiscoveryError: If no strategy matched
        AuthenticationError: If Productive rejected the credentials
    """
    for strategy in strategies:
        try:
            result = await strategy.discover(context)
        except (NetworkError, TrackerAPIError, KeyError, ValueError) as e:
            logger.warning(f"{kind.capitalize()} strategy {strategy.name} failed: {e}")
            continue
        if result is not None:
            logger.info(
                f"Productive {kind} for {context.ticket_id}: {result.name} ({result.id}) "
                f"via {result.source}, confidence {result.confidence.value}"
            )
            return result
        logger.debug(f"{kind.capitalize()} strategy {strategy.name} found nothing")

    raise ServiceDiscoveryError(
        f"No Productive {kind} found for {context.ticket_id} ({context.project_key})"
    )


async def discover_project(context: DiscoveryContext) -> Discovery:
    discovery = await run_chain(project_strategies(), context, "project")
    context.project_id = discovery.id
    return discovery


async def discover_service(context: DiscoveryContext) -> Discovery:
    return await run_chain(service_strategies(context.settings), context, "service")
