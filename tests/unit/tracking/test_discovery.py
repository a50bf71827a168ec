"""Unit tests for Productive project and service discovery chains."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gittimer.core.config import ProductiveSettings
from gittimer.tracking.discovery import (
    DiscoveryContext,
    discover_project,
    discover_service,
    service_strategies,
)
from gittimer.tracking.errors import AuthenticationError, NetworkError, ServiceDiscoveryError
from gittimer.tracking.models import Confidence
from gittimer.tracking.productive_client import ProductiveProject, ProductiveService

PROJECTS = [
    ProductiveProject("1", "Website Redesign"),
    ProductiveProject("2", "PROJ Platform"),
    ProductiveProject("3", "Client Mobile"),
]


def make_context(
    project_key="PROJ",
    projects=None,
    services=None,
    settings=None,
    person_history=None,
    project_history=None,
    project_id=None,
) -> DiscoveryContext:
    client = MagicMock()
    client.list_projects = AsyncMock(return_value=PROJECTS if projects is None else projects)
    client.list_services = AsyncMock(return_value=services or [])
    client.get_service = AsyncMock()

    async def recent_services(person_id=None, project_id=None):
        if person_id:
            return person_history or []
        return project_history or []

    client.recent_services = AsyncMock(side_effect=recent_services)
    return DiscoveryContext(
        client=client,
        settings=settings or ProductiveSettings(),
        ticket_id=f"{project_key}-1",
        project_key=project_key,
        person_id="77",
        project_id=project_id,
    )


class TestProjectDiscovery:
    """Test the project strategy chain."""

    @pytest.mark.asyncio
    async def test_configured_mapping_first(self):
        """Test explicit mappings win without listing projects."""
        context = make_context(settings=ProductiveSettings(project_mapping={"PROJ": "900"}))

        result = await discover_project(context)

        assert result.id == "900"
        assert result.confidence == Confidence.HIGH
        assert result.source == "configured-mapping"
        assert context.project_id == "900"
        context.client.list_projects.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_first_word_match(self):
        """Test a project whose first word is the key."""
        result = await discover_project(make_context("PROJ"))

        assert result.id == "2"
        assert result.confidence == Confidence.HIGH
        assert result.source == "name-match"

    @pytest.mark.asyncio
    async def test_exact_name_match(self):
        """Test a project named exactly like the key."""
        projects = [ProductiveProject("5", "Other"), ProductiveProject("6", "ops")]

        result = await discover_project(make_context("OPS", projects=projects))

        assert result.id == "6"
        assert result.source == "name-match"

    @pytest.mark.asyncio
    async def test_substring_match(self):
        """Test the key contained in a project name."""
        result = await discover_project(make_context("PLAT"))

        assert result.id == "2"
        assert result.confidence == Confidence.MEDIUM
        assert result.source == "substring-match"

    @pytest.mark.asyncio
    async def test_token_overlap(self):
        """Test word overlap between key and project name."""
        result = await discover_project(make_context("MOBILEAPP"))

        assert result.id == "3"
        assert result.confidence == Confidence.MEDIUM
        assert result.source == "token-overlap"

    @pytest.mark.asyncio
    async def test_default_project_before_first_available(self):
        """Test the configured default project is used when nothing matches."""
        context = make_context("ZZZ", settings=ProductiveSettings(default_project_id="99"))

        result = await discover_project(context)

        assert result.id == "99"
        assert result.source == "default-project"

    @pytest.mark.asyncio
    async def test_first_available_project(self):
        """Test the last resort is the first listed project."""
        result = await discover_project(make_context("ZZZ"))

        assert result.id == "1"
        assert result.confidence == Confidence.LOW

    @pytest.mark.asyncio
    async def test_no_projects(self):
        """Test an empty organization raises ServiceDiscoveryError."""
        with pytest.raises(ServiceDiscoveryError):
            await discover_project(make_context("ZZZ", projects=[]))

    @pytest.mark.asyncio
    async def test_network_error_moves_on(self):
        """Test a failing strategy is skipped."""
        context = make_context("ZZZ", settings=ProductiveSettings(default_project_id="7"))
        context.client.list_projects = AsyncMock(side_effect=NetworkError("down"))

        result = await discover_project(context)

        assert result.id == "7"

    @pytest.mark.asyncio
    async def test_authentication_error_propagates(self):
        """Test rejected credentials abort the chain."""
        context = make_context("ZZZ", settings=ProductiveSettings(default_project_id="7"))
        context.client.list_projects = AsyncMock(side_effect=AuthenticationError("401"))

        with pytest.raises(AuthenticationError):
            await discover_project(context)

    @pytest.mark.asyncio
    async def test_projects_listed_once(self):
        """Test the project listing is cached across strategies."""
        context = make_context("ZZZ")

        await discover_project(context)

        context.client.list_projects.assert_awaited_once()


class TestServiceDiscovery:
    """Test the service strategy chain."""

    @pytest.mark.asyncio
    async def test_configured_service_verified(self):
        """Test the configured default service is fetched and used."""
        context = make_context(settings=ProductiveSettings(default_service_id="s9"))
        context.client.get_service = AsyncMock(return_value=ProductiveService("s9", "Dev"))

        result = await discover_service(context)

        assert result.id == "s9"
        assert result.confidence == Confidence.HIGH
        context.client.get_service.assert_awaited_once_with("s9")
        context.client.recent_services.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_history_service_is_high(self):
        """Test one distinct service in the person's history on the project."""
        dev = ProductiveService("s1", "Development")
        context = make_context(person_history=[dev, dev], project_id="2")

        result = await discover_service(context)

        assert result.id == "s1"
        assert result.confidence == Confidence.HIGH
        assert result.source == "person-history"
        context.client.recent_services.assert_any_await(person_id="77", project_id="2")

    @pytest.mark.asyncio
    async def test_most_frequent_history_service(self):
        """Test the most frequent service wins with MEDIUM confidence."""
        dev = ProductiveService("s1", "Development")
        design = ProductiveService("s2", "Design")
        context = make_context(person_history=[dev, design, design], project_id="2")

        result = await discover_service(context)

        assert result.id == "s2"
        assert result.confidence == Confidence.MEDIUM
        context.client.recent_services.assert_any_await(person_id="77", project_id="2")

    @pytest.mark.asyncio
    async def test_person_history_needs_project(self):
        """Test history across other projects is never consulted."""
        dev = ProductiveService("s1", "Development")
        context = make_context(person_history=[dev], services=[ProductiveService("s4", "General")])

        result = await discover_service(context)

        assert result.source == "any-available"
        context.client.recent_services.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_project_history(self):
        """Test project history is used when the person has none."""
        context = make_context(project_history=[ProductiveService("s3", "QA")], project_id="2")

        result = await discover_service(context)

        assert result.id == "s3"
        assert result.source == "project-history"
        context.client.recent_services.assert_any_await(project_id="2")

    @pytest.mark.asyncio
    async def test_any_available_fallback(self):
        """Test the LOW confidence fallback."""
        context = make_context(services=[ProductiveService("s4", "General")])

        result = await discover_service(context)

        assert result.id == "s4"
        assert result.confidence == Confidence.LOW

    @pytest.mark.asyncio
    async def test_fallback_disabled(self):
        """Test disabling the fallback removes the last-resort strategy."""
        settings = ProductiveSettings(service_fallback_enabled=False)
        context = make_context(services=[ProductiveService("s4", "General")], settings=settings)

        with pytest.raises(ServiceDiscoveryError):
            await discover_service(context)

        context.client.list_services.assert_not_awaited()

    def test_strategy_list_respects_fallback_setting(self):
        """Test the chain composition."""
        enabled = [s.name for s in service_strategies(ProductiveSettings())]
        disabled = [s.name for s in service_strategies(ProductiveSettings(service_fallback_enabled=False))]

        assert enabled == ["configured-service", "person-history", "project-history", "any-available"]
        assert disabled == ["configured-service", "person-history", "project-history"]
