"""Unit tests for DualDestinationLogger."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from gittimer.core.config import ProductiveSettings
from gittimer.tracking.errors import (
    AuthenticationError,
    NetworkError,
    PartialLogFailure,
    TrackerAPIError,
)
from gittimer.tracking.models import Confidence, LoggedTimeEntry, SecondaryLogResult
from gittimer.tracking.productive_client import (
    ProductivePerson,
    ProductiveProject,
    ProductiveService,
)
from gittimer.tracking.time_logger import DualDestinationLogger, raise_for_partial_failure


def make_jira(**add_worklog_kwargs) -> MagicMock:
    jira = MagicMock()
    jira.credentials.base_url = "https://example.atlassian.net"
    jira.add_worklog = AsyncMock(**(add_worklog_kwargs or {"return_value": {"id": "w1"}}))
    return jira


def make_productive() -> MagicMock:
    productive = MagicMock()
    productive.get_authenticated_person = AsyncMock(return_value=ProductivePerson("77", "Dana"))
    productive.list_projects = AsyncMock(return_value=[ProductiveProject("p2", "PROJ Platform")])
    productive.recent_services = AsyncMock(return_value=[ProductiveService("s1", "Development")])
    productive.list_services = AsyncMock(return_value=[])
    productive.create_time_entry = AsyncMock(return_value={"id": "te-1"})
    return productive


class TestLogToPrimary:
    """Test the Jira leg."""

    @pytest.mark.asyncio
    async def test_creates_worklog(self):
        """Test minutes and description are passed to Jira."""
        jira = make_jira()
        time_logger = DualDestinationLogger(jira)

        result = await time_logger.log_to_primary("PROJ-42", 45, "Add login form")

        assert result == {"id": "w1"}
        jira.add_worklog.assert_awaited_once_with("PROJ-42", 45, "Add login form")

    @pytest.mark.asyncio
    async def test_rejects_zero_minutes(self):
        """Test sub-minute values are never sent."""
        jira = make_jira()

        with pytest.raises(ValueError):
            await DualDestinationLogger(jira).log_to_primary("PROJ-42", 0, "x")

        jira.add_worklog.assert_not_awaited()


class TestLogTime:
    """Test the composite operation."""

    @pytest.mark.asyncio
    async def test_primary_only_when_secondary_not_configured(self):
        """Test Productive is skipped when not configured."""
        time_logger = DualDestinationLogger(make_jira())

        entry = await time_logger.log_time("PROJ-42", "PROJ", 45, "Add login form")

        assert entry.primary_succeeded
        assert not entry.secondary_attempted
        assert entry.secondary_error is None
        assert entry.minutes == 45

    @pytest.mark.asyncio
    async def test_logs_to_both(self):
        """Test a full success with discovered project and service."""
        productive = make_productive()
        time_logger = DualDestinationLogger(
            make_jira(), productive, ProductiveSettings(), today=lambda: date(2024, 3, 9)
        )

        entry = await time_logger.log_time("PROJ-42", "PROJ", 45, "Add login form")

        assert entry.secondary_succeeded
        result = entry.productive_result
        assert result.person_id == "77"
        assert result.project.id == "p2"
        assert result.project.confidence == Confidence.HIGH
        assert result.service.id == "s1"
        assert result.entry_id == "te-1"
        productive.create_time_entry.assert_awaited_once_with(
            person_id="77",
            project_id="p2",
            service_id="s1",
            minutes=45,
            entry_date=date(2024, 3, 9),
            note="Add login form",
            jira_issue_id="PROJ-42",
            jira_organization="https://example.atlassian.net",
        )

    @pytest.mark.asyncio
    async def test_primary_failure_propagates(self):
        """Test a Jira failure aborts before Productive."""
        productive = make_productive()
        time_logger = DualDestinationLogger(
            make_jira(side_effect=NetworkError("down")), productive
        )

        with pytest.raises(NetworkError):
            await time_logger.log_time("PROJ-42", "PROJ", 45, "x")

        productive.get_authenticated_person.assert_not_awaited()
        productive.create_time_entry.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            TrackerAPIError("Productive POST /time_entries failed with 422", status_code=422),
            AuthenticationError("Productive rejected the configured credentials (401)"),
            NetworkError("timeout"),
        ],
    )
    async def test_secondary_failure_is_partial_success(self, error):
        """Test Productive failures are reported, not raised."""
        productive = make_productive()
        productive.create_time_entry = AsyncMock(side_effect=error)
        jira = make_jira()
        time_logger = DualDestinationLogger(jira, productive)

        entry = await time_logger.log_time("PROJ-42", "PROJ", 45, "x")

        assert entry.primary_succeeded
        assert entry.secondary_attempted
        assert not entry.secondary_succeeded
        assert entry.secondary_error == str(error)
        jira.add_worklog.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_discovery_failure_is_partial_success(self):
        """Test an unresolvable service is a partial success."""
        productive = make_productive()
        productive.recent_services = AsyncMock(return_value=[])
        time_logger = DualDestinationLogger(
            make_jira(), productive, ProductiveSettings(service_fallback_enabled=False)
        )

        entry = await time_logger.log_time("PROJ-42", "PROJ", 45, "x")

        assert not entry.secondary_succeeded
        assert "No Productive service" in entry.secondary_error
        productive.create_time_entry.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_configured_person_id_used(self):
        """Test the configured person id is passed through."""
        productive = make_productive()
        time_logger = DualDestinationLogger(
            make_jira(), productive, ProductiveSettings(person_id="77")
        )

        await time_logger.log_time("PROJ-42", "PROJ", 45, "x")

        productive.get_authenticated_person.assert_awaited_once_with("77")



class TestRaiseForPartialFailure:
    """Test raise_for_partial_failure."""

    def test_full_and_primary_only_pass_through(self):
        full = LoggedTimeEntry("PROJ-42", 5, "x", {}, SecondaryLogResult(success=True))
        primary_only = LoggedTimeEntry("PROJ-42", 5, "x", {}, None)

        assert raise_for_partial_failure(full) is full
        assert raise_for_partial_failure(primary_only) is primary_only

    def test_failed_secondary_raises(self):
        """Test the exception carries the entry."""
        entry = LoggedTimeEntry("PROJ-42", 5, "x", {}, SecondaryLogResult(success=False, error="422"))

        with pytest.raises(PartialLogFailure) as exc_info:
            raise_for_partial_failure(entry)

        assert exc_info.value.entry is entry
        assert "in Jira only: 422" in str(exc_info.value)
