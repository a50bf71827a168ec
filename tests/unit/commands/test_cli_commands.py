"""Unit tests for the gittimer CLI commands."""

import pytest
from typer.testing import CliRunner

from gittimer.app import app

ENV_VARS = [
    "JIRA_BASE_URL",
    "JIRA_EMAIL",
    "JIRA_API_TOKEN",
    "PRODUCTIVE_API_TOKEN",
    "PRODUCTIVE_ORGANIZATION_ID",
]

runner = CliRunner()


@pytest.fixture
def xdg(tmp_path, monkeypatch):
    """Isolate configuration and state under tmp_path without credentials."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


class TestResolveCommand:
    """Test the resolve command."""

    def test_offline_extracts_key(self, xdg):
        result = runner.invoke(app, ["resolve", "feature/PROJ-42-add-login", "--offline"])
        assert result.exit_code == 0
        assert "PROJ-42" in result.output

    def test_branch_without_key(self, xdg):
        """Test a branch with no ticket key exits with an error."""
        result = runner.invoke(app, ["resolve", "main"])
        assert result.exit_code == 1
        assert "No ticket key found" in result.output

    def test_missing_credentials(self, xdg):
        """Test online lookup without credentials reports the problem."""
        result = runner.invoke(app, ["resolve", "feature/PROJ-42"])
        assert result.exit_code == 1
        assert "credentials" in result.output


class TestInitCommand:
    """Test the init command."""

    def test_creates_config(self, xdg):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert (xdg / "config" / "gittimer" / "config.toml").exists()
        assert (xdg / "state" / "gittimer").is_dir()

    def test_existing_config_requires_force(self, xdg):
        """Test a second init refuses unless --force is given."""
        runner.invoke(app, ["init"])

        assert runner.invoke(app, ["init"]).exit_code == 1
        assert runner.invoke(app, ["init", "--force"]).exit_code == 0

    def test_show_does_not_write(self, xdg):
        result = runner.invoke(app, ["init", "--show"])

        assert result.exit_code == 0
        assert not (xdg / "config" / "gittimer" / "config.toml").exists()


class TestLogCommand:
    """Test the log command."""

    def test_invalid_duration(self, xdg):
        result = runner.invoke(app, ["log", "PROJ-42", "soon"])
        assert result.exit_code == 1
        assert "Invalid duration" in result.output

    def test_missing_credentials(self, xdg):
        result = runner.invoke(app, ["log", "PROJ-42", "30m"])
        assert result.exit_code == 1
        assert "Jira credentials" in result.output


class TestStatusCommand:
    """Test the status command."""

    def test_offline_status(self, xdg):
        """Test repositories are listed without querying Jira."""
        repo = xdg / "workspace" / "app"
        (repo / ".git" / "refs" / "heads").mkdir(parents=True)
        (repo / ".git" / "HEAD").write_text("ref: refs/heads/develop\n")
        (repo / ".git" / "refs" / "heads" / "develop").write_text("a" * 40 + "\n")

        result = runner.invoke(app, ["status", "--offline", "--path", str(xdg / "workspace")])

        assert result.exit_code == 0
        assert "No saved settings" in result.output

    def test_no_repositories(self, xdg):
        empty = xdg / "empty"
        empty.mkdir()

        result = runner.invoke(app, ["status", "--offline", "--path", str(empty)])

        assert result.exit_code == 1
        assert "No git repositories" in result.output
