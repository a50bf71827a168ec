"""XDG-compliant configuration management for gittimer."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None

DEFAULT_PRODUCTIVE_BASE_URL = "https://api.productive.io/api/v2"


@dataclass(frozen=True)
class JiraCredentials:
    """Connection details for the Jira REST API (basic auth)."""

    base_url: str
    email: str
    api_token: str


@dataclass(frozen=True)
class ProductiveCredentials:
    """Connection details for the Productive JSON:API."""

    api_token: str
    organization_id: str
    base_url: str = DEFAULT_PRODUCTIVE_BASE_URL


@dataclass(frozen=True)
class ProductiveSettings:
    """Project/service discovery preferences for the secondary tracker."""

    person_id: Optional[str] = None
    default_project_id: Optional[str] = None
    default_service_id: Optional[str] = None
    project_mapping: dict[str, str] = field(default_factory=dict)
    service_fallback_enabled: bool = True


@dataclass(frozen=True)
class AutomationSettings:
    """Watcher and orchestrator behaviour toggles."""

    enable_auto_start: bool = True
    enable_auto_stop: bool = True
    auto_start_on_branch_switch: bool = True
    auto_stop_on_commit: bool = True
    auto_stop_on_branch_switch: bool = True
    show_notifications: bool = True
    poll_interval: float = 30.0
    debounce: float = 0.3


class Config:
    """Manages gittimer configuration following XDG Base Directory spec.

    Credentials may be overridden by environment variables, which take
    precedence over the TOML file.

    Attributes:
        config_dir: Path to ~/.config/gittimer/
        config_file: Path to ~/.config/gittimer/config.toml
        state_dir: Path to ~/.local/state/gittimer/
    """

    def __init__(self):
        """Initialize config paths using XDG Base Directory specification."""
        # Use XDG_CONFIG_HOME if set, otherwise default to ~/.config
        xdg_config = os.getenv("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
        self.config_dir = Path(xdg_config) / "gittimer"
        self.config_file = self.config_dir / "config.toml"

        xdg_state = os.getenv("XDG_STATE_HOME", os.path.expanduser("~/.local/state"))
        self.state_dir = Path(xdg_state) / "gittimer"

        # Load config if exists
        self._config = self._load() if self.config_file.exists() else {}

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_file.exists()

    def _load(self) -> dict:
        """Load configuration from TOML file."""
        if tomllib is None:
            raise RuntimeError(
                "TOML parser not available.\n"
                "Install tomli for Python < 3.11: pip install tomli"
            )

        try:
            with open(self.config_file, "rb") as f:
                return tomllib.load(f)
        except Exception as e:
            raise RuntimeError(f"Failed to load config: {e}")

    def get(self, key: str, default=None):
        """Get configuration value by key (supports dot notation).

        Args:
            key: Configuration key (e.g., 'jira.base_url')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def _setting(self, env_var: str, key: str) -> str:
        """Environment variable first, then config file, else empty string."""
        value = os.getenv(env_var) or self.get(key) or ""
        return str(value).strip()

    def jira_credentials(self) -> Optional[JiraCredentials]:
        """Return Jira credentials, or None if any part is missing."""
        base_url = self._setting("JIRA_BASE_URL", "jira.base_url").rstrip("/")
        email = self._setting("JIRA_EMAIL", "jira.email")
        api_token = self._setting("JIRA_API_TOKEN", "jira.api_token")
        if not (base_url and email and api_token):
            return None
        return JiraCredentials(base_url=base_url, email=email, api_token=api_token)

    def productive_credentials(self) -> Optional[ProductiveCredentials]:
        """Return Productive credentials, or None when the secondary tracker is off."""
        if not self.get("productive.enabled", True):
            return None
        api_token = self._setting("PRODUCTIVE_API_TOKEN", "productive.api_token")
        organization_id = self._setting(
            "PRODUCTIVE_ORGANIZATION_ID", "productive.organization_id"
        )
        if not (api_token and organization_id):
            return None
        base_url = (
            self._setting("PRODUCTIVE_BASE_URL", "productive.base_url")
            or DEFAULT_PRODUCTIVE_BASE_URL
        )
        return ProductiveCredentials(
            api_token=api_token,
            organization_id=organization_id,
            base_url=base_url.rstrip("/"),
        )

    def productive_settings(self) -> ProductiveSettings:
        mapping = self.get("productive.project_mapping", {}) or {}
        return ProductiveSettings(
            person_id=self._setting("PRODUCTIVE_PERSON_ID", "productive.person_id") or None,
            default_project_id=str(self.get("productive.default_project_id", "")) or None,
            default_service_id=str(self.get("productive.default_service_id", "")) or None,
            project_mapping={str(k).upper(): str(v) for k, v in mapping.items()},
            service_fallback_enabled=bool(
                self.get("productive.service_fallback_enabled", True)
            ),
        )

    def automation_settings(self) -> AutomationSettings:
        defaults = AutomationSettings()
        return AutomationSettings(
            enable_auto_start=bool(
                self.get("automation.enable_auto_start", defaults.enable_auto_start)
            ),
            enable_auto_stop=bool(
                self.get("automation.enable_auto_stop", defaults.enable_auto_stop)
            ),
            auto_start_on_branch_switch=bool(
                self.get(
                    "automation.auto_start_on_branch_switch",
                    defaults.auto_start_on_branch_switch,
                )
            ),
            auto_stop_on_commit=bool(
                self.get("automation.auto_stop_on_commit", defaults.auto_stop_on_commit)
            ),
            auto_stop_on_branch_switch=bool(
                self.get(
                    "automation.auto_stop_on_branch_switch",
                    defaults.auto_stop_on_branch_switch,
                )
            ),
            show_notifications=bool(
                self.get("automation.show_notifications", defaults.show_notifications)
            ),
            poll_interval=float(
                self.get("automation.poll_interval", defaults.poll_interval)
            ),
            debounce=max(
                float(self.get("automation.debounce", defaults.debounce)), 0.3
            ),
        )

    @staticmethod
    def get_default_config() -> str:
        """Return default configuration TOML template."""
        return """# Gittimer Configuration
# Location: ~/.config/gittimer/config.toml
# Follows XDG Base Directory Specification
# Credentials can also be set with environment variables (JIRA_BASE_URL,
# JIRA_EMAIL, JIRA_API_TOKEN, PRODUCTIVE_API_TOKEN, PRODUCTIVE_ORGANIZATION_ID)

[jira]
# Jira Cloud site, e.g. "https://your-org.atlassian.net"
base_url = ""
email = ""
api_token = ""

[productive]
# Mirror Jira worklogs into Productive time entries
enabled = true
base_url = "https://api.productive.io/api/v2"
api_token = ""
organization_id = ""

# Your Productive person id (first active person is used when empty)
# person_id = ""

# Used when no project matches the Jira project key
# default_project_id = ""

# Service to book time against (discovered from history when empty)
# default_service_id = ""

# Fall back to the first available service when nothing else matches
service_fallback_enabled = true

[productive.project_mapping]
# Jira project key = Productive project id
# PROJ = "12345"

[automation]
# Defaults for the per-workspace toggles
enable_auto_start = true
enable_auto_stop = true

# Start the timer when switching to a branch linked to a ticket
auto_start_on_branch_switch = true

# Stop and log time when a commit is detected
auto_stop_on_commit = true

# Stop and log time when leaving the branch
auto_stop_on_branch_switch = true

# Show notifications for automatic actions
show_notifications = true

# Seconds between backstop polls of .git
poll_interval = 30

# Seconds to wait after a .git change before reading it (minimum 0.3)
debounce = 0.3
"""

    def create_default(self) -> Path:
        """Create default configuration file.

        Returns:
            Path to created config file

        Raises:
            FileExistsError: If config already exists
        """
        if self.config_file.exists():
            raise FileExistsError(
                f"Configuration already exists: {self.config_file}\n"
                "Remove it first or use --force to overwrite"
            )

        # Create config directory
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Write default config
        self.config_file.write_text(self.get_default_config())

        return self.config_file

    def create_directories(self):
        """Create additional XDG directories for gittimer."""
        # State dir (persisted workspace settings)
        self.state_dir.mkdir(parents=True, exist_ok=True)

        return {
            "config": self.config_dir,
            "state": self.state_dir,
        }
