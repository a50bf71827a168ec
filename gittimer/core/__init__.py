"""Core configuration, workspace context and logging setup."""

from gittimer.core.config import (
    AutomationSettings,
    Config,
    JiraCredentials,
    ProductiveCredentials,
    ProductiveSettings,
)
from gittimer.core.context import WorkspaceContext
from gittimer.core.logging import configure_logging

__all__ = [
    "AutomationSettings",
    "Config",
    "JiraCredentials",
    "ProductiveCredentials",
    "ProductiveSettings",
    "WorkspaceContext",
    "configure_logging",
]
