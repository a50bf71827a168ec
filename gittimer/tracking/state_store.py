"""Keyed JSON store for per-workspace auto-timer settings."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Optional

from gittimer.tracking.models import AutoTimerSettings

logger = logging.getLogger(__name__)

STATE_FILENAME = "workspace-state.json"
AUTO_TIMER_KEY = "autoTimerState"


class WorkspaceStateStore:
    """Persists one record per workspace and key in a single JSON file.

    Layout::

        {"<workspace_key>": {"autoTimerState": {...}}}
    """

    def __init__(self, state_dir: Path, workspace_key: str):
        self.state_file = Path(state_dir) / STATE_FILENAME
        self.workspace_key = workspace_key

    def _read_all(self) -> dict[str, Any]:
        if not self.state_file.exists():
            return {}
        try:
            with open(self.state_file, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable state file {self.state_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        record = self._read_all().get(self.workspace_key) or {}
        return record.get(key, default)

    def update(self, key: str, value: Any) -> None:
        """Store a value under this workspace, written atomically via temp file + rename."""
        data = self._read_all()
        data.setdefault(self.workspace_key, {})[key] = value

        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=self.state_file.parent,
            delete=False,
            suffix=".json.tmp",
        ) as f:
            json.dump(data, f, indent=2)
            temp_path = f.name

        # Rename to final location (atomic on POSIX)
        Path(temp_path).replace(self.state_file)
        logger.debug(f"State saved to {self.state_file}")

    def load_auto_timer_settings(self) -> Optional[AutoTimerSettings]:
        data = self.get(AUTO_TIMER_KEY)
        if data is None:
            return None
        return AutoTimerSettings.from_dict(data)

    def save_auto_timer_settings(self, settings: AutoTimerSettings) -> None:
        self.update(AUTO_TIMER_KEY, settings.to_dict())
