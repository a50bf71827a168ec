"""Workspace context detection and path resolution."""

import hashlib
from pathlib import Path
from typing import Optional, Sequence


class WorkspaceContext:
    """Describes the workspace whose repositories are watched.

    Attributes:
        cwd: Current working directory (invocation location)
        roots: Workspace folders to scan for repositories
        workspace_key: Stable identifier used for persisted per-workspace state
    """

    def __init__(self, roots: Optional[Sequence[Path]] = None, cwd: Optional[Path] = None):
        """Initialize context from explicit roots or the enclosing repository.

        Args:
            roots: Workspace folders; defaults to the project root found from cwd
            cwd: Working directory to start detection from (default: Path.cwd())
        """
        self.cwd = cwd or Path.cwd()
        if roots:
            self.roots = [self.resolve_path(str(root)) for root in roots]
        else:
            self.roots = [self._find_project_root()]
        self.workspace_key = self._compute_key()

    def _find_project_root(self) -> Path:
        """Walk up directory tree to find the repository root containing .git.

        Returns:
            Path to project root, or self.cwd if no marker found
        """
        current = self.cwd.resolve()
        while current != current.parent:
            if (current / ".git").exists():
                return current
            current = current.parent
        return self.cwd.resolve()

    def _compute_key(self) -> str:
        joined = "\n".join(sorted(str(root) for root in self.roots))
        digest = hashlib.sha1(joined.encode("utf-8")).hexdigest()[:12]
        return f"{self.roots[0].name}-{digest}"

    def resolve_path(self, path: str) -> Path:
        """Convert user-provided path to absolute path relative to invocation directory.

        Args:
            path: User-provided path (absolute or relative)

        Returns:
            Absolute resolved path
        """
        resolved = Path(path).expanduser()

        if resolved.is_absolute():
            return resolved.resolve()

        # Relative to invocation directory
        return (self.cwd / resolved).resolve()
