"""Read-only git plumbing used when the .git files alone are not enough.

The watcher reads HEAD, refs and loose objects directly. Packed objects
cannot be inflated from a single file, so commit messages for those fall
back to the git executable through this wrapper.
"""

from __future__ import annotations

import subprocess
from typing import List, Optional


class GitError(Exception):
    """Exception raised when git operations fail."""

    pass


class GitOperations:
    """Wrapper for read-only git subprocess commands with proper error handling."""

    def __init__(self, repo_path: Optional[str] = None, timeout: float = 10.0):
        """Initialize GitOperations.

        Args:
            repo_path: Path to git repository. If None, uses current directory.
            timeout: Seconds before a git command is abandoned.
        """
        self.repo_path = repo_path
        self.timeout = timeout

    def _run_git_command(
        self, args: List[str], check: bool = True
    ) -> subprocess.CompletedProcess:
        """Run a git command with proper error handling.

        Args:
            args: Git command arguments (e.g., ["git", "log"])
            check: Whether to raise exception on non-zero exit code

        Returns:
            CompletedProcess object with command results

        Raises:
            GitError: If command fails and check=True
        """
        try:
            result = subprocess.run(
                args,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise GitError(f"Git executable not found: {e}")
        except subprocess.TimeoutExpired:
            raise GitError(f"Git command timed out: {' '.join(args)}")
        except Exception as e:
            raise GitError(f"Unexpected error running git command: {e}")

        if check and result.returncode != 0:
            raise GitError(
                f"Git command failed: {' '.join(args)}\n"
                f"Exit code: {result.returncode}\n"
                f"stderr: {result.stderr}"
            )
        return result

    def get_commit_message(self, commit: str) -> str:
        """Return the full message of a commit.

        Raises:
            GitError: If the commit cannot be read
        """
        result = self._run_git_command(["git", "log", "-1", "--format=%B", commit])
        return result.stdout.strip()
