"""Repository state watcher for branch switches and new commits.

This module provides the RepositoryStateWatcher class that monitors one or
more repository roots by reading ``.git`` files directly. Two sources feed
it: raw change notifications (a stat-based monitor on ``HEAD``,
``refs/heads/**`` and ``packed-refs``, or callers invoking ``notify()``) and
a periodic poll that acts as a backstop when notifications are dropped.

Both sources go through the same ``reconcile()`` pass, which diffs a fresh
snapshot against the last observed values and is the only place those
values are written. Repeated notifications for one logical change therefore
produce at most one event.
"""

from __future__ import annotations

import asyncio
import logging
import time
import zlib
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from gittimer.tracking.events import EventChannel, GitEvent
from gittimer.tracking.git_operations import GitError, GitOperations
from gittimer.tracking.models import (
    DETACHED_BRANCH,
    UNKNOWN_BRANCH,
    BranchChangeEvent,
    BranchInfo,
    CommitEvent,
    GitSnapshot,
    RepositoryState,
)

logger = logging.getLogger(__name__)

HEAD_REF_PREFIX = "ref: refs/heads/"

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_DEBOUNCE = 0.3
DEFAULT_MONITOR_INTERVAL = 1.0

PathLike = Union[str, Path]
Fingerprint = dict[Path, tuple[int, int]]


def resolve_git_dir(repo_path: PathLike) -> Optional[Path]:
    """Return the git directory of a repository root.

    Follows ``gitdir:`` pointer files used by worktrees and submodules.
    Returns None if the root is not a git repository.
    """
    dot_git = Path(repo_path) / ".git"
    if dot_git.is_dir():
        return dot_git
    if dot_git.is_file():
        try:
            content = dot_git.read_text().strip()
        except OSError as e:
            logger.warning(f"Cannot read {dot_git}: {e}")
            return None
        if content.startswith("gitdir:"):
            target = Path(content[len("gitdir:"):].strip())
            if not target.is_absolute():
                target = (Path(repo_path) / target).resolve()
            return target
    return None


def common_dir(git_dir: Path) -> Path:
    """Directory holding refs and objects (differs from git_dir for worktrees)."""
    pointer = git_dir / "commondir"
    try:
        relative = pointer.read_text().strip()
    except OSError:
        return git_dir
    target = Path(relative)
    return target if target.is_absolute() else (git_dir / target).resolve()


def read_branch(git_dir: Path) -> str:
    """Read the current branch name from HEAD.

    Returns ``"detached"`` when HEAD holds a commit hash and ``"unknown"``
    when HEAD cannot be read. Never raises.
    """
    try:
        head = (git_dir / "HEAD").read_text().strip()
    except OSError as e:
        logger.debug(f"Error reading HEAD in {git_dir}: {e}")
        return UNKNOWN_BRANCH
    return _branch_from_head(head)


def _branch_from_head(head: str) -> str:
    if head.startswith(HEAD_REF_PREFIX):
        return head[len(HEAD_REF_PREFIX):]
    if not head:
        return UNKNOWN_BRANCH
    return DETACHED_BRANCH


def read_packed_ref(git_dir: Path, ref: str) -> Optional[str]:
    """Look a ref up in ``packed-refs``."""
    try:
        lines = (common_dir(git_dir) / "packed-refs").read_text().splitlines()
    except OSError:
        return None
    for line in lines:
        if not line or line.startswith(("#", "^")):
            continue
        parts = line.split(" ", 1)
        if len(parts) == 2 and parts[1].strip() == ref:
            return parts[0].strip()
    return None


def read_branch_commit(git_dir: Path, branch: str) -> str:
    """Read the tip commit of a local branch, or an empty string."""
    ref = f"refs/heads/{branch}"
    try:
        return (common_dir(git_dir) / ref).read_text().strip()
    except OSError:
        return read_packed_ref(git_dir, ref) or ""


def read_snapshot(git_dir: Path) -> GitSnapshot:
    """Read branch and commit from a single HEAD read."""
    try:
        head = (git_dir / "HEAD").read_text().strip()
    except OSError as e:
        logger.debug(f"Error reading HEAD in {git_dir}: {e}")
        return GitSnapshot(branch=UNKNOWN_BRANCH, commit_hash="")

    branch = _branch_from_head(head)
    if head.startswith(HEAD_REF_PREFIX):
        commit = read_branch_commit(git_dir, branch)
    else:
        commit = head
    return GitSnapshot(branch=branch, commit_hash=commit)


def read_commit_message(git_dir: Path, commit_hash: str, repo_path: Optional[Path] = None) -> str:
    """Extract a commit message from its loose object, falling back to ``git log``."""
    fallback = f"Commit {commit_hash[:8]}"
    if len(commit_hash) < 3:
        return fallback

    object_path = common_dir(git_dir) / "objects" / commit_hash[:2] / commit_hash[2:]
    try:
        raw = zlib.decompress(object_path.read_bytes())
    except FileNotFoundError:
        raw = None
    except (OSError, zlib.error) as e:
        logger.debug(f"Cannot inflate {object_path}: {e}")
        raw = None

    if raw is not None:
        header, _, body = raw.partition(b"\x00")
        if header.startswith(b"commit"):
            text = body.decode("utf-8", errors="replace")
            _, _, message = text.partition("\n\n")
            return message.strip() or fallback

    # Packed object: ask git
    try:
        message = GitOperations(str(repo_path or git_dir.parent)).get_commit_message(commit_hash)
    except GitError as e:
        logger.debug(f"git log failed for {commit_hash[:8]}: {e}")
        return fallback
    return message or fallback


def read_remote_url(git_dir: Path) -> Optional[str]:
    """Return the ``origin`` URL (or the first remote's URL) from ``.git/config``."""
    try:
        lines = (common_dir(git_dir) / "config").read_text().splitlines()
    except OSError:
        return None

    urls: dict[str, str] = {}
    remote: Optional[str] = None
    for raw_line in lines:
        line = raw_line.strip()
        if line.startswith("["):
            remote = None
            if line.startswith("[remote ") and '"' in line:
                remote = line.split('"')[1]
            continue
        if remote and "=" in line:
            key, value = line.split("=", 1)
            if key.strip() == "url":
                urls.setdefault(remote, value.strip())

    if "origin" in urls:
        return urls["origin"]
    return next(iter(urls.values()), None)


class RepositoryStateWatcher:
    """Detect branch switches and new commits for monitored repository roots.

    Events are published on ``self.events``. Every method except
    ``discover_repositories``, ``get_current_branch_info`` and ``dispose``
    must be called from the event loop.
    """

    def __init__(
        self,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        debounce: float = DEFAULT_DEBOUNCE,
        monitor_interval: float = DEFAULT_MONITOR_INTERVAL,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the watcher.

        Args:
            poll_interval: Seconds between backstop polls of each repository
            debounce: Seconds to wait after a raw notification before reading
                HEAD, coalescing bursts of writes into one reconciliation
            monitor_interval: Seconds between stat checks of the watched
                ``.git`` files; 0 disables the built-in monitor
            clock: Wall clock returning seconds, used for event timestamps
        """
        self.poll_interval = poll_interval
        self.debounce = debounce
        self.monitor_interval = monitor_interval
        self._clock = clock or time.time
        self.events = EventChannel()
        self._states: dict[Path, RepositoryState] = {}
        self._locks: dict[Path, asyncio.Lock] = {}
        self._tasks: dict[Path, list[asyncio.Task]] = {}
        self._pending: dict[Path, asyncio.TimerHandle] = {}
        self._inflight: set[asyncio.Task] = set()
        self._disposed = False

    @property
    def watched_repositories(self) -> list[Path]:
        return list(self._states)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get_state(self, repo_path: PathLike) -> Optional[RepositoryState]:
        return self._states.get(self._key(repo_path))

    def discover_repositories(self, workspace_roots: Iterable[PathLike]) -> set[Path]:
        """Find git repositories in workspace roots.

        A root that is itself a repository is returned as-is; otherwise its
        immediate subdirectories (one level, non-recursive) are checked.
        Failures are logged per folder and never abort discovery.
        """
        found: set[Path] = set()
        for root in workspace_roots:
            root_path = Path(root)
            try:
                if resolve_git_dir(root_path) is not None:
                    found.add(root_path.resolve())
                    continue
                for child in sorted(root_path.iterdir()):
                    try:
                        if child.is_dir() and resolve_git_dir(child) is not None:
                            found.add(child.resolve())
                    except OSError as e:
                        logger.warning(f"Skipping {child}: {e}")
            except OSError as e:
                logger.warning(f"Cannot scan workspace folder {root_path}: {e}")

        logger.info(f"Discovered {len(found)} git repositories")
        return found

    async def watch_workspace(self, workspace_roots: Iterable[PathLike]) -> set[Path]:
        """Discover and watch every repository under the workspace roots."""
        repositories = self.discover_repositories(workspace_roots)
        if not repositories:
            logger.warning("No git repositories found in workspace")
        for repo_path in sorted(repositories):
            await self.watch(repo_path)
        return repositories

    async def watch(self, repo_path: PathLike) -> RepositoryState:
        """Start watching a repository root.

        The first reconciliation seeds the last observed branch and commit
        without emitting events. Watching an already watched root is a no-op.
        """
        if self._disposed:
            raise RuntimeError("Watcher has been disposed")

        repo = self._key(repo_path)
        if repo in self._states:
            return self._states[repo]

        git_dir = resolve_git_dir(repo)
        if git_dir is None:
            # Reads degrade to "unknown" and are retried on every poll
            logger.warning(f"No git directory found for {repo}")
            git_dir = repo / ".git"

        state = RepositoryState(repo_path=repo, git_dir=git_dir)
        self._states[repo] = state
        self._locks[repo] = asyncio.Lock()

        await self._reconcile_safely(repo)
        logger.info(
            f"Watching {repo} (branch: {state.current_branch}, "
            f"commit: {state.current_commit_hash[:8] or 'none'})"
        )

        loop = asyncio.get_running_loop()
        tasks = [loop.create_task(self._poll_loop(repo))]
        if self.monitor_interval > 0:
            tasks.append(loop.create_task(self._monitor_loop(repo)))
        self._tasks[repo] = tasks
        return state

    def notify(self, repo_path: PathLike, changed_path: Optional[PathLike] = None) -> None:
        """Report a raw filesystem change; reconciliation runs after the debounce delay.

        A notification arriving while one is pending restarts the delay, so a
        burst of writes results in a single reconciliation.
        """
        if self._disposed:
            return
        repo = self._key(repo_path)
        if repo not in self._states:
            return

        logger.debug(f"Change notification for {repo}: {changed_path or 'unspecified'}")
        pending = self._pending.pop(repo, None)
        if pending is not None:
            pending.cancel()
        loop = asyncio.get_running_loop()
        self._pending[repo] = loop.call_later(self.debounce, self._fire_debounced, repo)

    def _fire_debounced(self, repo: Path) -> None:
        self._pending.pop(repo, None)
        if self._disposed or repo not in self._states:
            return
        task = asyncio.get_running_loop().create_task(self._reconcile_safely(repo))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def reconcile(self, repo_path: PathLike) -> list[GitEvent]:
        """Diff the repository's current state against the last observed state.

        This is the only code path that updates last observed values. A
        branch event is emitted when both the old and new branch are
        resolvable and differ; a commit event when the hash differs from a
        previously observed one. A checkout that moves both
        yields both events from the same pass.

        Returns:
            Events emitted by this pass, branch event first
        """
        repo = self._key(repo_path)
        state = self._states.get(repo)
        if state is None or self._disposed:
            return []

        async with self._locks[repo]:
            snapshot = await asyncio.to_thread(read_snapshot, state.git_dir)
            if self._disposed or self._states.get(repo) is not state:
                return []

            branch = snapshot.branch
            commit = snapshot.commit_hash
            now = int(self._clock() * 1000)
            events: list[GitEvent] = []

            branch_resolvable = branch != UNKNOWN_BRANCH
            old_branch = state.last_observed_branch
            branch_changed = (
                branch_resolvable and old_branch is not None and branch != old_branch
            )
            if branch_changed:
                events.append(
                    BranchChangeEvent(
                        repo_path=repo,
                        old_branch=old_branch,
                        new_branch=branch,
                        timestamp_millis=now,
                    )
                )

            old_commit = state.last_observed_commit_hash
            new_commit = bool(commit) and old_commit is not None and commit != old_commit
            commit_message = ""
            if new_commit:
                commit_message = await asyncio.to_thread(
                    read_commit_message, state.git_dir, commit, repo
                )
                if self._disposed or self._states.get(repo) is not state:
                    return []
                events.append(
                    CommitEvent(
                        repo_path=repo,
                        branch=branch,
                        commit_hash=commit,
                        commit_message=commit_message,
                        timestamp_millis=now,
                    )
                )

            state.current_branch = branch
            state.current_commit_hash = commit
            if branch_resolvable:
                if old_branch is None:
                    logger.info(f"Initial branch for {repo}: {branch}")
                state.last_observed_branch = branch
            if commit:
                state.last_observed_commit_hash = commit

            for event in events:
                if isinstance(event, BranchChangeEvent):
                    logger.info(
                        f"Branch changed in {repo}: {event.old_branch} -> {event.new_branch}"
                    )
                else:
                    logger.info(
                        f"New commit in {repo} on {event.branch}: "
                        f"{event.commit_hash[:8]} {event.commit_message.splitlines()[0] if event.commit_message else ''}"
                    )
                self.events.publish(event)

            return events

    async def _reconcile_safely(self, repo: Path) -> None:
        try:
            await self.reconcile(repo)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error reconciling {repo}: {e}")

    async def _poll_loop(self, repo: Path) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self._reconcile_safely(repo)

    async def _monitor_loop(self, repo: Path) -> None:
        state = self._states[repo]
        previous: Optional[Fingerprint] = None
        while True:
            try:
                current = await asyncio.to_thread(self._fingerprint, state.git_dir)
            except OSError as e:
                logger.debug(f"Stat scan failed for {repo}: {e}")
            else:
                if previous is not None:
                    changed = [
                        path for path in current.keys() | previous.keys()
                        if current.get(path) != previous.get(path)
                    ]
                    for path in changed:
                        self.notify(repo, path)
                previous = current
            await asyncio.sleep(self.monitor_interval)

    @staticmethod
    def _fingerprint(git_dir: Path) -> Fingerprint:
        """Stat HEAD, packed-refs and every loose branch ref."""
        shared = common_dir(git_dir)
        candidates = [git_dir / "HEAD", shared / "packed-refs"]
        heads = shared / "refs" / "heads"
        if heads.is_dir():
            candidates.extend(p for p in heads.rglob("*") if p.is_file())

        fingerprint: Fingerprint = {}
        for path in candidates:
            try:
                stat = path.stat()
            except OSError:
                continue
            fingerprint[path] = (stat.st_mtime_ns, stat.st_size)
        return fingerprint

    def get_current_branch_info(self, repo_path: Optional[PathLike] = None) -> Optional[BranchInfo]:
        """Return the current branch of a repository without waiting for an event.

        Args:
            repo_path: Repository root; defaults to the first watched repository

        Returns:
            BranchInfo, or None when no repository is available
        """
        if repo_path is None:
            if not self._states:
                return None
            repo = next(iter(self._states))
        else:
            repo = self._key(repo_path)

        state = self._states.get(repo)
        if state is not None:
            branch = state.current_branch
            commit = state.current_commit_hash
            git_dir = state.git_dir
        else:
            git_dir = resolve_git_dir(repo)
            if git_dir is None:
                return None
            snapshot = read_snapshot(git_dir)
            branch, commit = snapshot.branch, snapshot.commit_hash

        return BranchInfo(
            path=repo,
            branch=branch,
            remote_url=read_remote_url(git_dir),
            last_commit=commit or None,
        )

    def unwatch(self, repo_path: PathLike) -> None:
        """Stop watching one repository and forget its state."""
        repo = self._key(repo_path)
        for task in self._tasks.pop(repo, []):
            task.cancel()
        pending = self._pending.pop(repo, None)
        if pending is not None:
            pending.cancel()
        self._states.pop(repo, None)
        self._locks.pop(repo, None)
        logger.debug(f"Stopped watching {repo}")

    def unwatch_all(self) -> None:
        for repo in list(self._states):
            self.unwatch(repo)
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()

    def dispose(self) -> None:
        """Cancel all monitors, polls and pending notifications; no events follow."""
        if self._disposed:
            return
        self._disposed = True
        self.unwatch_all()
        self.events.close()
        logger.info("Repository watcher disposed")

    @staticmethod
    def _key(repo_path: PathLike) -> Path:
        return Path(repo_path).resolve()
