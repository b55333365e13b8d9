"""
Git backend — repository checkouts through the git CLI.

Uses the git executable via the command runner, not a library
binding. Updates are fetch-then-merge: ``needs_update`` fetches the
tracked branch, ``update`` fast-forwards and ``force_update`` resets.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from converge.adapters.base import GitBackend, GitRepository
from converge.adapters.shell.command import CommandError, run_command

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "master"


class ExternalGitRepository(GitRepository):
    """A checkout driven by the ``git`` executable."""

    def __init__(self, path: Path, remote: str = "origin", branch: str = DEFAULT_BRANCH):
        super().__init__(path)
        self.remote = remote
        self.branch = branch

    def needs_update(self) -> bool:
        self._git(["fetch", self.remote, self.branch])
        remote_head = self._git(["rev-parse", "FETCH_HEAD"])
        head = self.head()

        if remote_head == head:
            return False

        # Behind only if the fetched head is not already in our history.
        return self._git(["merge-base", remote_head, head]) != remote_head

    def update(self) -> None:
        self._git(["merge", "--ff-only", "FETCH_HEAD"])

    def force_update(self) -> None:
        self._git(["reset", "--hard", "FETCH_HEAD"])

    def head(self) -> str:
        """The commit id of HEAD."""
        return self._git(["rev-parse", "HEAD"])

    def is_clean(self) -> bool:
        """Whether the working tree has no uncommitted changes."""
        result = run_command(["git", "diff-index", "--quiet", "HEAD"], cwd=self.path, check=False)
        return result.ok

    # ── Helpers ─────────────────────────────────────────────────

    def _git(self, args: list[str]) -> str:
        """Run a git command in the checkout and return stripped stdout."""
        return run_command(["git", *args], cwd=self.path).stdout


class ExternalGit(GitBackend):
    """Git backend using the ``git`` executable on PATH."""

    def __init__(self, branch: str = DEFAULT_BRANCH):
        self.branch = branch

    def test(self) -> bool:
        if shutil.which("git") is None:
            return False
        try:
            run_command(["git", "--version"])
        except CommandError as e:
            logger.debug("git is not usable: %s", e)
            return False
        return True

    def open(self, path: Path) -> ExternalGitRepository:
        return ExternalGitRepository(path, branch=self.branch)

    def clone(self, remote: str, path: Path) -> ExternalGitRepository:
        logger.info("Cloning %s into %s", remote, path)
        run_command(["git", "clone", remote, str(path)])
        return self.open(path)
