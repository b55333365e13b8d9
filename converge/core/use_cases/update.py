"""
Config repository use cases — initialize and self-update the root.

The configuration root is usually a git checkout. Before units are
planned it is brought up to date, at most once per ``git_refresh``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from converge.adapters.base import GitBackend
from converge.adapters.shell.command import CommandError
from converge.core.models.config import Config
from converge.core.models.state import RunState

logger = logging.getLogger(__name__)

# last_update key for the configuration checkout
GIT_UPDATE_KEY = "git"


@dataclass
class UpdateResult:
    """Result of checking the configuration checkout for updates."""

    updated: bool = False
    checked: bool = False
    reason: str = ""
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "checked": self.checked,
            "reason": self.reason,
            "error": self.error,
        }


def update_config_repo(
    root: Path,
    git: GitBackend,
    state: RunState,
    config: Config,
    force: bool = False,
    confirm: Callable[[], bool] | None = None,
    now: datetime | None = None,
) -> UpdateResult:
    """Fetch and apply upstream changes to the configuration checkout.

    Skipped while the last check is younger than ``config.git_refresh``.
    Every completed check is recorded, whether or not it found changes.

    Args:
        root: Configuration root (a git checkout).
        git: Git backend.
        state: Run state; the check is recorded under ``git``.
        config: Supplies ``git_refresh``.
        force: Hard-reset to upstream instead of fast-forwarding.
        confirm: Asked before checking; returning False skips the check.
        now: Current time (default: now).

    Returns:
        UpdateResult. ``updated`` is True only if new commits were applied.
    """
    now = now or datetime.now(UTC)

    last = state.last_update_of(GIT_UPDATE_KEY)
    if last is not None:
        elapsed = now - last
        if elapsed < config.git_refresh:
            return UpdateResult(reason=f"checked {int(elapsed.total_seconds())}s ago")
        logger.info("%ds since last git update...", int(elapsed.total_seconds()))

    if confirm is not None and not confirm():
        return UpdateResult(reason="declined")

    if not git.test():
        logger.warning("no working git command found")
        state.touch(GIT_UPDATE_KEY)
        return UpdateResult(checked=True, reason="git unavailable")

    try:
        repo = git.open(root)

        if not repo.needs_update():
            state.touch(GIT_UPDATE_KEY)
            return UpdateResult(checked=True, reason="up to date")

        if force:
            repo.force_update()
        else:
            repo.update()
    except CommandError as e:
        logger.error("Updating %s failed: %s", root, e)
        return UpdateResult(checked=True, error=str(e))

    state.touch(GIT_UPDATE_KEY)
    return UpdateResult(updated=True, checked=True, reason="updated")


def init_config_repo(root: Path, url: str, git: GitBackend) -> str | None:
    """Clone ``url`` as the configuration root.

    Returns:
        None on success, else an error message.
    """
    if root.exists() and any(root.iterdir()):
        return f"Configuration root is not empty: {root}"

    if not git.test():
        return "No working git command found"

    logger.info("Initializing %s from %s", root, url)

    try:
        git.clone(url, root)
    except CommandError as e:
        return str(e)

    return None
