"""
Git units — clone a checkout, or bring an existing one up to date.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from converge.core.units.base import UnitInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GitClone:
    """Clone ``remote`` into ``path`` and record ``id`` as updated."""

    id: str
    remote: str
    path: Path

    def __str__(self) -> str:
        return f"git clone `{self.remote}` to `{self.path}`"

    def apply(self, unit_input: UnitInput) -> None:
        logger.info("Cloning `%s` into `%s`", self.remote, self.path)
        unit_input.require_git().clone(self.remote, self.path)
        unit_input.state.touch(self.id)


@dataclass(frozen=True)
class GitUpdate:
    """Update the checkout at ``path`` if the remote moved ahead."""

    id: str
    path: Path
    force: bool = False

    def __str__(self) -> str:
        return f"git update: {self.path}"

    def apply(self, unit_input: UnitInput) -> None:
        repo = unit_input.require_git().open(self.path)

        if repo.needs_update():
            if self.force:
                logger.info("Force updating `%s`", self.path)
                repo.force_update()
            else:
                logger.info("Updating `%s`", self.path)
                repo.update()

        unit_input.state.touch(self.id)
