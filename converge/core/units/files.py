"""
File units — directories, copies, templates, links and modes.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, StrictUndefined

from converge.core.models.state import stable_hash
from converge.core.units.base import UnitInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateDir:
    """Create a single directory. Its parent must already exist."""

    path: Path

    def __str__(self) -> str:
        return f"create directory {self.path}"

    def apply(self, unit_input: UnitInput) -> None:
        logger.info("creating dir: %s", self.path)
        self.path.mkdir()


@dataclass(frozen=True)
class CopyFile:
    """Copy a file verbatim, keeping the source's modification time."""

    source: Path
    dest: Path

    def __str__(self) -> str:
        return f"copy file {self.source} -> {self.dest}"

    def apply(self, unit_input: UnitInput) -> None:
        logger.info("%s -> %s", self.source, self.dest)
        shutil.copy2(self.source, self.dest)


@dataclass(frozen=True)
class CopyTemplate:
    """Render a Jinja2 template into place.

    Rendering is skipped when neither the template nor the data it is
    rendered with changed since the last run; only the destination's
    modification time is bumped then.
    """

    source: Path
    dest: Path

    def __str__(self) -> str:
        return f"copy template {self.source} -> {self.dest}"

    @property
    def state_id(self) -> str:
        return f"copy-template/{stable_hash([str(self.source), str(self.dest)])[:16]}"

    def apply(self, unit_input: UnitInput) -> None:
        content = self.source.read_text(encoding="utf-8")
        data = dict(unit_input.data)
        fingerprint = {"data": data, "content": content}

        if self.dest.exists() and unit_input.read_state.is_hash_fresh(self.state_id, fingerprint):
            logger.info("touching %s", self.dest)
            now = unit_input.now.timestamp()
            os.utime(self.dest, (now, now))
            return

        env = Environment(undefined=StrictUndefined, keep_trailing_newline=True)
        rendered = env.from_string(content).render(**data)

        logger.info("%s -> %s (template)", self.source, self.dest)
        self.dest.write_text(rendered, encoding="utf-8")
        unit_input.state.touch_hash(self.state_id, fingerprint)


@dataclass(frozen=True)
class Symlink:
    """Create a symlink at ``path`` pointing to ``link``.

    ``remove`` is set when a wrong link is already in place.
    """

    path: Path
    link: Path
    remove: bool = False

    def __str__(self) -> str:
        return f"link file {self.path} to {self.link}"

    def apply(self, unit_input: UnitInput) -> None:
        if self.remove:
            logger.info("re-linking %s to %s", self.path, self.link)
            self.path.unlink()
        else:
            logger.info("linking %s to %s", self.path, self.link)

        self.path.symlink_to(self.link)


@dataclass(frozen=True)
class AddMode:
    """Add permission bits to a file (e.g. make a download executable)."""

    path: Path
    mode: int

    def __str__(self) -> str:
        return f"add mode {self.mode:o} to {self.path}"

    def apply(self, unit_input: UnitInput) -> None:
        current = stat.S_IMODE(self.path.stat().st_mode)
        self.path.chmod(current | self.mode)
