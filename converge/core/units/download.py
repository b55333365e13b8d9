"""
Download units — fetch a URL to a local file, and run a file once.
"""

from __future__ import annotations

import logging
import shutil
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path

from converge.adapters.shell.command import run_command
from converge.core.units.base import UnitInput

logger = logging.getLogger(__name__)

BIN_SH = "/bin/sh"


@dataclass(frozen=True)
class Download:
    """Download ``url`` and write it to ``path``."""

    url: str
    path: Path

    def __str__(self) -> str:
        return f"download {self.url} to {self.path}"

    def apply(self, unit_input: UnitInput) -> None:
        logger.info("downloading %s", self.url)
        tmp = self.path.with_name(f".{self.path.name}.part")
        try:
            with urllib.request.urlopen(self.url) as response, tmp.open("wb") as out:
                shutil.copyfileobj(response, out)
            tmp.replace(self.path)
        finally:
            tmp.unlink(missing_ok=True)


@dataclass(frozen=True)
class RunOnce:
    """Run an executable once, ever, recording ``id`` in the once-map.

    The command keeps the terminal, since install scripts commonly
    prompt. Producers mark these units thread-local.
    """

    id: str
    path: Path
    shell: bool = False
    args: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"run `{self.path}` once as `{self.id}`"

    def apply(self, unit_input: UnitInput) -> None:
        logger.info("running %s", self.path)

        argv: list[str | Path] = [BIN_SH, self.path] if self.shell else [self.path]
        argv.extend(self.args)
        run_command(argv, capture=False)

        unit_input.state.touch_once(self.id)
