"""
Apply use case — run a set of units against the machine.

Flow:
    load config → load state → run units → save state (if changed) → result

State is saved even when units failed, so whatever did complete is
not redone on the next run.

The caller supplies the units, already wired (see
``converge.core.engine.requires.wire_systems``).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from converge.adapters.base import GitBackend
from converge.adapters.shell.packages import PackageProvider
from converge.core.config.loader import ConfigError, config_path, load_config
from converge.core.engine.executor import RunReport, UnitContext, run_units
from converge.core.models.unit import SystemUnit
from converge.core.persistence.state_file import default_state_path, load_state, save_state
from converge.core.planning.file_system import ClaimConflictError

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Result of applying units."""

    report: RunReport | None = None
    root: Path | None = None
    state_saved: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.all_ok

    def to_dict(self) -> dict:
        result: dict = {"root": str(self.root) if self.root else None}
        if self.error:
            result["error"] = self.error
            return result

        result["state_saved"] = self.state_saved
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def apply_units(
    units: Iterable[SystemUnit],
    root: Path,
    packages: PackageProvider | None = None,
    git: GitBackend | None = None,
    max_workers: int | None = None,
    keep_going: bool = True,
    now: datetime | None = None,
) -> ApplyResult:
    """Run units with the configuration and state found under ``root``.

    Args:
        units: Units to run, dependencies resolved.
        root: Configuration root.
        packages: Package managers available to units.
        git: Git backend available to units.
        max_workers: Override the configured worker bound.
        keep_going: Keep scheduling past a stage with failures.
        now: Timestamp of this run (default: current time).

    Returns:
        ApplyResult. ``error`` is set when nothing could be run.
    """
    result = ApplyResult(root=root)
    now = now or datetime.now(UTC)

    try:
        config = load_config(config_path(root))
    except ConfigError as e:
        result.error = str(e)
        return result

    state_path = default_state_path(root)
    state = load_state(state_path, config, now)

    context = UnitContext(config=config, packages=packages, git=git, now=now)

    try:
        result.report = run_units(
            units,
            context,
            state,
            max_workers=max_workers,
            keep_going=keep_going,
        )
    except ClaimConflictError as e:
        result.error = str(e)
    finally:
        result.state_saved = save_state(state, state_path)

    return result
