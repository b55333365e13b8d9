"""
Package planning — decide what a package system has to install.

Flow:
    wanted packages → hash fresh? → skip
                    → ask the manager what is missing → InstallPackages unit

The hash of everything wanted is recorded by the unit, so while the
list is unchanged and younger than ``package_refresh`` the (slow)
listing of installed packages is skipped entirely.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from converge.adapters.base import PackageManager
from converge.core.engine.allocator import UnitAllocator
from converge.core.models.state import RunState
from converge.core.models.unit import SystemUnit
from converge.core.units import InstallPackages

logger = logging.getLogger(__name__)


def plan_packages(
    allocator: UnitAllocator,
    manager: PackageManager,
    wanted: Iterable[str],
    id: str,
    state: RunState,
) -> SystemUnit | None:
    """Plan installing whatever of ``wanted`` is missing.

    Args:
        allocator: Allocator for the planned unit.
        manager: Package manager to install through.
        wanted: Every package the system wants from ``manager``.
        id: Hash id the wanted list is recorded under.
        state: Baseline run state, for the freshness check.

    Returns:
        The unit, or None when the wanted list was recently satisfied.
        The unit is thread-local when the manager may prompt.
    """
    wanted = list(dict.fromkeys(wanted))
    all_packages = frozenset(wanted)

    if state.is_hash_fresh(id, sorted(all_packages)):
        logger.debug("packages for `%s` unchanged, skipping", id)
        return None

    to_install = tuple(manager.missing(wanted))
    unit = allocator.unit(InstallPackages(manager, all_packages, to_install, id))
    unit.thread_local = bool(to_install) and manager.needs_interaction
    return unit
