"""
Package units — install what is missing, remember what was wanted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from converge.adapters.base import PackageManager
from converge.core.units.base import UnitInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallPackages:
    """Install ``to_install`` through ``package_manager``.

    ``all_packages`` is everything the system wants from this manager.
    Its hash is recorded under ``id`` so the producing system can skip
    listing installed packages while nothing changed.
    """

    package_manager: PackageManager
    all_packages: frozenset[str]
    to_install: tuple[str, ...]
    id: str

    def __str__(self) -> str:
        if not self.to_install:
            return "install packages"
        return f"{self.id}: install packages: {', '.join(self.to_install)}"

    @property
    def fingerprint(self) -> list[str]:
        return sorted(self.all_packages)

    def apply(self, unit_input: UnitInput) -> None:
        if self.to_install:
            logger.info(
                "Installing packages for `%s`: %s", self.id, ", ".join(self.to_install)
            )
            self.package_manager.install_packages(list(self.to_install))

        unit_input.state.touch_hash(self.id, self.fingerprint)
