"""
Package managers — subprocess-backed PackageManager implementations.

System managers install through ``sudo`` with the terminal attached,
so they report ``needs_interaction`` and their install units run on
the controlling thread.
"""

from __future__ import annotations

import json
import logging
import shutil
from collections.abc import Iterable, Sequence

from converge.adapters.base import PackageManager
from converge.adapters.shell.command import run_command

logger = logging.getLogger(__name__)

_SUDO_PROMPT = "[sudo] password for %u to install packages: "


class AptPackageManager(PackageManager):
    """Debian/Ubuntu packages via dpkg-query and apt."""

    @property
    def name(self) -> str:
        return "apt"

    @property
    def needs_interaction(self) -> bool:
        return True

    def is_available(self) -> bool:
        return shutil.which("apt") is not None and shutil.which("dpkg-query") is not None

    def list_installed(self) -> set[str]:
        result = run_command(
            ["dpkg-query", "-W", "--showformat=${db:Status-Abbrev}${binary:Package}\\n"]
        )
        installed: set[str] = set()
        for line in result.stdout.splitlines():
            # "ii  name:arch" — only fully installed packages count
            status, _, package = line.partition(" ")
            if status.startswith("ii"):
                installed.add(package.strip().split(":", 1)[0])
        return installed

    def install_packages(self, packages: Sequence[str]) -> None:
        run_command(
            ["sudo", "-p", _SUDO_PROMPT, "--", "apt", "install", "-y", *packages],
            capture=False,
        )


class DnfPackageManager(PackageManager):
    """Fedora/RHEL packages via rpm and dnf."""

    @property
    def name(self) -> str:
        return "dnf"

    @property
    def needs_interaction(self) -> bool:
        return True

    def is_available(self) -> bool:
        return shutil.which("dnf") is not None and shutil.which("rpm") is not None

    def list_installed(self) -> set[str]:
        result = run_command(["rpm", "-qa", "--queryformat", "%{NAME}\\n"])
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}

    def install_packages(self, packages: Sequence[str]) -> None:
        run_command(
            ["sudo", "-p", _SUDO_PROMPT, "--", "dnf", "install", "-y", *packages],
            capture=False,
        )


class PipPackageManager(PackageManager):
    """User-level Python packages via pip."""

    def __init__(self, executable: str = "pip3"):
        self._executable = executable

    @property
    def name(self) -> str:
        return self._executable

    def is_available(self) -> bool:
        return shutil.which(self._executable) is not None

    def list_installed(self) -> set[str]:
        result = run_command([self._executable, "list", "--format=json", "--disable-pip-version-check"])
        try:
            entries = json.loads(result.stdout or "[]")
        except json.JSONDecodeError as e:
            raise ValueError(f"Unexpected output from {self._executable} list: {e}") from e
        return {entry["name"].lower() for entry in entries}

    def missing(self, wanted: Iterable[str]) -> list[str]:
        installed = self.list_installed()
        return [name for name in wanted if name.lower() not in installed]

    def install_packages(self, packages: Sequence[str]) -> None:
        run_command([self._executable, "install", "--user", *packages])


# Checked in order; the first available one becomes the primary manager.
_SYSTEM_MANAGERS: tuple[type[PackageManager], ...] = (AptPackageManager, DnfPackageManager)

_NAMED_MANAGERS = {
    "apt": AptPackageManager,
    "debian": AptPackageManager,
    "dnf": DnfPackageManager,
    "fedora": DnfPackageManager,
    "pip": lambda: PipPackageManager("pip"),
    "pip3": lambda: PipPackageManager("pip3"),
}


class PackageProvider:
    """The primary package manager of this machine plus named lookups."""

    def __init__(self, default: PackageManager | None = None):
        self._default = default

    @property
    def default(self) -> PackageManager | None:
        return self._default

    def get(self, name: str) -> PackageManager | None:
        """Look up a package manager by name.

        Returns None when the manager is known but not installed.

        Raises:
            KeyError: If no integration exists for ``name``.
        """
        if self._default is not None and self._default.name == name:
            return self._default

        factory = _NAMED_MANAGERS.get(name)
        if factory is None:
            raise KeyError(f"No package manager integration for '{name}'")

        manager = factory()
        return manager if manager.is_available() else None


def detect_package_provider() -> PackageProvider:
    """Detect the primary system package manager."""
    for cls in _SYSTEM_MANAGERS:
        manager = cls()
        if manager.is_available():
            logger.debug("Detected package manager: %s", manager.name)
            return PackageProvider(manager)

    logger.warning("No supported system package manager found")
    return PackageProvider()
