"""
Adapter base — the capability surfaces units act through.

Units never shell out to package managers or git directly. They are
handed a PackageManager and a GitBackend through their UnitInput, so
the engine can swap real tools for the mocks in ``adapters.mock``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from pathlib import Path


class PackageManager(ABC):
    """A system or language package manager (apt, dnf, pip, ...).

    To create a new package manager:
        1. Subclass PackageManager
        2. Implement name, is_available, list_installed, install_packages
        3. Return it from ``adapters.shell.packages.detect_package_provider``
           or hand it to the units that need it
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The package manager identifier (e.g., 'apt', 'dnf', 'pip')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying tool is installed. Fast, never raises."""

    @property
    def needs_interaction(self) -> bool:
        """Whether installs may prompt (e.g. for a sudo password).

        ``plan_packages`` makes units installing through such a manager
        thread-local.
        """
        return False

    @abstractmethod
    def list_installed(self) -> set[str]:
        """Names of the packages currently installed."""

    @abstractmethod
    def install_packages(self, packages: Sequence[str]) -> None:
        """Install the given packages. Raises on failure."""

    def missing(self, wanted: Iterable[str]) -> list[str]:
        """The subset of ``wanted`` that is not installed, in input order."""
        installed = self.list_installed()
        return [name for name in wanted if name not in installed]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class GitRepository(ABC):
    """An existing local git checkout."""

    def __init__(self, path: Path):
        self.path = path

    @abstractmethod
    def needs_update(self) -> bool:
        """Fetch the remote and report whether HEAD is behind it."""

    @abstractmethod
    def update(self) -> None:
        """Fast-forward to the fetched head."""

    @abstractmethod
    def force_update(self) -> None:
        """Hard reset to the fetched head, discarding local changes."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} path={str(self.path)!r}>"


class GitBackend(ABC):
    """Factory for git repositories."""

    @abstractmethod
    def test(self) -> bool:
        """Whether a working git is available."""

    @abstractmethod
    def open(self, path: Path) -> GitRepository:
        """Open an existing checkout."""

    @abstractmethod
    def clone(self, remote: str, path: Path) -> GitRepository:
        """Clone ``remote`` into ``path`` and open it."""
