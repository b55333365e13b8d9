"""
Mock adapters — in-process doubles for package managers and git.

Used by tests to run units without touching the machine. Every call
is recorded so tests can assert on what a unit asked for.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from converge.adapters.base import GitBackend, GitRepository, PackageManager


class MockPackageManager(PackageManager):
    """Package manager that 'installs' into an in-memory set."""

    def __init__(
        self,
        manager_name: str = "mock",
        installed: set[str] | None = None,
        interactive: bool = False,
        available: bool = True,
    ):
        self._name = manager_name
        self._interactive = interactive
        self._available = available
        self.installed: set[str] = set(installed or ())
        self.install_calls: list[list[str]] = []
        self.fail_with: Exception | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def needs_interaction(self) -> bool:
        return self._interactive

    def is_available(self) -> bool:
        return self._available

    def list_installed(self) -> set[str]:
        return set(self.installed)

    def install_packages(self, packages: Sequence[str]) -> None:
        self.install_calls.append(list(packages))
        if self.fail_with is not None:
            raise self.fail_with
        self.installed.update(packages)


class MockGitRepository(GitRepository):
    """Repository whose remote state is set by the test."""

    def __init__(self, path: Path, behind: bool = False):
        super().__init__(path)
        self.behind = behind
        self.updates = 0
        self.force_updates = 0

    def needs_update(self) -> bool:
        return self.behind

    def update(self) -> None:
        self.updates += 1
        self.behind = False

    def force_update(self) -> None:
        self.force_updates += 1
        self.behind = False


class MockGit(GitBackend):
    """Git backend that clones by creating the directory."""

    def __init__(self, available: bool = True):
        self._available = available
        self.repositories: dict[Path, MockGitRepository] = {}
        self.clones: list[tuple[str, Path]] = []

    def test(self) -> bool:
        return self._available

    def open(self, path: Path) -> MockGitRepository:
        if path not in self.repositories:
            self.repositories[path] = MockGitRepository(path)
        return self.repositories[path]

    def clone(self, remote: str, path: Path) -> MockGitRepository:
        self.clones.append((remote, path))
        path.mkdir(parents=True, exist_ok=True)
        return self.open(path)
