"""Adapters — capability surfaces for package managers and git.

Public re-exports for convenient access.
"""

from converge.adapters.base import GitBackend, GitRepository, PackageManager
from converge.adapters.mock import MockGit, MockGitRepository, MockPackageManager

__all__ = [
    "GitBackend",
    "GitRepository",
    "MockGit",
    "MockGitRepository",
    "MockPackageManager",
    "PackageManager",
]
