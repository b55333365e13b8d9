"""
Units — the atomic actions the scheduler runs.

``Unit`` is a closed union: every kind below and nothing else. Each
kind is a frozen dataclass with an ``apply(unit_input)`` method and a
human-readable ``str()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from converge.core.units.base import UnitError, UnitInput
from converge.core.units.download import Download, RunOnce
from converge.core.units.files import AddMode, CopyFile, CopyTemplate, CreateDir, Symlink
from converge.core.units.git import GitClone, GitUpdate
from converge.core.units.packages import InstallPackages


@dataclass(frozen=True)
class SystemMarker:
    """No-op unit marking the start or end of a system's units."""

    def __str__(self) -> str:
        return "system unit"

    def apply(self, unit_input: UnitInput) -> None:
        return None


Unit = Union[
    SystemMarker,
    CreateDir,
    CopyFile,
    CopyTemplate,
    Symlink,
    InstallPackages,
    Download,
    AddMode,
    RunOnce,
    GitClone,
    GitUpdate,
]

UNIT_KINDS: tuple[type, ...] = Unit.__args__

__all__ = [
    "AddMode",
    "CopyFile",
    "CopyTemplate",
    "CreateDir",
    "Download",
    "GitClone",
    "GitUpdate",
    "InstallPackages",
    "RunOnce",
    "Symlink",
    "SystemMarker",
    "UNIT_KINDS",
    "Unit",
    "UnitError",
    "UnitInput",
]
