"""
File-system planner — claims paths and plans file units for systems.

Systems produce their units concurrently and share one planner. Every
path a unit creates is claimed through the planner, so two systems
that would write the same path are caught while planning rather than
racing each other at run time.

A path is claimed either as a file or as a directory; claiming it the
other way, or from a second producing unit, is an error.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable
from pathlib import Path

from converge.core.engine.allocator import UnitAllocator
from converge.core.models.unit import Dependency, DependencyKind, SystemUnit, UnitId
from converge.core.units import CopyFile, CopyTemplate, CreateDir, Symlink

logger = logging.getLogger(__name__)


class PlanningError(Exception):
    """A file-system unit cannot be planned."""


class ClaimConflictError(PlanningError):
    """More than one unit claims the same path."""

    def __init__(self, conflicts: dict[Dependency, list[UnitId]]):
        self.conflicts = conflicts
        lines = [
            f"{dep} is provided by units {', '.join(str(i) for i in ids)}"
            for dep, ids in conflicts.items()
        ]
        super().__init__("Conflicting path claims: " + "; ".join(lines))


def find_claim_conflicts(units: Iterable[SystemUnit]) -> dict[Dependency, list[UnitId]]:
    """Find file or directory dependencies provided by more than one unit.

    Returns:
        Each conflicting dependency mapped to the ids providing it.
        Empty when every path has at most one producer.
    """
    producers: dict[Dependency, list[UnitId]] = {}

    for unit in units:
        for dep in unit.provides:
            if dep.kind is DependencyKind.UNIT:
                continue
            ids = producers.setdefault(dep, [])
            if unit.id not in ids:
                ids.append(unit.id)

    return {dep: ids for dep, ids in producers.items() if len(ids) > 1}


class FileSystemPlanner:
    """Thread-safe tracker of planned file-system modifications.

    Args:
        allocator: Allocator for the planned units.
        force: Replace symlinks pointing elsewhere instead of failing.
    """

    def __init__(self, allocator: UnitAllocator, force: bool = False):
        self._allocator = allocator
        self._force = force
        self._lock = threading.Lock()
        self._kinds: dict[Path, DependencyKind] = {}
        self._producers: dict[Path, UnitId] = {}

    # ── Claims ───────────────────────────────────────────────────

    def _dependency(self, kind: DependencyKind, path: Path) -> Dependency:
        path = Path(path)
        existing = self._kinds.get(path)

        if existing is not None and existing is not kind:
            raise PlanningError(
                f"Multiple systems modifying path `{path}` in different ways"
            )

        self._kinds[path] = kind
        return Dependency(kind, path)

    def file_dependency(self, path: Path) -> Dependency:
        """The dependency on ``path`` existing as a file."""
        with self._lock:
            return self._dependency(DependencyKind.FILE, path)

    def dir_dependency(self, path: Path) -> Dependency:
        """The dependency on ``path`` existing as a directory."""
        with self._lock:
            return self._dependency(DependencyKind.DIR, path)

    def _claim(self, unit: SystemUnit, dependency: Dependency) -> None:
        path = dependency.target
        producer = self._producers.get(path)

        if producer is not None and producer != unit.id:
            raise ClaimConflictError({dependency: [producer, unit.id]})

        self._producers[path] = unit.id
        unit.provides.append(dependency)

    def claim(self, unit: SystemUnit, dependency: Dependency) -> None:
        """Register ``unit`` as the producer of ``dependency``.

        Raises:
            ClaimConflictError: If another unit already produces the path.
        """
        with self._lock:
            self._dependency(dependency.kind, dependency.target)
            self._claim(unit, dependency)

    def is_claimed(self, path: Path) -> bool:
        with self._lock:
            return Path(path) in self._producers

    # ── Planning ─────────────────────────────────────────────────

    def create_dir_all(self, dir: Path) -> list[SystemUnit]:
        """Plan units creating ``dir`` and every missing ancestor.

        Ancestors already on disk, or already planned by another system,
        are skipped; each planned directory depends on its parent.
        """
        dir = Path(dir)

        with self._lock:
            if dir in self._producers or dir.is_dir():
                return []

            dirs = [dir]
            current = dir
            while current.parent != current:
                parent = current.parent
                if parent.is_dir() or parent in self._producers:
                    break
                dirs.append(parent)
                current = parent

            out: list[SystemUnit] = []

            for path in reversed(dirs):
                if path in self._producers:
                    if self._kinds.get(path) is not DependencyKind.DIR:
                        raise PlanningError(
                            f"Other system is modifying path, but not as a directory: {path}"
                        )
                    continue

                unit = self._allocator.unit(CreateDir(path))
                self._claim(unit, self._dependency(DependencyKind.DIR, path))

                if path.parent in self._producers:
                    unit.dependencies.append(Dependency.dir(path.parent))

                out.append(unit)

        return out

    def _parent_dependency(self, unit: SystemUnit, path: Path) -> None:
        parent = path.parent
        if not parent.is_dir():
            unit.dependencies.append(self.dir_dependency(parent))

    def copy_file(self, source: Path, dest: Path, template: bool = False) -> SystemUnit | None:
        """Plan copying ``source`` to ``dest``, if needed.

        A plain copy is needed when ``dest`` is missing or older than
        ``source``. Templates are always planned; the unit itself skips
        re-rendering when nothing changed.

        Raises:
            PlanningError: If ``dest`` exists but is not a file.
        """
        source = Path(source)
        dest = Path(dest)

        if dest.exists() or dest.is_symlink():
            if not dest.is_file():
                raise PlanningError(f"Exists but is not a file: {dest}")
            if not template and dest.stat().st_mtime >= source.stat().st_mtime:
                return None

        payload = CopyTemplate(source, dest) if template else CopyFile(source, dest)
        unit = self._allocator.unit(payload)
        self._parent_dependency(unit, dest)
        self.claim(unit, self.file_dependency(dest))
        return unit

    def symlink(self, path: Path, link: Path) -> SystemUnit | None:
        """Plan a symlink at ``path`` pointing to ``link``.

        Returns:
            The unit, or None when the right link is already in place.

        Raises:
            PlanningError: If ``path`` exists but is not a symlink, or
                points elsewhere and the planner is not forcing.
        """
        path = Path(path)
        link = Path(link)
        remove = False

        if path.is_symlink():
            actual = Path(os.readlink(path))
            if actual == link:
                return None

            if not self._force:
                raise PlanningError(
                    f"Symlink exists `{path}`, but contains the wrong link `{actual}`, "
                    f"expected: {link} (use `--force` to override)"
                )
            remove = True
        elif path.exists():
            raise PlanningError(f"File exists but is not a symlink: {path}")

        unit = self._allocator.unit(Symlink(path, link, remove=remove))
        self._parent_dependency(unit, path)
        self.claim(unit, self.file_dependency(path))
        return unit
