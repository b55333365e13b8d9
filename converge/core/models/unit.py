"""
Unit scheduling metadata — ids, dependencies and SystemUnit.

A SystemUnit wraps one concrete unit with everything the stager needs:
the id handed out by the allocator, the dependencies that must be
satisfied before it runs, the resources its success provides, and
whether it must run on the controlling thread.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from converge.core.units.base import UnitError

if TYPE_CHECKING:
    from converge.core.units import Unit
    from converge.core.units.base import UnitInput

UnitId = int


class DependencyKind(enum.Enum):
    UNIT = "unit"
    FILE = "file"
    DIR = "dir"


@dataclass(frozen=True)
class Dependency:
    """Something a unit needs before it can run.

    Either a specific unit finishing, or a path existing as a file or a
    directory. Path dependencies are satisfied by whichever unit lists
    the same dependency in its ``provides``.
    """

    kind: DependencyKind
    target: UnitId | Path

    @classmethod
    def unit(cls, id: UnitId) -> Dependency:
        return cls(DependencyKind.UNIT, id)

    @classmethod
    def file(cls, path: Path) -> Dependency:
        return cls(DependencyKind.FILE, Path(path))

    @classmethod
    def dir(cls, path: Path) -> Dependency:
        return cls(DependencyKind.DIR, Path(path))

    def __str__(self) -> str:
        if self.kind is DependencyKind.UNIT:
            return f"unit({self.target:03})"
        return f"{self.kind.value}({self.target})"


@dataclass(eq=False)
class SystemUnit:
    """A unit plus its scheduling metadata.

    Identity is the id: hashing uses only the id, and equality compares
    the id and the set of provided resources, never the payload.
    """

    id: UnitId
    unit: Unit
    dependencies: list[Dependency] = field(default_factory=list)
    provides: list[Dependency] = field(default_factory=list)
    thread_local: bool = False

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SystemUnit):
            return NotImplemented
        return self.id == other.id and frozenset(self.provides) == frozenset(other.provides)

    def __str__(self) -> str:
        return f"unit({self.id:03}): {self.unit}"

    def apply(self, unit_input: UnitInput) -> None:
        """Apply the wrapped unit.

        Raises:
            UnitError: Wrapping whatever the unit raised, chained as __cause__.
        """
        try:
            self.unit.apply(unit_input)
        except Exception as e:
            raise UnitError(self.id, f"Failed to run {self}") from e
