"""
System requires — wiring whole systems together through marker units.

A declared system may require other systems by name. That is resolved
once, before scheduling, into plain unit dependencies:

    pre   a SystemMarker every unit of the system depends on; it in turn
          depends on whatever the required systems resolve to
    post  a SystemMarker depending on every unit of the system, so others
          can wait for "system X is done" through a single unit id

A system with an id but no units of its own is an alias: requiring it
is the same as requiring whatever it requires.

Systems themselves are produced by the caller; ``wire_systems`` takes
their units and returns the flat list ``apply_units`` runs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from converge.core.engine.allocator import UnitAllocator
from converge.core.models.unit import Dependency, SystemUnit, UnitId
from converge.core.units import SystemMarker

logger = logging.getLogger(__name__)


class RequiresError(Exception):
    """System requirements cannot be wired."""


class RequiresCycleError(RequiresError):
    """Systems require each other in a loop."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Systems require each other in a cycle: {' -> '.join(self.cycle)}")


@dataclass(frozen=True)
class SystemDependency:
    """What depending on a system means.

    ``names`` set: look up each named system (transitive).
    ``unit_id`` set: depend on exactly that unit (direct).
    Neither: nothing to depend on.
    """

    names: tuple[str, ...] = ()
    unit_id: UnitId | None = None

    @classmethod
    def transitive(cls, names: Iterable[str]) -> SystemDependency:
        return cls(names=tuple(names))

    @classmethod
    def direct(cls, unit_id: UnitId) -> SystemDependency:
        return cls(unit_id=unit_id)

    @classmethod
    def none(cls) -> SystemDependency:
        return cls()

    def resolve(
        self,
        systems: Mapping[str, SystemDependency],
        origin: str | None = None,
    ) -> list[Dependency]:
        """Resolve into unit dependencies, following aliases.

        Args:
            systems: Registered dependency of every system, by id.
            origin: Name of the system being resolved for, if any. It
                counts as visited, so an alias leading back to it is
                reported as a cycle.

        Returns:
            Unit dependencies, de-duplicated, in discovery order.

        Raises:
            RequiresCycleError: If aliases loop back on themselves.
        """
        found: list[Dependency] = []
        path: list[str] = [origin] if origin else []
        self._walk(systems, path, found)
        return found

    def _walk(
        self,
        systems: Mapping[str, SystemDependency],
        path: list[str],
        found: list[Dependency],
    ) -> None:
        if self.unit_id is not None:
            dep = Dependency.unit(self.unit_id)
            if dep not in found:
                found.append(dep)
            return

        for name in self.names:
            if name in path:
                raise RequiresCycleError(path[path.index(name):] + [name])

            required = systems.get(name)
            if required is None:
                logger.warning("Required system `%s` does not exist, ignoring", name)
                continue

            path.append(name)
            required._walk(systems, path, found)
            path.pop()


@dataclass
class SystemPlan:
    """The units one system produced, plus how it relates to others."""

    id: str | None = None
    requires: list[str] = field(default_factory=list)
    units: list[SystemUnit] = field(default_factory=list)

    def __str__(self) -> str:
        return self.id or "<anonymous system>"


def wire_systems(allocator: UnitAllocator, systems: Iterable[SystemPlan]) -> list[SystemUnit]:
    """Flatten systems into one list of units with requires wired in.

    Args:
        allocator: Allocator for the marker units.
        systems: Every system of the run.

    Returns:
        All units, including pre and post markers.

    Raises:
        RequiresError: If two systems share an id.
        RequiresCycleError: If requires loop back on themselves.
    """
    all_units: list[SystemUnit] = []
    registered: dict[str, SystemDependency] = {}
    pre_systems: list[tuple[SystemUnit, SystemPlan]] = []
    aliases: list[str] = []

    for system in systems:
        units = list(system.units)

        if system.requires and units:
            pre = allocator.unit(SystemMarker())
            for unit in units:
                unit.dependencies.append(Dependency.unit(pre.id))
            pre_systems.append((pre, system))

        if system.id:
            if system.id in registered:
                raise RequiresError(f"Duplicate system id `{system.id}`")

            if not units:
                registered[system.id] = SystemDependency.transitive(system.requires)
                aliases.append(system.id)
            else:
                post = allocator.unit(SystemMarker())
                post.dependencies.extend(Dependency.unit(u.id) for u in units)
                registered[system.id] = SystemDependency.direct(post.id)
                all_units.append(post)

        all_units.extend(units)

    for pre, system in pre_systems:
        depend = SystemDependency.transitive(system.requires)
        pre.dependencies.extend(depend.resolve(registered, origin=system.id))
        all_units.append(pre)

    # Aliases gate nothing, but a loop through them is still an error.
    for name in aliases:
        registered[name].resolve(registered, origin=name)

    logger.debug(
        "Wired %d unit(s), %d system(s) registered", len(all_units), len(registered)
    )
    return all_units
