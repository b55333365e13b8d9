"""
Stager — turns a flat set of units into a stream of runnable stages.

Flow:
    stage() → run every unit of the stage → mark() each success → stage() ...

Each call to ``stage()`` moves every pending unit whose dependencies
are satisfied into one of two buffers, then drains one of them:

    parallel buffer       units safe to fan out on the worker pool
    thread-local buffer   units that must run one at a time on the
                          controlling thread (they may prompt)

The parallel buffer is drained first. A thread-local stage preserves
the order in which its units were given to the stager.

The stager is owned by a single coordinating thread. Only stage
*contents* cross to worker threads; ``mark()`` is called after the
stage has been joined.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from converge.core.models.unit import Dependency, SystemUnit

logger = logging.getLogger(__name__)


class UnschedulableError(Exception):
    """Units remain but none of them can become ready.

    Either a dependency has no producer, a producer failed, or the
    dependencies form a cycle. The stuck units stay pending in the
    stager and are also carried here.
    """

    def __init__(self, units: list[SystemUnit]):
        self.units = list(units)
        super().__init__(f"Unable to schedule {len(self.units)} unit(s)")


@dataclass
class Stage:
    """One scheduling round: a batch of units that may run now."""

    thread_local: bool
    units: list[SystemUnit] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.units)

    def __iter__(self):
        return iter(self.units)


class Stager:
    """Incrementally computes stages as units complete."""

    def __init__(self, units: Iterable[SystemUnit]):
        self._units: list[SystemUnit] = list(units)
        self._satisfied: set[Dependency] = set()
        self._thread_local_buffer: list[SystemUnit] = []
        self._parallel_buffer: list[SystemUnit] = []

    @property
    def satisfied(self) -> frozenset[Dependency]:
        """Every dependency satisfied so far."""
        return frozenset(self._satisfied)

    @property
    def pending(self) -> int:
        """Number of units not yet handed out."""
        return len(self._units) + len(self._thread_local_buffer) + len(self._parallel_buffer)

    def stage(self) -> Stage | None:
        """Compute the next stage.

        Returns:
            The next Stage, or None once every unit has been handed out.

        Raises:
            UnschedulableError: Units remain but none of them are ready.
        """
        not_ready: list[SystemUnit] = []

        for unit in self._units:
            if all(dep in self._satisfied for dep in unit.dependencies):
                if unit.thread_local:
                    self._thread_local_buffer.append(unit)
                else:
                    self._parallel_buffer.append(unit)
            else:
                not_ready.append(unit)

        self._units = not_ready

        if self._parallel_buffer:
            units, self._parallel_buffer = self._parallel_buffer, []
            return Stage(thread_local=False, units=units)

        if self._thread_local_buffer:
            units, self._thread_local_buffer = self._thread_local_buffer, []
            return Stage(thread_local=True, units=units)

        if not self._units:
            return None

        for unit in self._units:
            missing = [str(d) for d in unit.dependencies if d not in self._satisfied]
            logger.debug("%s is waiting on: %s", unit, ", ".join(missing))

        raise UnschedulableError(self._units)

    def mark(self, unit: SystemUnit) -> None:
        """Record that ``unit`` completed successfully.

        Everything it provides, plus a dependency on the unit itself,
        is satisfied from now on. Never call this for a failed unit.
        """
        self._satisfied.update(unit.provides)
        self._satisfied.add(Dependency.unit(unit.id))

    def into_unstaged(self) -> list[SystemUnit]:
        """Every unit that was never handed out in a stage."""
        return self._units + self._parallel_buffer + self._thread_local_buffer
