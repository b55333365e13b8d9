"""
Unit allocator — unique, monotonic unit ids.

Systems produce their units concurrently, one worker per system, so
ids are handed out from a single ``itertools.count``. Its ``next()``
runs in C without releasing the GIL, which makes it an atomic
fetch-and-increment; no lock is involved.
"""

from __future__ import annotations

import itertools

from converge.core.models.unit import SystemUnit, UnitId
from converge.core.units import Unit


class UnitAllocator:
    """Hands out unit ids, starting at 0, never reusing one."""

    def __init__(self) -> None:
        self._counter = itertools.count()

    def allocate(self) -> UnitId:
        """Allocate the next id."""
        return next(self._counter)

    def unit(self, payload: Unit) -> SystemUnit:
        """Wrap ``payload`` in a SystemUnit with a fresh id.

        The result has no dependencies, provides nothing and is not
        thread-local; producers fill those in.
        """
        return SystemUnit(id=self.allocate(), unit=payload)
