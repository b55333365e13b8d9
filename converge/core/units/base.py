"""
Unit input and errors — what every unit receives and raises.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from converge.adapters.base import GitBackend
    from converge.adapters.shell.packages import PackageProvider
    from converge.core.models.config import Config
    from converge.core.models.state import RunState


@dataclass
class UnitInput:
    """All inputs for applying one unit.

    ``read_state`` is the shared baseline and must not be mutated;
    anything the unit records goes into its own ``state``.
    """

    config: Config
    read_state: RunState
    state: RunState
    now: datetime
    data: Mapping[str, Any] = field(default_factory=dict)
    packages: PackageProvider | None = None
    git: GitBackend | None = None

    def require_git(self) -> GitBackend:
        if self.git is None:
            raise RuntimeError("No git backend available")
        return self.git


class UnitError(Exception):
    """A unit's action failed. The underlying error is chained as __cause__."""

    def __init__(self, unit_id: int, message: str):
        super().__init__(message)
        self.unit_id = unit_id
