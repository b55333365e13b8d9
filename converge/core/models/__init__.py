"""
Domain models — configuration, run state, scheduling metadata, receipts.

Re-exported here for convenient access:

    from converge.core.models import Config, RunState, SystemUnit, Dependency
"""

from converge.core.models.config import Config, parse_duration
from converge.core.models.receipt import UnitReceipt
from converge.core.models.state import Hashed, PersistedState, RunState, stable_hash
from converge.core.models.unit import Dependency, DependencyKind, SystemUnit, UnitId

__all__ = [
    # config.py
    "Config",
    "parse_duration",
    # receipt.py
    "UnitReceipt",
    # state.py
    "Hashed",
    "PersistedState",
    "RunState",
    "stable_hash",
    # unit.py
    "Dependency",
    "DependencyKind",
    "SystemUnit",
    "UnitId",
]
