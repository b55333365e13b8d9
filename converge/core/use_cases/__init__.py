"""Use cases — the entry points for driving converge from code.

Public re-exports for convenient access. Callers build their units
(e.g. with ``FileSystemPlanner``, ``plan_packages`` and
``wire_systems``) and hand them to ``apply_units``.
"""

from converge.core.use_cases.apply import ApplyResult, apply_units
from converge.core.use_cases.config_check import ConfigCheckResult, check_config
from converge.core.use_cases.update import UpdateResult, init_config_repo, update_config_repo

__all__ = [
    "ApplyResult",
    "ConfigCheckResult",
    "UpdateResult",
    "apply_units",
    "check_config",
    "init_config_repo",
    "update_config_repo",
]
