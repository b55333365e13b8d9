"""
Config check use case — validate converge.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from converge.core.config.loader import CONFIG_FILE, ConfigError, config_path, load_config
from converge.core.models.config import Config


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: Config | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "config": self.config.model_dump(mode="json") if self.config else None,
        }


def check_config(root: Path) -> ConfigCheckResult:
    """Validate the configuration under ``root``."""
    result = ConfigCheckResult(config_path=config_path(root))

    if not root.is_dir():
        result.errors.append(f"Missing configuration directory: {root}")
        return result

    try:
        config = load_config(result.config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.config = config
    result.valid = True

    if not result.config_path.exists():
        result.warnings.append(f"No {CONFIG_FILE} found, using defaults.")

    if config.git_refresh.total_seconds() == 0:
        result.warnings.append("git_refresh is zero: the checkout is fetched on every run.")

    if config.package_refresh.total_seconds() == 0:
        result.warnings.append(
            "package_refresh is zero: installed packages are listed on every run."
        )

    return result
