"""
Configuration loader — reads converge.yml into a Config.

The configuration root holds converge.yml next to the templates and
files systems copy from. A missing file is not an error: every
setting has a default.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import click
import yaml
from pydantic import ValidationError

from converge.core.models.config import Config

logger = logging.getLogger(__name__)

# Default config filename, relative to the configuration root
CONFIG_FILE = "converge.yml"

ROOT_ENV_VAR = "CONVERGE_ROOT"


class ConfigError(Exception):
    """Raised when converge.yml is unreadable or invalid."""


def default_root() -> Path:
    """The configuration root: $CONVERGE_ROOT, else the per-user app dir."""
    env = os.environ.get(ROOT_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return Path(click.get_app_dir("converge"))


def config_path(root: Path) -> Path:
    return root / CONFIG_FILE


def load_config(path: Path) -> Config:
    """Load and validate converge.yml.

    Args:
        path: Path to converge.yml.

    Returns:
        Validated Config. Defaults if the file does not exist.

    Raises:
        ConfigError: If the file cannot be read, is not YAML, or does
            not match the schema.
    """
    if not path.exists():
        logger.info("No %s at %s, using defaults", CONFIG_FILE, path)
        return Config()

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Config()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.debug(
        "Loaded config (git_refresh=%s, package_refresh=%s)",
        config.git_refresh,
        config.package_refresh,
    )
    return config
