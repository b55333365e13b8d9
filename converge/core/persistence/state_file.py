"""
State file persistence — atomic read/write for RunState.

State lives in <root>/.state/run-state.json. It is written only when
the run changed something, and always via a temp file in the same
directory followed by a rename, so a crash never leaves a half-written
file behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from converge.core.models.config import Config
from converge.core.models.state import PersistedState, RunState

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".state"
DEFAULT_STATE_FILE = "run-state.json"


def default_state_path(root: Path) -> Path:
    """The state file path for a configuration root."""
    return root / DEFAULT_STATE_DIR / DEFAULT_STATE_FILE


def load_state(path: Path, config: Config, now: datetime) -> RunState:
    """Load run state from a JSON file.

    A missing or unreadable file is not fatal: the run starts from an
    empty state, which at worst repeats some work.
    """
    if not path.is_file():
        logger.info("No state file at %s, starting fresh", path)
        return RunState.empty(config, now)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        persisted = PersistedState.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Corrupt state file %s: %s (starting fresh)", path, e)
        return RunState.empty(config, now)

    logger.debug(
        "Loaded state from %s (%d hash(es), %d once marker(s))",
        path,
        len(persisted.hashes),
        len(persisted.once),
    )
    return RunState.from_persisted(persisted, config, now)


def save_state(state: RunState, path: Path) -> bool:
    """Write run state to ``path`` if it changed.

    Returns:
        True if the file was written, False if the state was clean.
    """
    persisted = state.serialize()
    if persisted is None:
        logger.debug("State unchanged, not writing %s", path)
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(persisted.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".run-state_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s: %s", path, e)
        raise

    logger.debug("State saved to %s", path)
    return True


def clear_state(path: Path) -> bool:
    """Remove the state file. Returns whether there was one."""
    if not path.exists():
        return False
    path.unlink()
    logger.info("Removed state file %s", path)
    return True
