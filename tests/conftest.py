"""
Shared test fixtures and configuration.
"""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from converge.adapters.mock import MockGit, MockPackageManager
from converge.adapters.shell.packages import PackageProvider
from converge.core.engine.allocator import UnitAllocator
from converge.core.engine.executor import UnitContext
from converge.core.models.config import Config
from converge.core.models.state import RunState


@pytest.fixture
def now() -> datetime:
    """A fixed, timezone-aware run timestamp."""
    return datetime.now(UTC)


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def run_state(config: Config, now: datetime) -> RunState:
    """An empty, clean run state."""
    return RunState.empty(config, now)


@pytest.fixture
def allocator() -> UnitAllocator:
    return UnitAllocator()


@pytest.fixture
def packages() -> MockPackageManager:
    return MockPackageManager()


@pytest.fixture
def git() -> MockGit:
    return MockGit()


@pytest.fixture
def context(config: Config, now: datetime, packages: MockPackageManager, git: MockGit) -> UnitContext:
    """A unit context wired to mock capabilities."""
    return UnitContext(config=config, packages=PackageProvider(packages), git=git, now=now)


@pytest.fixture
def config_root(tmp_path: Path) -> Path:
    """Return an empty configuration root directory."""
    root = tmp_path / "root"
    root.mkdir()
    return root
