"""
Tests for planning — path claims, directory chains, copies, links, packages.
"""

import os
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from converge.adapters.mock import MockPackageManager
from converge.core.engine.allocator import UnitAllocator
from converge.core.models.state import RunState
from converge.core.models.unit import Dependency
from converge.core.planning.file_system import (
    ClaimConflictError,
    FileSystemPlanner,
    PlanningError,
    find_claim_conflicts,
)
from converge.core.planning.packages import plan_packages
from converge.core.units import CopyFile, CopyTemplate, CreateDir, Symlink


@pytest.fixture
def planner(allocator: UnitAllocator) -> FileSystemPlanner:
    return FileSystemPlanner(allocator)


# ── Claims ───────────────────────────────────────────────────────────


class TestClaims:
    def test_second_producer_rejected(self, planner: FileSystemPlanner, allocator: UnitAllocator):
        path = Path("/p")
        one = allocator.unit(CreateDir(path))
        two = allocator.unit(CreateDir(path))

        planner.claim(one, planner.dir_dependency(path))
        with pytest.raises(ClaimConflictError):
            planner.claim(two, planner.dir_dependency(path))

    def test_claim_adds_provides(self, planner: FileSystemPlanner, allocator: UnitAllocator):
        unit = allocator.unit(CreateDir(Path("/p")))
        planner.claim(unit, Dependency.dir(Path("/p")))
        assert unit.provides == [Dependency.dir(Path("/p"))]
        assert planner.is_claimed(Path("/p"))

    def test_file_and_dir_of_same_path_conflict(self, planner: FileSystemPlanner):
        planner.file_dependency(Path("/p"))
        with pytest.raises(PlanningError):
            planner.dir_dependency(Path("/p"))

    def test_concurrent_claims_allow_one_winner(self, allocator: UnitAllocator):
        planner = FileSystemPlanner(allocator)
        path = Path("/shared")

        def claim(_: int) -> bool:
            unit = allocator.unit(CreateDir(path))
            try:
                planner.claim(unit, planner.dir_dependency(path))
            except ClaimConflictError:
                return False
            return True

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(claim, range(16)))

        assert results.count(True) == 1


class TestFindClaimConflicts:
    def test_detects_duplicate_dir(self, allocator: UnitAllocator):
        p = Path("/p")
        one = allocator.unit(CreateDir(p))
        one.provides.append(Dependency.dir(p))
        two = allocator.unit(CreateDir(p))
        two.provides.append(Dependency.dir(p))

        conflicts = find_claim_conflicts([one, two])
        assert conflicts == {Dependency.dir(p): [one.id, two.id]}

    def test_unit_dependencies_ignored(self, allocator: UnitAllocator):
        one = allocator.unit(CreateDir(Path("/a")))
        one.provides.append(Dependency.unit(42))
        two = allocator.unit(CreateDir(Path("/b")))
        two.provides.append(Dependency.unit(42))
        assert find_claim_conflicts([one, two]) == {}

    def test_no_conflicts(self, allocator: UnitAllocator):
        one = allocator.unit(CreateDir(Path("/a")))
        one.provides.append(Dependency.dir(Path("/a")))
        assert find_claim_conflicts([one]) == {}


# ── Directory chains ─────────────────────────────────────────────────


class TestCreateDirAll:
    def test_existing_dir_needs_nothing(self, planner: FileSystemPlanner, tmp_path: Path):
        assert planner.create_dir_all(tmp_path) == []

    def test_chain_of_missing_dirs(self, planner: FileSystemPlanner, tmp_path: Path):
        target = tmp_path / "a" / "b" / "c"
        units = planner.create_dir_all(target)

        assert [u.unit.path for u in units] == [
            tmp_path / "a",
            tmp_path / "a" / "b",
            target,
        ]
        assert units[0].dependencies == []
        assert units[1].dependencies == [Dependency.dir(tmp_path / "a")]
        assert units[2].dependencies == [Dependency.dir(tmp_path / "a" / "b")]
        assert units[2].provides == [Dependency.dir(target)]

    def test_shared_ancestors_planned_once(self, planner: FileSystemPlanner, tmp_path: Path):
        first = planner.create_dir_all(tmp_path / "a" / "b")
        second = planner.create_dir_all(tmp_path / "a" / "c")

        assert len(first) == 2
        assert [u.unit.path for u in second] == [tmp_path / "a" / "c"]
        assert second[0].dependencies == [Dependency.dir(tmp_path / "a")]
        assert find_claim_conflicts(first + second) == {}

    def test_already_planned_dir(self, planner: FileSystemPlanner, tmp_path: Path):
        planner.create_dir_all(tmp_path / "a")
        assert planner.create_dir_all(tmp_path / "a") == []


# ── Copies ───────────────────────────────────────────────────────────


class TestCopyFile:
    def test_missing_destination(self, planner: FileSystemPlanner, tmp_path: Path):
        src = tmp_path / "src"
        src.write_text("x")
        unit = planner.copy_file(src, tmp_path / "dest")

        assert unit is not None
        assert isinstance(unit.unit, CopyFile)
        assert unit.provides == [Dependency.file(tmp_path / "dest")]
        assert unit.dependencies == []

    def test_up_to_date_destination(self, planner: FileSystemPlanner, tmp_path: Path):
        src = tmp_path / "src"
        src.write_text("x")
        dest = tmp_path / "dest"
        dest.write_text("x")
        later = time.time() + 10
        os.utime(dest, (later, later))

        assert planner.copy_file(src, dest) is None

    def test_stale_destination(self, planner: FileSystemPlanner, tmp_path: Path):
        src = tmp_path / "src"
        src.write_text("new")
        dest = tmp_path / "dest"
        dest.write_text("old")
        earlier = time.time() - 100
        os.utime(dest, (earlier, earlier))

        assert planner.copy_file(src, dest) is not None

    def test_template_always_planned(self, planner: FileSystemPlanner, tmp_path: Path):
        src = tmp_path / "t.j2"
        src.write_text("x")
        dest = tmp_path / "dest"
        dest.write_text("x")
        later = time.time() + 10
        os.utime(dest, (later, later))

        unit = planner.copy_file(src, dest, template=True)
        assert unit is not None
        assert isinstance(unit.unit, CopyTemplate)

    def test_depends_on_missing_parent(self, planner: FileSystemPlanner, tmp_path: Path):
        src = tmp_path / "src"
        src.write_text("x")
        dirs = planner.create_dir_all(tmp_path / "new")
        unit = planner.copy_file(src, tmp_path / "new" / "dest")

        assert unit.dependencies == [Dependency.dir(tmp_path / "new")]
        assert dirs[0].provides == [Dependency.dir(tmp_path / "new")]

    def test_destination_is_a_directory(self, planner: FileSystemPlanner, tmp_path: Path):
        src = tmp_path / "src"
        src.write_text("x")
        (tmp_path / "dest").mkdir()
        with pytest.raises(PlanningError):
            planner.copy_file(src, tmp_path / "dest")


# ── Symlinks ─────────────────────────────────────────────────────────


class TestSymlink:
    def test_new_link(self, planner: FileSystemPlanner, tmp_path: Path):
        unit = planner.symlink(tmp_path / "link", tmp_path / "target")
        assert unit is not None
        assert unit.unit == Symlink(tmp_path / "link", tmp_path / "target", remove=False)

    def test_correct_link_needs_nothing(self, planner: FileSystemPlanner, tmp_path: Path):
        (tmp_path / "link").symlink_to(tmp_path / "target")
        assert planner.symlink(tmp_path / "link", tmp_path / "target") is None

    def test_wrong_link_without_force(self, planner: FileSystemPlanner, tmp_path: Path):
        (tmp_path / "link").symlink_to(tmp_path / "elsewhere")
        with pytest.raises(PlanningError, match="--force"):
            planner.symlink(tmp_path / "link", tmp_path / "target")

    def test_wrong_link_with_force(self, allocator: UnitAllocator, tmp_path: Path):
        planner = FileSystemPlanner(allocator, force=True)
        (tmp_path / "link").symlink_to(tmp_path / "elsewhere")
        unit = planner.symlink(tmp_path / "link", tmp_path / "target")
        assert unit is not None
        assert unit.unit.remove is True

    def test_regular_file_in_the_way(self, planner: FileSystemPlanner, tmp_path: Path):
        (tmp_path / "link").write_text("x")
        with pytest.raises(PlanningError, match="not a symlink"):
            planner.symlink(tmp_path / "link", tmp_path / "target")


# ── Packages ─────────────────────────────────────────────────────────


class TestPlanPackages:
    def test_missing_packages_planned(self, allocator: UnitAllocator, run_state: RunState):
        manager = MockPackageManager(installed={"git"})

        unit = plan_packages(allocator, manager, ["git", "vim"], "debian", run_state)

        assert unit.unit.to_install == ("vim",)
        assert unit.unit.all_packages == frozenset({"git", "vim"})
        assert unit.thread_local is False

    def test_interactive_manager_is_thread_local(
        self, allocator: UnitAllocator, run_state: RunState
    ):
        manager = MockPackageManager("apt", interactive=True)
        unit = plan_packages(allocator, manager, ["vim"], "debian", run_state)
        assert unit.thread_local is True

    def test_nothing_missing_runs_in_parallel(
        self, allocator: UnitAllocator, run_state: RunState
    ):
        manager = MockPackageManager("apt", installed={"vim"}, interactive=True)

        unit = plan_packages(allocator, manager, ["vim"], "debian", run_state)

        assert unit.unit.to_install == ()
        assert unit.thread_local is False

    def test_fresh_hash_skips_listing(self, allocator: UnitAllocator, run_state: RunState):
        manager = MockPackageManager()
        run_state.touch_hash("debian", ["git", "vim"])

        assert plan_packages(allocator, manager, ["vim", "git"], "debian", run_state) is None

    def test_changed_list_is_replanned(self, allocator: UnitAllocator, run_state: RunState):
        manager = MockPackageManager()
        run_state.touch_hash("debian", ["git"])

        unit = plan_packages(allocator, manager, ["git", "vim"], "debian", run_state)

        assert unit.unit.to_install == ("git", "vim")
