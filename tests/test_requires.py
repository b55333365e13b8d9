"""
Tests for system requires wiring — pre/post markers, aliases, cycles.
"""

import logging

import pytest

from converge.core.engine.allocator import UnitAllocator
from converge.core.engine.requires import (
    RequiresCycleError,
    RequiresError,
    SystemDependency,
    SystemPlan,
    wire_systems,
)
from converge.core.engine.stager import Stager
from converge.core.models.unit import Dependency, SystemUnit
from converge.core.units import SystemMarker


def _unit(allocator: UnitAllocator) -> SystemUnit:
    return allocator.unit(SystemMarker())


class TestResolve:
    def test_none(self):
        assert SystemDependency.none().resolve({}) == []

    def test_direct(self):
        assert SystemDependency.direct(4).resolve({}) == [Dependency.unit(4)]

    def test_transitive_through_alias(self):
        systems = {
            "alias": SystemDependency.transitive(["a", "b"]),
            "a": SystemDependency.direct(1),
            "b": SystemDependency.direct(2),
        }
        resolved = SystemDependency.transitive(["alias"]).resolve(systems)
        assert resolved == [Dependency.unit(1), Dependency.unit(2)]

    def test_diamond_is_not_a_cycle(self):
        systems = {
            "left": SystemDependency.transitive(["base"]),
            "right": SystemDependency.transitive(["base"]),
            "base": SystemDependency.direct(9),
        }
        resolved = SystemDependency.transitive(["left", "right"]).resolve(systems)
        assert resolved == [Dependency.unit(9)]

    def test_cycle_is_named(self):
        systems = {
            "a": SystemDependency.transitive(["b"]),
            "b": SystemDependency.transitive(["a"]),
        }
        with pytest.raises(RequiresCycleError) as exc:
            SystemDependency.transitive(["a"]).resolve(systems)
        assert exc.value.cycle == ["a", "b", "a"]
        assert "a -> b -> a" in str(exc.value)

    def test_cycle_back_to_origin(self):
        systems = {"alias": SystemDependency.transitive(["me"])}
        with pytest.raises(RequiresCycleError) as exc:
            SystemDependency.transitive(["alias"]).resolve(systems, origin="me")
        assert exc.value.cycle == ["me", "alias", "me"]

    def test_unknown_name_is_skipped(self, caplog):
        systems = {"a": SystemDependency.direct(1)}
        with caplog.at_level(logging.WARNING):
            resolved = SystemDependency.transitive(["a", "ghost"]).resolve(systems)
        assert resolved == [Dependency.unit(1)]
        assert "ghost" in caplog.text


class TestWireSystems:
    def test_system_without_requires_or_id(self, allocator: UnitAllocator):
        units = [_unit(allocator), _unit(allocator)]
        wired = wire_systems(allocator, [SystemPlan(units=units)])
        assert wired == units

    def test_post_marker_depends_on_all_units(self, allocator: UnitAllocator):
        units = [_unit(allocator), _unit(allocator)]
        wired = wire_systems(allocator, [SystemPlan(id="dotfiles", units=units)])

        assert len(wired) == 3
        post = next(u for u in wired if u not in units)
        assert post.dependencies == [Dependency.unit(u.id) for u in units]

    def test_pre_marker_gates_units(self, allocator: UnitAllocator):
        base_unit = _unit(allocator)
        dep_unit = _unit(allocator)

        wired = wire_systems(
            allocator,
            [
                SystemPlan(id="base", units=[base_unit]),
                SystemPlan(id="tools", requires=["base"], units=[dep_unit]),
            ],
        )

        markers = [u for u in wired if u not in (base_unit, dep_unit)]
        pre = next(m for m in markers if Dependency.unit(m.id) in dep_unit.dependencies)
        base_post = next(
            m for m in markers if m.dependencies == [Dependency.unit(base_unit.id)]
        )
        assert pre.dependencies == [Dependency.unit(base_post.id)]

    def test_required_system_finishes_first(self, allocator: UnitAllocator):
        base_unit = _unit(allocator)
        dep_unit = _unit(allocator)
        wired = wire_systems(
            allocator,
            [
                SystemPlan(id="tools", requires=["base"], units=[dep_unit]),
                SystemPlan(id="base", units=[base_unit]),
            ],
        )

        order: list[int] = []
        stager = Stager(wired)
        while (stage := stager.stage()) is not None:
            for unit in stage.units:
                order.append(unit.id)
                stager.mark(unit)

        assert order.index(base_unit.id) < order.index(dep_unit.id)

    def test_empty_system_is_an_alias(self, allocator: UnitAllocator):
        base_unit = _unit(allocator)
        dep_unit = _unit(allocator)
        wired = wire_systems(
            allocator,
            [
                SystemPlan(id="base", units=[base_unit]),
                SystemPlan(id="everything", requires=["base"]),
                SystemPlan(id="tools", requires=["everything"], units=[dep_unit]),
            ],
        )

        base_post = next(
            u for u in wired if u.dependencies == [Dependency.unit(base_unit.id)]
        )
        pres = [
            u for u in wired if Dependency.unit(base_post.id) in u.dependencies
        ]
        assert len(pres) == 1
        assert Dependency.unit(pres[0].id) in dep_unit.dependencies

    def test_alias_gets_no_markers(self, allocator: UnitAllocator):
        base_unit = _unit(allocator)
        wired = wire_systems(
            allocator,
            [
                SystemPlan(id="base", units=[base_unit]),
                SystemPlan(id="everything", requires=["base"]),
            ],
        )

        # base_unit plus its post marker; the alias adds nothing to run
        assert len(wired) == 2
        stager = Stager(wired)
        assert [u.id for u in stager.stage()] == [base_unit.id]

    def test_duplicate_ids_rejected(self, allocator: UnitAllocator):
        with pytest.raises(RequiresError):
            wire_systems(
                allocator,
                [
                    SystemPlan(id="same", units=[_unit(allocator)]),
                    SystemPlan(id="same", units=[_unit(allocator)]),
                ],
            )

    def test_alias_cycle_rejected(self, allocator: UnitAllocator):
        with pytest.raises(RequiresCycleError):
            wire_systems(
                allocator,
                [
                    SystemPlan(id="a", requires=["b"]),
                    SystemPlan(id="b", requires=["a"]),
                ],
            )
