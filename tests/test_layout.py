"""Tests for FactoryLayout - the central entity manager.

Tests: placement, connecting, obstacles, movement, deletion cascade, undo,
junction insertion (split/replace), queries, serialization, cleanup
Focus: Port occupancy bookkeeping stays consistent through every operation
and its undo
"""

import json

import pytest

from factory_planner.constants import UndoConfig
from factory_planner.core.geometry import Obstacle, Point
from factory_planner.core.path_validator import is_path_clear
from factory_planner.model.connection_point import ConnectionSide
from factory_planner.model.layout import (
    AddBeltAction,
    AddEntityAction,
    DeleteBeltAction,
    DeleteEntityAction,
    FactoryLayout,
    RewireAction,
)

# =============================================================================
# TESTS FOR PLACEMENT
# =============================================================================


class TestPlacement:
    """add_factory / add_machine / add_junction - footprint checks."""

    def test_ids_and_catalog_sizes(self, empty_layout: FactoryLayout) -> None:
        smelter = empty_layout.add_machine(name="Smelter", x=0, y=0)
        assembler = empty_layout.add_machine(name="Assembler", x=128, y=0)
        assert (smelter.id, assembler.id) == ("F1", "F2")
        assert (assembler.grid_width, assembler.grid_height) == (3, 3)
        assert isinstance(empty_layout.undo_stack[-1], AddEntityAction)

    def test_overlap_is_rejected_without_consuming_an_id(self, empty_layout: FactoryLayout) -> None:
        empty_layout.add_machine(name="Smelter", x=0, y=0)
        with pytest.raises(ValueError):
            empty_layout.add_machine(name="Smelter", x=32, y=0)
        assert len(empty_layout.factories) == 1
        assert empty_layout.add_machine(name="Smelter", x=128, y=0).id == "F2"

    def test_shared_edge_is_not_overlap(self, empty_layout: FactoryLayout) -> None:
        empty_layout.add_machine(name="Smelter", x=0, y=0)
        empty_layout.add_machine(name="Smelter", x=64, y=0)
        assert len(empty_layout.factories) == 2

    def test_junction_snaps_to_tile_centre(self, empty_layout: FactoryLayout) -> None:
        junction = empty_layout.add_junction(x=50, y=40)
        assert (junction.id, junction.x, junction.y) == ("J1", 48, 48)

    def test_junction_on_factory_is_rejected(self, empty_layout: FactoryLayout) -> None:
        empty_layout.add_machine(name="Smelter", x=0, y=0)
        with pytest.raises(ValueError):
            empty_layout.add_junction(x=32, y=32)
        assert empty_layout.junctions == {}

    def test_get_entity_unknown_raises(self, empty_layout: FactoryLayout) -> None:
        with pytest.raises(KeyError):
            empty_layout.get_entity("F99")


# =============================================================================
# TESTS FOR CONNECTING
# =============================================================================


class TestConnect:
    """can_connect / connect - legality and routing."""

    def test_connect_routes_between_facing_ports(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        assert belt.id == "B1"
        assert belt.path == [Point(x=66, y=32), Point(x=106, y=32), Point(x=214, y=32), Point(x=254, y=32)]
        assert belt.length == pytest.approx(188)
        assert smelter.outputs[0].connected_belt is belt
        assert constructor.inputs[0].connected_belt is belt
        assert isinstance(layout.undo_stack[-1], AddBeltAction)

    def test_occupied_port_cannot_connect_again(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])
        endpoint = layout.add_free_endpoint(x=150, y=150)

        assert not layout.can_connect(start=smelter.outputs[0], end=endpoint)
        with pytest.raises(ValueError):
            layout.connect(start=smelter.outputs[0], end=endpoint)

    def test_direction_of_flow_is_enforced(self, smelter_and_constructor) -> None:
        """Belts run output -> input; free endpoints relax only their own side."""
        layout, smelter, constructor = smelter_and_constructor
        node = layout.add_free_endpoint(x=150, y=150)

        assert not layout.can_connect(start=constructor.inputs[0], end=smelter.outputs[0])
        assert not layout.can_connect(start=constructor.inputs[0], end=node)
        assert not layout.can_connect(start=node, end=smelter.outputs[0])
        assert layout.can_connect(start=node, end=constructor.inputs[0])
        assert layout.can_connect(start=smelter.outputs[0], end=node)

    def test_free_endpoint_rules(self, empty_layout: FactoryLayout) -> None:
        a = empty_layout.add_free_endpoint(x=0, y=0)
        b = empty_layout.add_free_endpoint(x=100, y=0)
        assert empty_layout.can_connect(start=a, end=b)
        assert not empty_layout.can_connect(start=a, end=a)

    def test_coincident_endpoints_cannot_connect(self, empty_layout: FactoryLayout) -> None:
        a = empty_layout.add_free_endpoint(x=100, y=100)
        b = empty_layout.add_free_endpoint(x=100, y=100)

        assert not empty_layout.can_connect(start=a, end=b)
        with pytest.raises(ValueError):
            empty_layout.connect(start=a, end=b)
        assert empty_layout.belts == {}

    def test_port_to_free_endpoint_inherits_direction(self, smelter_and_constructor) -> None:
        layout, smelter, _ = smelter_and_constructor
        node = layout.add_free_endpoint(x=200, y=32)
        belt = layout.connect(start=smelter.outputs[0], end=node)

        assert belt.path == [Point(x=66, y=32), Point(x=200, y=32)]
        assert node.get_direction_vector().x == 1

    def test_free_start_points_against_first_leg(self, smelter_and_constructor) -> None:
        layout, _, constructor = smelter_and_constructor
        node = layout.add_free_endpoint(x=100, y=100)
        belt = layout.connect(start=node, end=constructor.inputs[0])

        assert belt.path == [Point(x=100, y=100), Point(x=254, y=100), Point(x=254, y=32)]
        assert node.get_direction_vector().x == -1

    def test_unregistered_free_endpoint_is_adopted(self, smelter_and_constructor) -> None:
        from factory_planner.model.free_endpoint import FreeEndpoint

        layout, smelter, _ = smelter_and_constructor
        loose = FreeEndpoint(id="E42", x=200, y=200)
        layout.connect(start=smelter.outputs[0], end=loose)
        assert layout.free_endpoints["E42"] is loose


class TestObstacles:
    """get_obstacles - rebuilt from entity positions on every call."""

    def test_obstacles_track_entities(self, smelter_and_constructor) -> None:
        layout, smelter, _ = smelter_and_constructor
        assert layout.get_obstacles() == [
            Obstacle(x=0, y=0, width=64, height=64),
            Obstacle(x=256, y=0, width=64, height=64),
        ]

        smelter.move_to(x=0, y=128)
        assert layout.get_obstacles()[0] == Obstacle(x=0, y=128, width=64, height=64)

    def test_exclude_and_inset(self, smelter_and_constructor) -> None:
        layout, _, _ = smelter_and_constructor
        assert layout.get_obstacles(exclude=["F1"]) == [Obstacle(x=256, y=0, width=64, height=64)]
        assert layout.get_obstacles(inset=["F1"])[0] == Obstacle(x=8, y=8, width=48, height=48)

    def test_belts_avoid_third_machine(self, smelter_and_constructor) -> None:
        """A machine parked on the direct line forces a detour that clears it."""
        layout, smelter, constructor = smelter_and_constructor
        blocker = layout.add_machine(name="Storage", x=144, y=16)
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        assert any(p.y != 32 for p in belt.path)
        assert is_path_clear(belt.path, [blocker.bounds])
        assert layout.get_stats()["blocked_belts"] == 0


# =============================================================================
# TESTS FOR MOVEMENT
# =============================================================================


class TestMovement:
    """move_entity / snap_entity / move_free_endpoint - live re-routing."""

    def test_move_reroutes_attached_belt(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        layout.move_entity(entity_id=constructor.id, dx=0, dy=64)

        assert belt.path[0] == Point(x=66, y=32)
        assert belt.path[-1] == Point(x=254, y=96)
        assert is_path_clear(belt.path, layout.get_obstacles(exclude=[smelter.id, constructor.id]))

    def test_snap_after_move(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        layout.move_entity_to(entity_id=constructor.id, x=300, y=40)
        layout.snap_entity(constructor.id)

        assert (constructor.x, constructor.y) == (288, 32)
        assert belt.path[-1] == Point(x=286, y=64)

    def test_move_free_endpoint(self, smelter_and_constructor) -> None:
        layout, smelter, _ = smelter_and_constructor
        node = layout.add_free_endpoint(x=200, y=32)
        belt = layout.connect(start=smelter.outputs[0], end=node)

        layout.move_free_endpoint(endpoint_id=node.id, x=200, y=200)

        assert belt.path[-1] == Point(x=200, y=200)
        assert belt.path[0] == Point(x=66, y=32)

    def test_reroute_is_repeatable(self, smelter_and_constructor) -> None:
        """Re-routing with nothing moved leaves every path as it was."""
        layout, smelter, constructor = smelter_and_constructor
        lone = layout.add_free_endpoint(x=150, y=200)
        layout.connect(start=lone, end=constructor.inputs[0])
        hub = layout.add_free_endpoint(x=150, y=120)
        layout.connect(start=smelter.outputs[0], end=hub)
        layout.connect(start=hub, end=layout.add_free_endpoint(x=400, y=300))
        paths = {belt_id: list(belt.path) for belt_id, belt in layout.belts.items()}

        for _ in range(3):
            layout.reroute_belts()
            assert {belt_id: belt.path for belt_id, belt in layout.belts.items()} == paths

        assert paths["B1"][0] == Point(x=150, y=200)
        assert paths["B1"][-1] == Point(x=254, y=32)


# =============================================================================
# TESTS FOR DELETION AND UNDO
# =============================================================================


class TestDeleteAndUndo:
    """delete_belt / delete_entity / undo_last."""

    def test_delete_belt_frees_ports(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        layout.delete_belt(belt.id)

        assert layout.belts == {}
        assert smelter.outputs[0].is_available() and constructor.inputs[0].is_available()
        assert isinstance(layout.undo_stack[-1], DeleteBeltAction)

    def test_undo_delete_belt_restores_occupancy(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])
        path = list(belt.path)
        layout.delete_belt(belt.id)

        layout.undo_last()

        assert layout.belts == {belt.id: belt}
        assert smelter.outputs[0].connected_belt is belt
        assert belt.path == path

    def test_delete_belt_drops_orphaned_free_endpoint(self, smelter_and_constructor) -> None:
        layout, smelter, _ = smelter_and_constructor
        node = layout.add_free_endpoint(x=200, y=32)
        belt = layout.connect(start=smelter.outputs[0], end=node)

        layout.delete_belt(belt.id)
        assert node.id not in layout.free_endpoints

        layout.undo_last()
        assert layout.free_endpoints[node.id] is node
        assert node.belts == [belt]

    def test_delete_entity_cascades(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        layout.delete_entity(constructor.id)

        assert constructor.id not in layout.factories
        assert layout.belts == {}
        assert smelter.outputs[0].is_available()
        assert isinstance(layout.undo_stack[-1], DeleteEntityAction)

    def test_undo_delete_entity_restores_entity_and_belts(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])
        layout.delete_entity(constructor.id)

        layout.undo_last()

        assert layout.factories[constructor.id] is constructor
        assert layout.belts[belt.id] is belt
        assert constructor.inputs[0].connected_belt is belt
        assert smelter.outputs[0].connected_belt is belt

    def test_undo_add_belt_then_add_entity(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        assert isinstance(layout.undo_last(), AddBeltAction)
        assert layout.belts == {}
        assert smelter.outputs[0].is_available()

        assert isinstance(layout.undo_last(), AddEntityAction)
        assert constructor.id not in layout.factories

    def test_undo_empty_stack_raises(self, empty_layout: FactoryLayout) -> None:
        with pytest.raises(RuntimeError):
            empty_layout.undo_last()

    def test_undo_stack_is_bounded(self, empty_layout: FactoryLayout) -> None:
        for i in range(UndoConfig.MAX_UNDO_STACK_SIZE + 5):
            empty_layout.add_junction(x=16 + 32 * i, y=16)
        assert len(empty_layout.undo_stack) == UndoConfig.MAX_UNDO_STACK_SIZE
        assert empty_layout.undo_stack[0] == AddEntityAction(entity_id="J6")


# =============================================================================
# TESTS FOR JUNCTION INSERTION
# =============================================================================


class TestSplitBelt:
    """split_belt_with_junction - one belt becomes two through a junction."""

    def test_split_picks_facing_ports(self, wide_pair) -> None:
        layout, smelter, constructor = wide_pair
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        junction = layout.split_belt_with_junction(belt_id=belt.id, x=170, y=40)

        assert (junction.id, junction.x, junction.y) == ("J1", 176, 48)
        assert belt.id not in layout.belts
        assert len(layout.belts) == 2

        entry = junction.get_point(ConnectionSide.LEFT)
        exit_point = junction.get_point(ConnectionSide.RIGHT)
        assert entry.connected_belt.start is smelter.outputs[0]
        assert exit_point.connected_belt.end is constructor.inputs[0]
        assert junction.role == "balanced"
        assert isinstance(layout.undo_stack[-1], RewireAction)

    def test_undo_split_restores_original(self, wide_pair) -> None:
        layout, smelter, constructor = wide_pair
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])
        layout.split_belt_with_junction(belt_id=belt.id, x=170, y=40)

        layout.undo_last()

        assert layout.junctions == {}
        assert layout.belts == {belt.id: belt}
        assert smelter.outputs[0].connected_belt is belt
        assert constructor.inputs[0].connected_belt is belt

    def test_split_onto_factory_is_rejected(self, wide_pair) -> None:
        layout, smelter, constructor = wide_pair
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        with pytest.raises(ValueError):
            layout.split_belt_with_junction(belt_id=belt.id, x=32, y=32)
        assert layout.belts == {belt.id: belt}
        assert layout.junctions == {}


class TestReplaceEndpoint:
    """replace_endpoint_with_junction - promote a free node."""

    def test_replace_reconnects_through_junction(self, wide_pair) -> None:
        layout, smelter, constructor = wide_pair
        node = layout.add_free_endpoint(x=176, y=48)
        layout.connect(start=smelter.outputs[0], end=node)
        layout.connect(start=node, end=constructor.inputs[0])

        junction = layout.replace_endpoint_with_junction(node.id)

        assert (junction.x, junction.y) == (176, 48)
        assert node.id not in layout.free_endpoints
        assert len(layout.belts) == 2
        assert junction.get_point(ConnectionSide.LEFT).connected_belt.start is smelter.outputs[0]
        assert junction.get_point(ConnectionSide.RIGHT).connected_belt.end is constructor.inputs[0]
        assert junction.role == "balanced"

    def test_undo_replace_restores_free_endpoint(self, wide_pair) -> None:
        layout, smelter, constructor = wide_pair
        node = layout.add_free_endpoint(x=176, y=48)
        first = layout.connect(start=smelter.outputs[0], end=node)
        second = layout.connect(start=node, end=constructor.inputs[0])
        layout.replace_endpoint_with_junction(node.id)

        layout.undo_last()

        assert layout.junctions == {}
        assert layout.free_endpoints[node.id] is node
        assert set(layout.belts) == {first.id, second.id}
        assert smelter.outputs[0].connected_belt is first
        assert len(node.belts) == 2

    def test_too_many_belts_is_rejected(self, empty_layout: FactoryLayout) -> None:
        hub = empty_layout.add_free_endpoint(x=0, y=0)
        for i in range(3):
            empty_layout.connect(start=hub, end=empty_layout.add_free_endpoint(x=200, y=100 * i))

        with pytest.raises(ValueError):
            empty_layout.replace_endpoint_with_junction(hub.id)
        assert hub.id in empty_layout.free_endpoints
        assert empty_layout.junctions == {}
        assert len(hub.belts) == 3


# =============================================================================
# TESTS FOR QUERIES
# =============================================================================


class TestQueries:
    """find_* hit tests and get_stats."""

    def test_find_connection_point_at(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        assert layout.find_connection_point_at(x=64, y=30) is smelter.outputs[0]
        assert layout.find_connection_point_at(x=250, y=34) is constructor.inputs[0]
        assert layout.find_connection_point_at(x=160, y=200) is None

    def test_find_entity_prefers_junction(self, empty_layout: FactoryLayout) -> None:
        smelter = empty_layout.add_machine(name="Smelter", x=0, y=0)
        junction = empty_layout.add_junction(x=112, y=48)
        assert empty_layout.find_entity_at(x=10, y=10) is smelter
        assert empty_layout.find_entity_at(x=112, y=48) is junction
        assert empty_layout.find_entity_at(x=300, y=300) is None

    def test_find_belt_and_free_endpoint(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])
        node = layout.add_free_endpoint(x=400, y=400)

        assert layout.find_belt_at(x=150, y=35) is belt
        assert layout.find_belt_at(x=150, y=80) is None
        assert layout.find_free_endpoint_at(x=405, y=395) is node
        assert layout.find_free_endpoint_at(x=450, y=450) is None

    def test_stats(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])
        stats = layout.get_stats()
        assert stats["total_factories"] == 2
        assert stats["total_belts"] == 1
        assert stats["total_belt_length_px"] == pytest.approx(188)
        assert stats["blocked_belts"] == 0


# =============================================================================
# TESTS FOR SERIALIZATION AND CLEANUP
# =============================================================================


class TestSerialization:
    """to_dict / from_dict - paths are recomputed on load."""

    def test_round_trip(self, smelter_and_constructor) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])
        layout.add_junction(x=176, y=176)
        layout.add_free_endpoint(x=400, y=400)

        data = json.loads(json.dumps(layout.to_dict()))
        restored = FactoryLayout.from_dict(data)

        assert restored.to_dict() == layout.to_dict()
        restored_belt = restored.belts[belt.id]
        assert restored_belt.path == belt.path
        assert restored.factories["F1"].outputs[0].connected_belt is restored_belt
        assert restored.factories["F2"].inputs[0].connected_belt is restored_belt

    def test_counters_continue_after_load(self, smelter_and_constructor) -> None:
        layout, _, _ = smelter_and_constructor
        restored = FactoryLayout.from_dict(layout.to_dict())
        assert restored.add_machine(name="Smelter", x=512, y=0).id == "F3"
        assert restored.undo_stack[-1] == AddEntityAction(entity_id="F3")

    def test_free_endpoint_belts_survive(self, smelter_and_constructor) -> None:
        layout, smelter, _ = smelter_and_constructor
        node = layout.add_free_endpoint(x=200, y=32)
        layout.connect(start=smelter.outputs[0], end=node)

        restored = FactoryLayout.from_dict(layout.to_dict())

        restored_node = restored.free_endpoints[node.id]
        assert len(restored_node.belts) == 1
        assert restored_node.belts[0].start is restored.factories["F1"].outputs[0]

    @pytest.mark.parametrize("downstream_first", [False, True], ids=["in_flow_order", "downstream_first"])
    def test_chain_through_free_endpoint_keeps_paths(self, smelter_and_constructor, downstream_first) -> None:
        """Belts meeting at a free endpoint reload with the geometry they were saved with."""
        layout, smelter, constructor = smelter_and_constructor
        node = layout.add_free_endpoint(x=300, y=150)
        if downstream_first:
            layout.connect(start=node, end=constructor.inputs[0])
            layout.connect(start=smelter.outputs[0], end=node)
        else:
            layout.connect(start=smelter.outputs[0], end=node)
            layout.connect(start=node, end=constructor.inputs[0])

        restored = FactoryLayout.from_dict(json.loads(json.dumps(layout.to_dict())))

        for belt_id, belt in layout.belts.items():
            assert restored.belts[belt_id].path == belt.path


class TestCleanup:
    def test_cleanup_removes_only_orphans(self, smelter_and_constructor) -> None:
        layout, smelter, _ = smelter_and_constructor
        used = layout.add_free_endpoint(x=200, y=32)
        layout.connect(start=smelter.outputs[0], end=used)
        layout.add_free_endpoint(x=400, y=400)
        layout.add_free_endpoint(x=500, y=400)

        assert layout.cleanup_free_endpoints() == 2
        assert list(layout.free_endpoints) == [used.id]


class TestFileSnapshot:
    def test_save_and_load(self, smelter_and_constructor, tmp_path) -> None:
        layout, smelter, constructor = smelter_and_constructor
        belt = layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])

        path = layout.save(tmp_path / "layouts" / "main.json")
        restored = FactoryLayout.load(path)

        assert path.exists()
        assert restored.to_dict() == layout.to_dict()
        assert restored.belts[belt.id].path == belt.path
