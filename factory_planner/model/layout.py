"""FactoryLayout - Central manager for factory sandbox entities.

Owns and manages all factories, junctions, free endpoints and belts.
Provides operations for:
- Placing machines and junctions (with footprint overlap checks)
- Connecting endpoints with routed belts
- Moving entities and re-routing every belt
- Splitting belts and promoting free endpoints to junctions
- Undo of add/delete operations
- Serialization/deserialization (dict and JSON file)
- Cleanup (orphaned free endpoints)

Obstacles are rebuilt from current entity positions for every routing call;
nothing caches them.
"""

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from shapely.geometry import box

from factory_planner.constants import ConnectionConfig, EntityPrefixes, GridConfig, UndoConfig
from factory_planner.core.geometry import Direction, Obstacle
from factory_planner.core.path_validator import is_path_clear
from factory_planner.model.belt import Belt, BeltEndpoint
from factory_planner.model.catalog import MachineCatalog
from factory_planner.model.connection_point import ConnectionPoint, ConnectionType, EndpointKind
from factory_planner.model.factory import Factory
from factory_planner.model.free_endpoint import FreeEndpoint
from factory_planner.model.junction import Junction

logger = logging.getLogger(__name__)

Entity = Union[Factory, Junction]


# =============================================================================
# Undo Action Types
# =============================================================================


@dataclass(frozen=True)
class AddEntityAction:
    """Undo action for a placed factory or junction."""

    entity_id: str


@dataclass(frozen=True)
class AddBeltAction:
    """Undo action for a connected belt."""

    belt_id: str


@dataclass(frozen=True)
class DeleteBeltAction:
    """Undo action for a deleted belt (stores data for restore)."""

    deleted_belt: Belt
    removed_endpoints: tuple[FreeEndpoint, ...]


@dataclass(frozen=True)
class DeleteEntityAction:
    """Undo action for a deleted factory or junction and its belts."""

    deleted_entity: Entity
    deleted_belts: tuple[Belt, ...]
    removed_endpoints: tuple[FreeEndpoint, ...]


@dataclass(frozen=True)
class RewireAction:
    """Undo action for inserting a junction into existing belts."""

    junction_id: str
    added_belt_ids: tuple[str, ...]
    deleted_belts: tuple[Belt, ...]
    removed_endpoints: tuple[FreeEndpoint, ...]


UndoAction = AddEntityAction | AddBeltAction | DeleteBeltAction | DeleteEntityAction | RewireAction


class FactoryLayout:
    """Layout of a factory floor.

    Central manager owning all factories, junctions, free endpoints and belts.

    Example:
        layout = FactoryLayout()
        smelter = layout.add_machine(name="Smelter", x=0, y=0)
        constructor = layout.add_machine(name="Constructor", x=256, y=0)
        layout.connect(start=smelter.outputs[0], end=constructor.inputs[0])
    """

    def __init__(self, catalog: Optional[MachineCatalog] = None, tile_size: int = GridConfig.TILE_SIZE_PX) -> None:
        self.catalog = catalog or MachineCatalog()
        self.tile_size = tile_size
        self.factories: dict[str, Factory] = {}
        self.junctions: dict[str, Junction] = {}
        self.free_endpoints: dict[str, FreeEndpoint] = {}
        self.belts: dict[str, Belt] = {}
        self.undo_stack: list[UndoAction] = []

        self._factory_counter = 0
        self._junction_counter = 0
        self._endpoint_counter = 0
        self._belt_counter = 0

    def _next_factory_id(self) -> str:
        self._factory_counter += 1
        return f"{EntityPrefixes.FACTORY}{self._factory_counter}"

    def _next_junction_id(self) -> str:
        self._junction_counter += 1
        return f"{EntityPrefixes.JUNCTION}{self._junction_counter}"

    def _next_endpoint_id(self) -> str:
        self._endpoint_counter += 1
        return f"{EntityPrefixes.ENDPOINT}{self._endpoint_counter}"

    def _next_belt_id(self) -> str:
        self._belt_counter += 1
        return f"{EntityPrefixes.BELT}{self._belt_counter}"

    def _push_undo(self, action: UndoAction) -> None:
        """Push action to undo stack, discarding the oldest beyond MAX_UNDO_STACK_SIZE."""
        self.undo_stack.append(action)
        while len(self.undo_stack) > UndoConfig.MAX_UNDO_STACK_SIZE:
            self.undo_stack.pop(0)

    # =========================================================================
    # Placement
    # =========================================================================

    def get_entity(self, entity_id: str) -> Entity:
        """Look up a factory or junction.

        Raises:
            KeyError: If no factory or junction has this id.
        """
        if entity_id in self.factories:
            return self.factories[entity_id]
        if entity_id in self.junctions:
            return self.junctions[entity_id]
        raise KeyError(f"Unknown entity {entity_id}")

    def entities(self) -> list[Entity]:
        return [*self.factories.values(), *self.junctions.values()]

    def can_place(self, bounds: Obstacle, ignore_id: Optional[str] = None) -> bool:
        """Check that a footprint does not overlap any placed factory or junction.

        Footprints that only share an edge do not overlap.
        """
        candidate = box(bounds.x, bounds.y, bounds.right, bounds.bottom)
        for entity in self.entities():
            if entity.id == ignore_id:
                continue
            other = entity.bounds
            footprint = box(other.x, other.y, other.right, other.bottom)
            if candidate.intersects(footprint) and not candidate.touches(footprint):
                return False
        return True

    def add_factory(
        self,
        name: str,
        x: float,
        y: float,
        grid_width: int,
        grid_height: int,
        input_count: int = 1,
        output_count: int = 1,
    ) -> Factory:
        """Place a factory with its top-left corner at (x, y).

        Raises:
            ValueError: If the footprint overlaps an existing factory or junction.
        """
        factory = Factory(
            id=self._next_factory_id(),
            name=name,
            x=x,
            y=y,
            grid_width=grid_width,
            grid_height=grid_height,
            input_count=input_count,
            output_count=output_count,
            tile_size=self.tile_size,
        )
        if not self.can_place(factory.bounds):
            self._factory_counter -= 1
            raise ValueError(f"Cannot place {name} at ({x}, {y}): footprint overlaps another entity")

        self.factories[factory.id] = factory
        self._push_undo(AddEntityAction(entity_id=factory.id))
        logger.info(f"Placed factory {factory.id} ({name}) at ({x}, {y})")
        return factory

    def add_machine(self, name: str, x: float, y: float) -> Factory:
        """Place a catalog machine, using its footprint and port counts."""
        grid_width, grid_height = self.catalog.get_machine_size(name)
        machine = self.catalog.get_machine(name)
        return self.add_factory(
            name=name,
            x=x,
            y=y,
            grid_width=grid_width,
            grid_height=grid_height,
            input_count=machine.input_count if machine else 1,
            output_count=machine.output_count if machine else 1,
        )

    def add_junction(self, x: float, y: float, snap: bool = True) -> Junction:
        """Place a junction centred on (x, y), snapped to the nearest tile centre by default.

        Raises:
            ValueError: If the footprint overlaps an existing factory or junction.
        """
        junction = Junction(id=self._next_junction_id(), x=x, y=y, tile_size=self.tile_size)
        if snap:
            junction.snap_to_grid()
        if not self.can_place(junction.bounds):
            self._junction_counter -= 1
            raise ValueError(f"Cannot place junction at ({junction.x}, {junction.y}): footprint overlaps")

        self.junctions[junction.id] = junction
        self._push_undo(AddEntityAction(entity_id=junction.id))
        logger.info(f"Placed junction {junction.id} at ({junction.x}, {junction.y})")
        return junction

    def add_free_endpoint(self, x: float, y: float) -> FreeEndpoint:
        """Create a free belt node. Free nodes have no footprint and never block placement."""
        endpoint = FreeEndpoint(id=self._next_endpoint_id(), x=x, y=y)
        self.free_endpoints[endpoint.id] = endpoint
        return endpoint

    # =========================================================================
    # Belts
    # =========================================================================

    def can_connect(self, start: BeltEndpoint, end: BeltEndpoint) -> bool:
        """Check whether a belt from start to end would be legal.

        Port to port uses ConnectionPoint.can_connect_to. A port on either
        side must be free and, when it is the start, an OUTPUT; as the end,
        an INPUT. A free endpoint cannot link to itself, and no two endpoints
        standing on the same spot can be linked.
        """
        if start is end or (start.x == end.x and start.y == end.y):
            return False
        if start.kind == EndpointKind.PORT and end.kind == EndpointKind.PORT:
            return start.type == ConnectionType.OUTPUT and start.can_connect_to(end)
        if start.kind == EndpointKind.PORT:
            return start.is_available() and start.type == ConnectionType.OUTPUT
        if end.kind == EndpointKind.PORT:
            return end.is_available() and end.type == ConnectionType.INPUT
        return True

    def connect(self, start: BeltEndpoint, end: BeltEndpoint, layer: int = 0) -> Belt:
        """Create a routed belt between two endpoints.

        Free endpoints not yet registered with the layout are adopted.

        Raises:
            ValueError: If the pair is not a legal connection (see can_connect).
        """
        if not self.can_connect(start=start, end=end):
            raise ValueError(f"Cannot connect {start!r} -> {end!r}")

        for endpoint in (start, end):
            if endpoint.kind == EndpointKind.FREE_NODE and endpoint.id not in self.free_endpoints:
                self.free_endpoints[endpoint.id] = endpoint

        belt = self._create_belt(start=start, end=end, layer=layer)
        self._push_undo(AddBeltAction(belt_id=belt.id))
        logger.info(f"Connected belt {belt.id}: {len(belt.path)} waypoints, {belt.length:.0f}px")
        return belt

    def _create_belt(self, start: BeltEndpoint, end: BeltEndpoint, layer: int = 0) -> Belt:
        """Create, route and register a belt without recording undo."""
        belt = Belt.create(
            id=self._next_belt_id(),
            start=start,
            end=end,
            obstacles=self._obstacles_for(start=start, end=end),
            layer=layer,
        )
        self.belts[belt.id] = belt
        self.reroute_belts(self._belts_downstream_of(belt.end))
        return belt

    def get_obstacles(self, exclude: Iterable[str] = (), inset: Iterable[str] = ()) -> list[Obstacle]:
        """Build a fresh obstacle list from current factory and junction positions.

        Args:
            exclude: Entity ids left out entirely
            inset: Entity ids whose footprint is shrunk by OWNER_OBSTACLE_INSET_PX,
                used for the owners of the belt being routed
        """
        excluded = set(exclude)
        shrunk = set(inset)
        obstacles = []
        for entity in self.entities():
            if entity.id in excluded:
                continue
            bounds = entity.bounds
            if entity.id in shrunk:
                bounds = bounds.expanded(-ConnectionConfig.OWNER_OBSTACLE_INSET_PX)
            obstacles.append(bounds)
        return obstacles

    def _obstacles_for(self, start: BeltEndpoint, end: BeltEndpoint) -> list[Obstacle]:
        owners = [p.owner.id for p in (start, end) if p.kind == EndpointKind.PORT]
        return self.get_obstacles(inset=owners)

    @staticmethod
    def _in_flow_order(belts: Iterable[Belt]) -> list[Belt]:
        """Order belts so each one comes after the belts arriving at its start node.

        A belt leaving a free endpoint takes its heading from the belt arriving
        there, so that one must be routed first. Belts on a closed loop of free
        endpoints keep their given order.
        """
        pending = {belt.id: belt for belt in belts}
        ordered: list[Belt] = []
        visited: set[str] = set()

        def visit(belt: Belt) -> None:
            if belt.id in visited:
                return
            visited.add(belt.id)
            if belt.start.kind == EndpointKind.FREE_NODE:
                for feeder in belt.start.belts:
                    if feeder.end is belt.start and feeder.id in pending:
                        visit(feeder)
            ordered.append(belt)

        for belt in pending.values():
            visit(belt)
        return ordered

    def _belts_downstream_of(self, endpoint: BeltEndpoint) -> list[Belt]:
        """Registered belts whose heading depends on what arrives at a free endpoint."""
        found: list[Belt] = []
        frontier = [endpoint]
        while frontier:
            node = frontier.pop()
            if node.kind != EndpointKind.FREE_NODE:
                continue
            for belt in node.belts:
                if belt.start is node and belt.id in self.belts and belt not in found:
                    found.append(belt)
                    frontier.append(belt.end)
        return found

    def reroute_belts(self, belts: Optional[Iterable[Belt]] = None) -> None:
        """Recompute paths from current endpoint positions (all belts by default)."""
        for belt in self._in_flow_order(self.belts.values() if belts is None else belts):
            belt.update_path(obstacles=self._obstacles_for(start=belt.start, end=belt.end))

    def _detach_belt(self, belt: Belt) -> list[FreeEndpoint]:
        """Remove a belt without recording undo. Returns free endpoints orphaned by it."""
        self.belts.pop(belt.id, None)
        belt.destroy()
        orphaned = []
        for endpoint in (belt.start, belt.end):
            if endpoint.kind == EndpointKind.FREE_NODE and endpoint.is_orphaned():
                if self.free_endpoints.pop(endpoint.id, None) is not None:
                    orphaned.append(endpoint)
        self.reroute_belts(self._belts_downstream_of(belt.end))
        return orphaned

    def _attach_belt(self, belt: Belt) -> None:
        """Re-register a previously detached belt and re-occupy its endpoints."""
        belt.start.set_connected(belt)
        belt.end.set_connected(belt)
        self.belts[belt.id] = belt

    def _restore(self, belts: Iterable[Belt], endpoints: Iterable[FreeEndpoint]) -> None:
        for endpoint in endpoints:
            self.free_endpoints[endpoint.id] = endpoint
        restored = list(belts)
        for belt in restored:
            self._attach_belt(belt)
        downstream = [b for belt in restored for b in self._belts_downstream_of(belt.end)]
        self.reroute_belts([*restored, *downstream])

    def delete_belt(self, belt_id: str) -> Belt:
        """Delete a belt, releasing its ports and dropping orphaned free endpoints.

        Raises:
            KeyError: If no belt has this id.
        """
        belt = self.belts[belt_id]
        orphaned = self._detach_belt(belt)
        self._push_undo(DeleteBeltAction(deleted_belt=belt, removed_endpoints=tuple(orphaned)))
        logger.info(f"Deleted belt {belt_id}")
        return belt

    def belts_of(self, entity: Entity) -> list[Belt]:
        """Belts attached to any port of an entity."""
        return [p.connected_belt for p in entity.connection_points if p.connected_belt is not None]

    def delete_entity(self, entity_id: str) -> Entity:
        """Delete a factory or junction together with every belt attached to it.

        Raises:
            KeyError: If no factory or junction has this id.
        """
        entity = self.get_entity(entity_id)
        belts = self.belts_of(entity)
        orphaned: list[FreeEndpoint] = []
        for belt in belts:
            orphaned.extend(self._detach_belt(belt))

        self.factories.pop(entity_id, None)
        self.junctions.pop(entity_id, None)
        self._push_undo(
            DeleteEntityAction(deleted_entity=entity, deleted_belts=tuple(belts), removed_endpoints=tuple(orphaned))
        )
        logger.info(f"Deleted {entity_id} with {len(belts)} belt(s)")
        return entity

    # =========================================================================
    # Movement
    # =========================================================================

    def move_entity(self, entity_id: str, dx: float, dy: float) -> None:
        """Shift a factory or junction and re-route all belts."""
        self.get_entity(entity_id).move_by(dx=dx, dy=dy)
        self.reroute_belts()

    def move_entity_to(self, entity_id: str, x: float, y: float) -> None:
        self.get_entity(entity_id).move_to(x=x, y=y)
        self.reroute_belts()

    def snap_entity(self, entity_id: str) -> None:
        """Snap a factory to tile corners (junctions to tile centres) and re-route."""
        self.get_entity(entity_id).snap_to_grid()
        self.reroute_belts()

    def move_free_endpoint(self, endpoint_id: str, x: float, y: float) -> None:
        endpoint = self.free_endpoints[endpoint_id]
        endpoint.move_to(x=x, y=y)
        self.reroute_belts()

    # =========================================================================
    # Junction Insertion
    # =========================================================================

    @staticmethod
    def _best_junction_point(
        junction: Junction, port_type: ConnectionType, toward_x: float, toward_y: float
    ) -> Optional[ConnectionPoint]:
        """Pick the free junction port of a type whose side faces a target best."""
        candidates = [p for p in junction.connection_points if p.type == port_type and p.is_available()]
        if not candidates:
            return None

        dx = toward_x - junction.x
        dy = toward_y - junction.y

        def facing(point: ConnectionPoint) -> float:
            # Outward normal of the port's side
            outward = Direction.from_delta(point.x - junction.x, point.y - junction.y)
            return outward.dot(dx, dy)

        return max(candidates, key=facing)

    def split_belt_with_junction(self, belt_id: str, x: float, y: float) -> Junction:
        """Insert a junction into a belt near (x, y).

        The belt is replaced by start -> junction input and junction output -> end.

        Raises:
            KeyError: If no belt has this id.
            ValueError: If the junction cannot be placed there.
        """
        belt = self.belts[belt_id]
        start, end = belt.start, belt.end

        junction = Junction(id="", x=x, y=y, tile_size=self.tile_size)
        junction.snap_to_grid()
        if not self.can_place(junction.bounds):
            raise ValueError(f"Cannot split {belt_id}: junction at ({junction.x}, {junction.y}) overlaps")
        junction.id = self._next_junction_id()
        self.junctions[junction.id] = junction

        entry = self._best_junction_point(junction, ConnectionType.INPUT, start.x, start.y)
        exit_point = self._best_junction_point(junction, ConnectionType.OUTPUT, end.x, end.y)

        self.belts.pop(belt.id)
        belt.destroy()

        first = self._create_belt(start=start, end=entry, layer=belt.layer)
        second = self._create_belt(start=exit_point, end=end, layer=belt.layer)

        self._push_undo(
            RewireAction(
                junction_id=junction.id,
                added_belt_ids=(first.id, second.id),
                deleted_belts=(belt,),
                removed_endpoints=(),
            )
        )
        logger.info(f"Split belt {belt_id} with junction {junction.id}")
        return junction

    def replace_endpoint_with_junction(self, endpoint_id: str) -> Junction:
        """Promote a free endpoint to a junction, reconnecting all its belts.

        Belts arriving at the endpoint land on junction inputs; belts leaving
        it start from junction outputs.

        Raises:
            KeyError: If no free endpoint has this id.
            ValueError: If the endpoint has more incoming or outgoing belts than
                a junction has inputs or outputs, or the junction overlaps.
        """
        endpoint = self.free_endpoints[endpoint_id]
        incoming = [b for b in endpoint.belts if b.end is endpoint]
        outgoing = [b for b in endpoint.belts if b.start is endpoint]

        junction = Junction(id="", x=endpoint.x, y=endpoint.y, tile_size=self.tile_size)
        inputs = [p for p in junction.connection_points if p.type == ConnectionType.INPUT]
        outputs = [p for p in junction.connection_points if p.type == ConnectionType.OUTPUT]
        if len(incoming) > len(inputs) or len(outgoing) > len(outputs):
            raise ValueError(
                f"Endpoint {endpoint_id} has {len(incoming)} in / {len(outgoing)} out belts, "
                f"a junction takes at most {len(inputs)} / {len(outputs)}"
            )
        if not self.can_place(junction.bounds):
            raise ValueError(f"Cannot place junction at endpoint {endpoint_id}: footprint overlaps")
        junction.id = self._next_junction_id()
        self.junctions[junction.id] = junction

        old_belts = [*incoming, *outgoing]
        for belt in old_belts:
            self.belts.pop(belt.id)
            belt.destroy()
        self.free_endpoints.pop(endpoint_id)

        added: list[Belt] = []
        for belt in incoming:
            port = self._best_junction_point(junction, ConnectionType.INPUT, belt.start.x, belt.start.y)
            added.append(self._create_belt(start=belt.start, end=port, layer=belt.layer))
        for belt in outgoing:
            port = self._best_junction_point(junction, ConnectionType.OUTPUT, belt.end.x, belt.end.y)
            added.append(self._create_belt(start=port, end=belt.end, layer=belt.layer))

        self._push_undo(
            RewireAction(
                junction_id=junction.id,
                added_belt_ids=tuple(b.id for b in added),
                deleted_belts=tuple(old_belts),
                removed_endpoints=(endpoint,),
            )
        )
        logger.info(f"Replaced endpoint {endpoint_id} with junction {junction.id} ({len(added)} belt(s))")
        return junction

    # =========================================================================
    # Queries
    # =========================================================================

    def find_connection_point_at(
        self, x: float, y: float, threshold: float = ConnectionConfig.PORT_HIT_RADIUS_PX
    ) -> Optional[ConnectionPoint]:
        """Closest port of any entity within threshold of (x, y)."""
        hits = [entity.get_connection_point_at(x=x, y=y, threshold=threshold) for entity in self.entities()]
        hits = [point for point in hits if point is not None]
        return min(hits, key=lambda p: math.hypot(p.x - x, p.y - y), default=None)

    def find_free_endpoint_at(
        self, x: float, y: float, threshold: float = ConnectionConfig.ENDPOINT_HIT_RADIUS_PX
    ) -> Optional[FreeEndpoint]:
        """Closest free endpoint within threshold of (x, y)."""
        nearest: Optional[FreeEndpoint] = None
        best_dist = threshold
        for endpoint in self.free_endpoints.values():
            dist = math.hypot(endpoint.x - x, endpoint.y - y)
            if dist <= best_dist:
                nearest, best_dist = endpoint, dist
        return nearest

    def find_entity_at(self, x: float, y: float) -> Optional[Entity]:
        """Topmost entity under (x, y). Junctions are drawn above factories."""
        for entity in [*self.junctions.values(), *self.factories.values()]:
            if entity.contains_point(x=x, y=y):
                return entity
        return None

    def find_belt_at(self, x: float, y: float) -> Optional[Belt]:
        """Belt under (x, y), highest layer first."""
        for belt in sorted(self.belts.values(), key=lambda b: -b.layer):
            if belt.contains_point(x=x, y=y):
                return belt
        return None

    def get_stats(self) -> dict:
        """Get layout statistics."""
        return {
            "total_factories": len(self.factories),
            "total_junctions": len(self.junctions),
            "total_free_endpoints": len(self.free_endpoints),
            "total_belts": len(self.belts),
            "total_belt_length_px": sum(b.length for b in self.belts.values()),
            "blocked_belts": sum(1 for b in self.belts.values() if not self._is_belt_clear(b)),
        }

    def _is_belt_clear(self, belt: Belt) -> bool:
        return is_path_clear(belt.path, self._obstacles_for(start=belt.start, end=belt.end))

    # =========================================================================
    # Undo Operations
    # =========================================================================

    def undo_last(self) -> UndoAction:
        """Undo the last action.

        Returns:
            The undone action.

        Raises:
            RuntimeError: If undo stack is empty (caller should check first).
        """
        if not self.undo_stack:
            raise RuntimeError("undo_last called with empty undo_stack")

        action = self.undo_stack.pop()

        if isinstance(action, AddEntityAction):
            entity = self.get_entity(action.entity_id)
            for belt in self.belts_of(entity):
                self._detach_belt(belt)
            self.factories.pop(action.entity_id, None)
            self.junctions.pop(action.entity_id, None)

        elif isinstance(action, AddBeltAction):
            belt = self.belts.get(action.belt_id)
            if belt is not None:
                self._detach_belt(belt)

        elif isinstance(action, DeleteBeltAction):
            self._restore(belts=[action.deleted_belt], endpoints=action.removed_endpoints)
            logger.info(f"Restored belt {action.deleted_belt.id}")

        elif isinstance(action, DeleteEntityAction):
            entity = action.deleted_entity
            target = self.factories if isinstance(entity, Factory) else self.junctions
            target[entity.id] = entity
            self._restore(belts=action.deleted_belts, endpoints=action.removed_endpoints)
            logger.info(f"Restored {entity.id} with {len(action.deleted_belts)} belt(s)")

        elif isinstance(action, RewireAction):
            for belt_id in action.added_belt_ids:
                belt = self.belts.pop(belt_id, None)
                if belt is not None:
                    belt.destroy()
            self.junctions.pop(action.junction_id, None)
            self._restore(belts=action.deleted_belts, endpoints=action.removed_endpoints)
            logger.info(f"Removed junction {action.junction_id}, restored {len(action.deleted_belts)} belt(s)")

        return action

    # =========================================================================
    # Serialization
    # =========================================================================

    @staticmethod
    def _endpoint_ref(endpoint: BeltEndpoint) -> dict[str, Any]:
        if endpoint.kind == EndpointKind.PORT:
            return {"owner": endpoint.owner.id, "port": endpoint.owner.connection_points.index(endpoint)}
        return {"endpoint": endpoint.id}

    def _resolve_ref(self, ref: dict[str, Any]) -> BeltEndpoint:
        if "endpoint" in ref:
            return self.free_endpoints[ref["endpoint"]]
        return self.get_entity(ref["owner"]).connection_points[ref["port"]]

    def to_dict(self) -> dict:
        """Serialize entire layout to JSON-compatible dict.

        Belt paths are not stored; they are recomputed on load.
        """
        return {
            "version": "1.0",
            "tile_size": self.tile_size,
            "factories": [f.to_dict() for f in self.factories.values()],
            "junctions": [j.to_dict() for j in self.junctions.values()],
            "free_endpoints": [e.to_dict() for e in self.free_endpoints.values()],
            "belts": [
                {
                    "id": b.id,
                    "start": self._endpoint_ref(b.start),
                    "end": self._endpoint_ref(b.end),
                    "layer": b.layer,
                }
                for b in self.belts.values()
            ],
            "counters": {
                "factory": self._factory_counter,
                "junction": self._junction_counter,
                "endpoint": self._endpoint_counter,
                "belt": self._belt_counter,
            },
        }

    @classmethod
    def from_dict(cls, data: dict, catalog: Optional[MachineCatalog] = None) -> "FactoryLayout":
        """Deserialize layout from dict and re-route every belt."""
        layout = cls(catalog=catalog, tile_size=data.get("tile_size", GridConfig.TILE_SIZE_PX))

        for factory_data in data["factories"]:
            factory = Factory.from_dict(data=factory_data)
            layout.factories[factory.id] = factory

        for junction_data in data["junctions"]:
            junction = Junction.from_dict(data=junction_data)
            layout.junctions[junction.id] = junction

        for endpoint_data in data["free_endpoints"]:
            endpoint = FreeEndpoint(id=endpoint_data["id"], x=endpoint_data["x"], y=endpoint_data["y"])
            layout.free_endpoints[endpoint.id] = endpoint

        for belt_data in data["belts"]:
            belt = Belt(
                id=belt_data["id"],
                start=layout._resolve_ref(belt_data["start"]),
                end=layout._resolve_ref(belt_data["end"]),
            )
            belt.set_layer(belt_data.get("layer", 0))
            layout._attach_belt(belt)
        layout.reroute_belts()

        counters = data["counters"]
        layout._factory_counter = counters["factory"]
        layout._junction_counter = counters["junction"]
        layout._endpoint_counter = counters["endpoint"]
        layout._belt_counter = counters["belt"]

        return layout

    def save(self, path: str | Path) -> Path:
        """Write the layout snapshot as JSON, creating parent directories.

        Returns:
            The path written.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved layout to {path.name}: {len(self.factories)} factories, {len(self.belts)} belts")
        return path

    @classmethod
    def load(cls, path: str | Path, catalog: Optional[MachineCatalog] = None) -> "FactoryLayout":
        """Read a snapshot written by save()."""
        with open(path, "r", encoding="utf-8") as f:
            layout = cls.from_dict(json.load(f), catalog=catalog)
        logger.info(f"Loaded layout from {Path(path).name}")
        return layout

    # =========================================================================
    # Cleanup and Maintenance
    # =========================================================================

    def cleanup_free_endpoints(self) -> int:
        """Remove free endpoints with no belts attached.

        Returns:
            Number of endpoints removed.
        """
        orphaned = [eid for eid, endpoint in self.free_endpoints.items() if endpoint.is_orphaned()]
        for endpoint_id in orphaned:
            del self.free_endpoints[endpoint_id]
        return len(orphaned)

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"FactoryLayout({stats['total_factories']} factories, {stats['total_junctions']} junctions, "
            f"{stats['total_belts']} belts)"
        )
