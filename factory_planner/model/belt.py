"""Belt - Routed conveyor between two endpoints.

A Belt links a start endpoint to an end endpoint. Each endpoint is either a
ConnectionPoint (port on a factory or junction) or a FreeEndpoint. The belt
does not store geometry as authority: its path is recomputed by the router
from the endpoints' current positions and direction vectors whenever the
layout changes.

Reference: factory_planner/generators/belt_router.py
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence, Union

import numpy as np
from shapely.geometry import LineString
from shapely.geometry import Point as ShapelyPoint

from factory_planner.constants import BeltConfig, StyleConfig
from factory_planner.core.geometry import Direction, Obstacle, Point
from factory_planner.generators.belt_router import generate_path
from factory_planner.model.connection_point import ConnectionPoint, EndpointKind
from factory_planner.model.free_endpoint import FreeEndpoint

logger = logging.getLogger(__name__)

BeltEndpoint = Union[ConnectionPoint, FreeEndpoint]


@dataclass(eq=False)
class Belt:
    """A conveyor belt between two endpoints.

    Attributes:
        id: Unique identifier (e.g., "B1", "B2", ...)
        start: Source endpoint (items flow from here)
        end: Target endpoint
        layer: Stacking layer, clamped to [MIN_LAYER, MAX_LAYER]
        path: Current routed polyline from start to end

    Example:
        belt = Belt.create(id="B1", start=smelter_out, end=constructor_in, obstacles=layout.get_obstacles())
        print(belt.length)
    """

    id: str
    start: BeltEndpoint
    end: BeltEndpoint
    layer: int = 0
    path: list[Point] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        id: str,
        start: BeltEndpoint,
        end: BeltEndpoint,
        obstacles: Sequence[Obstacle] = (),
        layer: int = 0,
    ) -> "Belt":
        """Create a belt, mark both endpoints connected, and route it."""
        belt = cls(id=id, start=start, end=end)
        belt.set_layer(layer)
        start.set_connected(belt)
        end.set_connected(belt)
        belt.update_path(obstacles=obstacles)
        return belt

    def _heading_at(self, endpoint: BeltEndpoint) -> Direction:
        if endpoint.kind == EndpointKind.FREE_NODE:
            return endpoint.get_direction_vector(routing=self)
        return endpoint.get_direction_vector()

    def update_path(self, obstacles: Sequence[Obstacle] = ()) -> None:
        """Re-route from the endpoints' current positions and directions."""
        self.path = generate_path(
            start=Point(x=self.start.x, y=self.start.y),
            end=Point(x=self.end.x, y=self.end.y),
            start_dir=self._heading_at(self.start),
            end_dir=self._heading_at(self.end),
            obstacles=obstacles,
        )

    def destroy(self) -> None:
        """Release both endpoints.

        Ports drop their single belt reference. Free endpoints only forget
        this belt, keeping any others attached to them.
        """
        for endpoint in (self.start, self.end):
            if endpoint.kind == EndpointKind.PORT:
                if endpoint.connected_belt is self:
                    endpoint.set_connected(None)
            else:
                endpoint.remove_belt(self)
        logger.debug(f"Belt {self.id} destroyed")

    def other_end(self, endpoint: BeltEndpoint) -> BeltEndpoint:
        """Return the endpoint opposite to the given one."""
        if endpoint is self.start:
            return self.end
        if endpoint is self.end:
            return self.start
        raise ValueError(f"{endpoint!r} is not an endpoint of belt {self.id}")

    def set_layer(self, layer: int) -> None:
        self.layer = max(BeltConfig.MIN_LAYER, min(BeltConfig.MAX_LAYER, layer))

    @property
    def color(self) -> str:
        return StyleConfig.BELT_LAYER_COLORS[self.layer - BeltConfig.MIN_LAYER]

    # =========================================================================
    # Geometry
    # =========================================================================

    def _coords(self) -> np.ndarray:
        return np.array([p.xy for p in self.path], dtype=np.float64).reshape(-1, 2)

    def _segment_lengths(self) -> np.ndarray:
        return np.hypot(*np.diff(self._coords(), axis=0).T)

    @property
    def length(self) -> float:
        """Total polyline length in pixels."""
        if len(self.path) < 2:
            return 0.0
        return float(self._segment_lengths().sum())

    def point_along_path(self, distance: float) -> tuple[Point, Direction]:
        """Position and heading at an arc-length distance from the start.

        Distances are clamped to [0, length].

        Args:
            distance: Arc length in pixels measured from path[0]

        Returns:
            (position, direction of the segment containing it)
        """
        if len(self.path) < 2:
            origin = self.path[0] if self.path else Point(x=self.start.x, y=self.start.y)
            return origin, Direction.NONE

        lengths = self._segment_lengths()
        cumulative = np.concatenate(([0.0], np.cumsum(lengths)))
        distance = float(np.clip(distance, 0.0, cumulative[-1]))

        # Index of the segment containing the distance; the path end belongs to the last segment
        index = int(np.searchsorted(cumulative, distance, side="right")) - 1
        index = min(max(index, 0), len(lengths) - 1)

        a, b = self.path[index], self.path[index + 1]
        t = (distance - cumulative[index]) / lengths[index] if lengths[index] > 0 else 0.0
        position = Point(x=a.x + (b.x - a.x) * t, y=a.y + (b.y - a.y) * t)
        return position, Direction.from_delta(b.x - a.x, b.y - a.y)

    def arrow_positions(self, spacing: float = BeltConfig.ARROW_SPACING_PX) -> list[tuple[Point, Direction]]:
        """Flow arrow placements: every `spacing` pixels, starting half a spacing in."""
        total = self.length
        return [self.point_along_path(d) for d in np.arange(spacing / 2, total, spacing)]

    def contains_point(self, x: float, y: float, threshold: float = BeltConfig.HIT_THRESHOLD_PX) -> bool:
        """Hit test: True if (x, y) lies within `threshold` of the polyline."""
        if not self.path:
            return False
        target = ShapelyPoint(x, y)
        if len(self.path) == 1:
            return target.distance(ShapelyPoint(*self.path[0].xy)) <= threshold
        return LineString([p.xy for p in self.path]).distance(target) <= threshold

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) of the path."""
        coords = self._coords()
        if len(coords) == 0:
            return (self.start.x, self.start.y, self.start.x, self.start.y)
        min_x, min_y = coords.min(axis=0)
        max_x, max_y = coords.max(axis=0)
        return (float(min_x), float(min_y), float(max_x), float(max_y))

    def __repr__(self) -> str:
        return f"Belt({self.id}, layer={self.layer}, {len(self.path)} points, {self.length:.0f}px)"
