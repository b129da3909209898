"""Junction - Small splitter/merger node with four fixed ports.

A Junction is centered at (x, y). It has one port per side:
TOP and LEFT take input, RIGHT and BOTTOM give output. Its role is derived
from how many of those ports are in use:

    idle      no belts attached
    splitter  more inputs than outputs connected
    merger    more outputs than inputs connected
    balanced  equal, nonzero
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from factory_planner.constants import ConnectionConfig, GridConfig, JunctionConfig, StyleConfig
from factory_planner.core.geometry import Obstacle
from factory_planner.model.connection_point import ConnectionPoint, ConnectionSide, ConnectionType

# (side, type, unit offset) per port, in creation order
_PORT_LAYOUT = (
    (ConnectionSide.TOP, ConnectionType.INPUT, (0, -1)),
    (ConnectionSide.RIGHT, ConnectionType.OUTPUT, (1, 0)),
    (ConnectionSide.BOTTOM, ConnectionType.OUTPUT, (0, 1)),
    (ConnectionSide.LEFT, ConnectionType.INPUT, (-1, 0)),
)


@dataclass(eq=False)
class Junction:
    """A belt junction.

    Attributes:
        id: Unique identifier (e.g., "J1", "J2", ...)
        x: Centre x in world pixels
        y: Centre y in world pixels
        tile_size: Tile edge length used for snapping
        role: "idle", "splitter", "merger" or "balanced"
        connection_points: Ports in TOP, RIGHT, BOTTOM, LEFT order
    """

    id: str
    x: float
    y: float
    tile_size: int = GridConfig.TILE_SIZE_PX
    role: str = field(default="idle", init=False)
    connection_points: list[ConnectionPoint] = field(default_factory=list, init=False)

    size = JunctionConfig.SIZE_PX

    def __post_init__(self) -> None:
        offset = self.size / 2 + JunctionConfig.PORT_GAP_PX
        for side, port_type, (ux, uy) in _PORT_LAYOUT:
            self.connection_points.append(
                ConnectionPoint(owner=self, type=port_type, side=side, offset_x=ux * offset, offset_y=uy * offset)
            )

    def get_point(self, side: ConnectionSide) -> ConnectionPoint:
        return next(p for p in self.connection_points if p.side == side)

    def update_connection_points(self) -> None:
        for point in self.connection_points:
            point.update_position()

    def move_by(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy
        self.update_connection_points()

    def move_to(self, x: float, y: float) -> None:
        self.x = x
        self.y = y
        self.update_connection_points()

    def snap_to_grid(self) -> None:
        """Move to the nearest tile centre."""
        half = self.tile_size / 2
        self.x = round((self.x - half) / self.tile_size) * self.tile_size + half
        self.y = round((self.y - half) / self.tile_size) * self.tile_size + half
        self.update_connection_points()

    @property
    def bounds(self) -> Obstacle:
        """Square around the centre, used as a routing obstacle."""
        half = self.size / 2
        return Obstacle(x=self.x - half, y=self.y - half, width=self.size, height=self.size)

    def contains_point(self, x: float, y: float) -> bool:
        # Slightly larger than the body for easier clicking
        return math.hypot(x - self.x, y - self.y) <= self.size / 2 + 5

    def get_connection_point_at(
        self, x: float, y: float, threshold: float = ConnectionConfig.PORT_HIT_RADIUS_PX
    ) -> Optional[ConnectionPoint]:
        """Return the closest port within `threshold` pixels of (x, y)."""
        best: Optional[ConnectionPoint] = None
        best_dist = threshold
        for point in self.connection_points:
            dist = math.hypot(point.x - x, point.y - y)
            if dist <= best_dist:
                best, best_dist = point, dist
        return best

    def available_points(self) -> list[ConnectionPoint]:
        return [p for p in self.connection_points if p.is_available()]

    def connection_counts(self) -> tuple[int, int]:
        """Return (connected inputs, connected outputs)."""
        inputs = sum(1 for p in self.connection_points if p.type == ConnectionType.INPUT and p.connected_belt)
        outputs = sum(1 for p in self.connection_points if p.type == ConnectionType.OUTPUT and p.connected_belt)
        return inputs, outputs

    def on_connection_changed(self) -> None:
        """Recompute the role from current port occupancy."""
        inputs, outputs = self.connection_counts()
        if inputs + outputs == 0:
            self.role = "idle"
        elif inputs > outputs:
            self.role = "splitter"
        elif outputs > inputs:
            self.role = "merger"
        else:
            self.role = "balanced"

    @property
    def color(self) -> str:
        return StyleConfig.JUNCTION_COLORS[self.role]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "x": self.x, "y": self.y, "tile_size": self.tile_size}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Junction":
        """Create Junction from dictionary."""
        return cls(id=data["id"], x=data["x"], y=data["y"], tile_size=data.get("tile_size", GridConfig.TILE_SIZE_PX))

    def __repr__(self) -> str:
        return f"Junction({self.id}, ({self.x:g}, {self.y:g}), {self.role})"
