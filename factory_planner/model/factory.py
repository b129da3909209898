"""Factory - A placed machine with input and output ports.

A Factory occupies a rectangle of grid tiles. Its position (x, y) is the
top-left corner in world pixels. Ports are laid out along the edges by
machine shape:
- 1xN (tall) machines: inputs on TOP, outputs on BOTTOM
- Everything else: inputs on LEFT, outputs on RIGHT

Ports are evenly spaced along their side and stand PORT_STANDOFF_PX outside
the body, so a belt leaving a port immediately clears the building edge.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from factory_planner.constants import ConnectionConfig, GridConfig
from factory_planner.core.geometry import Obstacle
from factory_planner.model.connection_point import ConnectionPoint, ConnectionSide, ConnectionType


@dataclass(eq=False)
class Factory:
    """A machine placed on the grid.

    Attributes:
        id: Unique identifier (e.g., "F1", "F2", ...)
        name: Machine name (e.g., "Smelter")
        x: Left edge in world pixels
        y: Top edge in world pixels
        grid_width: Width in tiles
        grid_height: Height in tiles
        input_count: Number of input ports
        output_count: Number of output ports
        tile_size: Tile edge length in pixels
        connection_points: All ports, inputs first
    """

    id: str
    name: str
    x: float
    y: float
    grid_width: int
    grid_height: int
    input_count: int = 1
    output_count: int = 1
    tile_size: int = GridConfig.TILE_SIZE_PX
    connection_points: list[ConnectionPoint] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        if self.grid_width < 1 or self.grid_height < 1:
            raise ValueError(f"Factory {self.name} needs a positive size, got {self.grid_width}x{self.grid_height}")
        self._create_connection_points()

    @property
    def pixel_width(self) -> float:
        return self.grid_width * self.tile_size

    @property
    def pixel_height(self) -> float:
        return self.grid_height * self.tile_size

    @property
    def is_tall(self) -> bool:
        """True for 1xN machines, which take input on top and output on the bottom."""
        return self.grid_width == 1 and self.grid_height > 1

    @property
    def inputs(self) -> list[ConnectionPoint]:
        return [p for p in self.connection_points if p.type == ConnectionType.INPUT]

    @property
    def outputs(self) -> list[ConnectionPoint]:
        return [p for p in self.connection_points if p.type == ConnectionType.OUTPUT]

    def _create_connection_points(self) -> None:
        if self.is_tall:
            input_side, output_side = ConnectionSide.TOP, ConnectionSide.BOTTOM
        else:
            input_side, output_side = ConnectionSide.LEFT, ConnectionSide.RIGHT

        self._add_side_points(port_type=ConnectionType.INPUT, side=input_side, count=self.input_count)
        self._add_side_points(port_type=ConnectionType.OUTPUT, side=output_side, count=self.output_count)

    def _add_side_points(self, port_type: ConnectionType, side: ConnectionSide, count: int) -> None:
        """Spread `count` ports evenly along one side of the body."""
        standoff = ConnectionConfig.PORT_STANDOFF_PX
        along_top_or_bottom = side in (ConnectionSide.TOP, ConnectionSide.BOTTOM)
        side_length = self.pixel_width if along_top_or_bottom else self.pixel_height
        spacing = side_length / (count + 1)

        for i in range(count):
            along = spacing * (i + 1)
            if side == ConnectionSide.LEFT:
                offset_x, offset_y = -standoff, along
            elif side == ConnectionSide.RIGHT:
                offset_x, offset_y = self.pixel_width + standoff, along
            elif side == ConnectionSide.TOP:
                offset_x, offset_y = along, -standoff
            else:
                offset_x, offset_y = along, self.pixel_height + standoff

            self.connection_points.append(
                ConnectionPoint(owner=self, type=port_type, side=side, offset_x=offset_x, offset_y=offset_y, index=i)
            )

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
        """Round the top-left corner to the nearest tile corner."""
        self.x = round(self.x / self.tile_size) * self.tile_size
        self.y = round(self.y / self.tile_size) * self.tile_size
        self.update_connection_points()

    @property
    def bounds(self) -> Obstacle:
        """Full body footprint, used as a routing obstacle."""
        return Obstacle(x=self.x, y=self.y, width=self.pixel_width, height=self.pixel_height)

    def contains_point(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.pixel_width and self.y <= y <= self.y + self.pixel_height

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

    def on_connection_changed(self) -> None:
        # Factories have no state derived from occupancy
        pass

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "grid_width": self.grid_width,
            "grid_height": self.grid_height,
            "input_count": self.input_count,
            "output_count": self.output_count,
            "tile_size": self.tile_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Factory":
        """Create Factory from dictionary."""
        return cls(
            id=data["id"],
            name=data["name"],
            x=data["x"],
            y=data["y"],
            grid_width=data["grid_width"],
            grid_height=data["grid_height"],
            input_count=data.get("input_count", 1),
            output_count=data.get("output_count", 1),
            tile_size=data.get("tile_size", GridConfig.TILE_SIZE_PX),
        )

    def __repr__(self) -> str:
        return f"Factory({self.id}, {self.name}, ({self.x:g}, {self.y:g}), {self.grid_width}x{self.grid_height})"
