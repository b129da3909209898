"""Planar geometry primitives for belt routing.

Provides the value types and intersection tests the router is built on:
- Point: world-space position (pixels)
- Direction: axis-aligned unit step, or the zero "no preference" sentinel
- Obstacle: axis-aligned rectangle, (x, y) is the top-left corner
- GeometryCalculator: segment/segment and segment/rectangle intersection

World space follows screen conventions: x grows to the right, y grows down.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator

from factory_planner.constants import RoutingConfig


@dataclass(frozen=True)
class Point:
    """An immutable world-space position.

    Attributes:
        x: Horizontal coordinate in pixels
        y: Vertical coordinate in pixels (grows downward)
    """

    x: float
    y: float

    def offset(self, direction: "Direction", distance: float) -> "Point":
        """Return the point reached by travelling `distance` along `direction`."""
        return Point(x=self.x + direction.x * distance, y=self.y + direction.y * distance)

    @property
    def xy(self) -> tuple[float, float]:
        return (self.x, self.y)

    def __repr__(self) -> str:
        return f"Point({self.x:g}, {self.y:g})"


@dataclass(frozen=True)
class Direction:
    """Axis-aligned direction of travel.

    Each component is -1, 0 or 1 and at most one is nonzero.
    Direction(0, 0) means "no preferred direction".
    """

    x: int
    y: int

    @property
    def is_zero(self) -> bool:
        return self.x == 0 and self.y == 0

    @property
    def is_horizontal(self) -> bool:
        return self.x != 0

    @property
    def is_vertical(self) -> bool:
        return self.y != 0

    def reversed(self) -> "Direction":
        return Direction(x=-self.x, y=-self.y)

    def dot(self, dx: float, dy: float) -> float:
        """Projection of the vector (dx, dy) onto this direction."""
        return self.x * dx + self.y * dy

    @staticmethod
    def from_delta(dx: float, dy: float) -> "Direction":
        """Direction of the dominant axis of (dx, dy), or NONE for a zero vector."""
        if dx == 0 and dy == 0:
            return Direction.NONE
        if abs(dx) >= abs(dy):
            return Direction(x=1 if dx > 0 else -1, y=0)
        return Direction(x=0, y=1 if dy > 0 else -1)

    def __repr__(self) -> str:
        return f"Direction({self.x}, {self.y})"


Direction.NONE = Direction(x=0, y=0)
Direction.UP = Direction(x=0, y=-1)
Direction.DOWN = Direction(x=0, y=1)
Direction.LEFT = Direction(x=-1, y=0)
Direction.RIGHT = Direction(x=1, y=0)


@dataclass(frozen=True)
class Obstacle:
    """Axis-aligned rectangle the router tries not to cross.

    Obstacles are snapshots: the layout rebuilds them from building and
    junction positions before every routing call.

    Attributes:
        x: Left edge
        y: Top edge
        width: Horizontal extent
        height: Vertical extent
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def expanded(self, padding: float) -> "Obstacle":
        """Return a copy grown by `padding` on every side."""
        return Obstacle(
            x=self.x - padding,
            y=self.y - padding,
            width=self.width + 2 * padding,
            height=self.height + 2 * padding,
        )

    def contains_point(self, point: Point) -> bool:
        """True if the point lies inside or on the border."""
        return self.x <= point.x <= self.right and self.y <= point.y <= self.bottom

    def edges(self) -> Iterator[tuple[Point, Point]]:
        """Yield the four border segments (top, right, bottom, left)."""
        top_left = Point(x=self.x, y=self.y)
        top_right = Point(x=self.right, y=self.y)
        bottom_right = Point(x=self.right, y=self.bottom)
        bottom_left = Point(x=self.x, y=self.bottom)
        yield top_left, top_right
        yield top_right, bottom_right
        yield bottom_right, bottom_left
        yield bottom_left, top_left


class GeometryCalculator:
    """Static intersection tests used by the path validator and router.

    All tests are total over finite input and never raise.
    """

    @staticmethod
    def segments_intersect(p1: Point, p2: Point, p3: Point, p4: Point) -> bool:
        """Test whether segment p1-p2 intersects segment p3-p4.

        Uses the parametric determinant form. Exactly parallel segments
        (including collinear overlapping ones) report no intersection.

        Args:
            p1, p2: Endpoints of the first segment
            p3, p4: Endpoints of the second segment

        Returns:
            True if the segments share a point, False otherwise.
        """
        denom = (p4.y - p3.y) * (p2.x - p1.x) - (p4.x - p3.x) * (p2.y - p1.y)
        if denom == 0:
            return False

        ua = ((p4.x - p3.x) * (p1.y - p3.y) - (p4.y - p3.y) * (p1.x - p3.x)) / denom
        ub = ((p2.x - p1.x) * (p1.y - p3.y) - (p2.y - p1.y) * (p1.x - p3.x)) / denom
        return 0 <= ua <= 1 and 0 <= ub <= 1

    @staticmethod
    def segment_intersects_rect(p1: Point, p2: Point, rect: Obstacle) -> bool:
        """Test whether segment p1-p2 touches a rectangle.

        True if either endpoint is inside the rectangle or the segment
        crosses one of its four edges.
        """
        if rect.contains_point(p1) or rect.contains_point(p2):
            return True
        return any(GeometryCalculator.segments_intersect(p1, p2, a, b) for a, b in rect.edges())

    @staticmethod
    def segment_intersects_obstacles(
        p1: Point,
        p2: Point,
        obstacles: Iterable[Obstacle],
        padding: float = RoutingConfig.OBSTACLE_PADDING,
    ) -> bool:
        """Test segment p1-p2 against obstacles grown by `padding`.

        Padding keeps routed belts visibly clear of building edges rather
        than merely non-overlapping.
        """
        return any(
            GeometryCalculator.segment_intersects_rect(p1, p2, obstacle.expanded(padding)) for obstacle in obstacles
        )
