"""FreeEndpoint - Draggable belt node not attached to any building.

Free endpoints let the player chain belts through open floor space.
Unlike a ConnectionPoint, a free endpoint holds any number of belts and
has no fixed side; its preferred direction is derived from the belts
attached to it.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from factory_planner.core.geometry import Direction, Point
from factory_planner.model.connection_point import EndpointKind

if TYPE_CHECKING:
    from factory_planner.model.belt import Belt


@dataclass(eq=False)
class FreeEndpoint:
    """A free-floating belt node.

    Attributes:
        id: Unique identifier (e.g., "E1", "E2", ...)
        x: World x
        y: World y
        belts: Belts attached to this node, in attach order
    """

    id: str
    x: float
    y: float
    belts: list["Belt"] = field(default_factory=list)

    kind = EndpointKind.FREE_NODE

    @property
    def position(self) -> Point:
        return Point(x=self.x, y=self.y)

    def set_connected(self, belt: "Belt") -> None:
        """Attach a belt. Attaching the same belt twice is a no-op."""
        if belt not in self.belts:
            self.belts.append(belt)

    def remove_belt(self, belt: "Belt") -> None:
        if belt in self.belts:
            self.belts.remove(belt)

    def is_orphaned(self) -> bool:
        """True once the last belt has been detached."""
        return not self.belts

    def move_to(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def _incoming_heading(self, skip: Optional["Belt"] = None) -> Direction:
        for belt in self.belts:
            if belt is not skip and belt.end is self and len(belt.path) >= 2:
                last, before = belt.path[-1], belt.path[-2]
                return Direction.from_delta(last.x - before.x, last.y - before.y)
        return Direction.NONE

    def get_direction_vector(self, routing: Optional["Belt"] = None) -> Direction:
        """Preferred direction of travel through this node.

        Continues the heading of the belt arriving here. Without an incoming
        belt, points against the first leg of the belt leaving here. With no
        belts (or only degenerate ones), returns Direction.NONE so the router
        falls back to a simple single-bend path.

        Args:
            routing: Belt about to be routed through this node. Its own path is
                never consulted. A belt leaving here takes the heading of a belt
                arriving here; a belt arriving here gets Direction.NONE.
        """
        if routing is not None:
            if routing.start is not self:
                return Direction.NONE
            return self._incoming_heading(skip=routing)

        heading = self._incoming_heading()
        if not heading.is_zero:
            return heading

        for belt in self.belts:
            if belt.start is self and len(belt.path) >= 2:
                first, after = belt.path[0], belt.path[1]
                return Direction.from_delta(after.x - first.x, after.y - first.y).reversed()

        return Direction.NONE

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "x": self.x, "y": self.y}

    def __repr__(self) -> str:
        return f"FreeEndpoint({self.id}, ({self.x:g}, {self.y:g}), belts={len(self.belts)})"
