"""ConnectionPoint - Typed, directional port on a factory or junction.

A ConnectionPoint is where a belt attaches to its owner. It has:
- A type (INPUT or OUTPUT) deciding which ports it may link to
- A side (TOP, RIGHT, BOTTOM, LEFT) fixing the direction belts travel through it
- A world position recomputed from the owner position plus a fixed offset
- At most one connected belt

Direction vectors by side and type (y grows downward):

    side    OUTPUT (exit)   INPUT (entry)
    TOP     (0, -1)         (0, +1)
    BOTTOM  (0, +1)         (0, -1)
    LEFT    (-1, 0)         (+1, 0)
    RIGHT   (+1, 0)         (-1, 0)

An OUTPUT points away from its owner, an INPUT points into it. The router
uses this vector as the required tangent at the belt's endpoint.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol

from factory_planner.core.geometry import Direction, Point

if TYPE_CHECKING:
    from factory_planner.model.belt import Belt

logger = logging.getLogger(__name__)


class ConnectionType(Enum):
    """Which way items flow through a port."""

    INPUT = "input"
    OUTPUT = "output"


class ConnectionSide(Enum):
    """Edge of the owner the port sits on."""

    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"


class EndpointKind(Enum):
    """Tag distinguishing the two kinds of belt endpoint.

    Routing only needs the shared {x, y, get_direction_vector()} shape.
    Occupancy, hover and release semantics differ, so layout and UI code
    switch on this tag explicitly.
    """

    PORT = "port"
    FREE_NODE = "free_node"


class ConnectionPointOwner(Protocol):
    """Capability an owner offers its ports: an id and a position to follow.

    Owners may also define on_connection_changed(), called whenever one of
    their ports gains or loses a belt.
    """

    id: str
    x: float
    y: float


# Direction of travel through an OUTPUT port, per side. INPUT ports use the reverse.
_OUTPUT_DIRECTIONS = {
    ConnectionSide.TOP: Direction.UP,
    ConnectionSide.RIGHT: Direction.RIGHT,
    ConnectionSide.BOTTOM: Direction.DOWN,
    ConnectionSide.LEFT: Direction.LEFT,
}


@dataclass(eq=False)
class ConnectionPoint:
    """A port owned by a factory or junction.

    Identity matters: two ports with identical fields are still different
    ports, so equality is by object identity.

    Attributes:
        owner: Back-reference to the factory/junction (lookup only, not ownership)
        type: INPUT or OUTPUT
        side: Owner edge the port sits on
        offset_x: Fixed horizontal offset from the owner position
        offset_y: Fixed vertical offset from the owner position
        index: Position of the port among its owner's ports of the same type
        x: World x, kept in sync by update_position()
        y: World y, kept in sync by update_position()
        connected_belt: Belt attached to this port, if any
        hovered: UI hover flag
    """

    owner: ConnectionPointOwner
    type: ConnectionType
    side: ConnectionSide
    offset_x: float
    offset_y: float
    index: int = 0
    x: float = field(default=0.0, init=False)
    y: float = field(default=0.0, init=False)
    connected_belt: Optional["Belt"] = field(default=None, init=False)
    hovered: bool = field(default=False, init=False)

    kind = EndpointKind.PORT

    def __post_init__(self) -> None:
        self.update_position()

    @property
    def position(self) -> Point:
        return Point(x=self.x, y=self.y)

    def update_position(self) -> None:
        """Recompute world position from the owner's current position."""
        self.x = self.owner.x + self.offset_x
        self.y = self.owner.y + self.offset_y

    def can_connect_to(self, other: "ConnectionPoint") -> bool:
        """Check whether a belt may link this port to another.

        Rejects self-links, ports on the same owner, two ports of the same
        type, and ports already holding a belt.
        """
        if other is self or other.owner is self.owner:
            return False
        if other.type == self.type:
            return False
        if self.connected_belt is not None or other.connected_belt is not None:
            return False
        return True

    def set_connected(self, belt: Optional["Belt"]) -> None:
        """Record occupancy and notify the owner.

        Args:
            belt: Belt now attached, or None when it is removed
        """
        self.connected_belt = belt
        callback = getattr(self.owner, "on_connection_changed", None)
        if callback is not None:
            callback()

    def is_available(self) -> bool:
        """True if no belt is attached."""
        return self.connected_belt is None

    def set_hovered(self, hovered: bool) -> None:
        self.hovered = hovered

    def get_direction_vector(self) -> Direction:
        """Direction a belt travels through this port.

        Away from the owner for outputs, into the owner for inputs.
        """
        direction = _OUTPUT_DIRECTIONS[self.side]
        if self.type == ConnectionType.INPUT:
            return direction.reversed()
        return direction

    @property
    def color(self) -> str:
        """Display color: hover highlight, otherwise by type."""
        from factory_planner.constants import StyleConfig

        if self.hovered and self.connected_belt is None:
            return StyleConfig.HOVER_COLOR
        return StyleConfig.INPUT_COLOR if self.type == ConnectionType.INPUT else StyleConfig.OUTPUT_COLOR

    def __repr__(self) -> str:
        state = "connected" if self.connected_belt is not None else "free"
        return f"ConnectionPoint({self.type.value}, {self.side.value}, ({self.x:g}, {self.y:g}), {state})"
