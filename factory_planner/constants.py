"""Configuration constants for Factory Planner.

All configurable parameters are centralized here for easy tuning.

Classes:
    EntityPrefixes: ID prefixes for layout entities
    GridConfig: Tile size and snapping
    RoutingConfig: Belt routing clearances, split fractions, obstacle padding
    ConnectionConfig: Port placement and hit-test radii
    JunctionConfig: Junction size and port offsets
    BeltConfig: Belt layers, arrows and hit areas
    MachineConfig: Default machine footprints
    StyleConfig: Visual colors
    UndoConfig: Undo stack limits
"""


class EntityPrefixes:
    """ID prefixes for layout entities."""

    FACTORY = "F"
    JUNCTION = "J"
    ENDPOINT = "E"
    BELT = "B"


class GridConfig:
    """Grid parameters shared by placement and snapping."""

    TILE_SIZE_PX = 32  # Edge length of one grid tile in world pixels


class RoutingConfig:
    """Belt routing parameters.

    These encode the visual style of belts (standing off from buildings) and
    are tuned for TILE_SIZE_PX = 32. Promote to parameters before reusing the
    router on a different grid scale.
    """

    # Straight run out of the start port and into the end port, tried in order
    EXIT_CLEARANCES = (40, 60, 80, 100, 120, 160)

    # Perpendicular detour distances for U-turns, tried in order, each with sign +1 then -1
    UTURN_CLEARANCES = (80, 120, 160, 200)
    DETOUR_SIGNS = (1, -1)

    # Where a same-orientation route places its jog, as a fraction of the along-axis distance
    SPLIT_FRACTIONS = (0.5, 0.3, 0.7, 0.4, 0.6)

    # Obstacles are grown by this much on every side before intersection tests
    OBSTACLE_PADDING = 5


assert RoutingConfig.EXIT_CLEARANCES == tuple(sorted(RoutingConfig.EXIT_CLEARANCES)), "Clearances must ascend"
assert RoutingConfig.UTURN_CLEARANCES == tuple(sorted(RoutingConfig.UTURN_CLEARANCES)), "Clearances must ascend"
assert RoutingConfig.SPLIT_FRACTIONS[0] == 0.5, "Midpoint split is the fallback and must come first"
assert all(0 < f < 1 for f in RoutingConfig.SPLIT_FRACTIONS)


class ConnectionConfig:
    """Port placement and hit testing."""

    # Ports sit this far outside the factory body
    PORT_STANDOFF_PX = 2

    # Click radius for finding ports and free endpoints
    PORT_HIT_RADIUS_PX = 20
    ENDPOINT_HIT_RADIUS_PX = 20

    # Footprints of a belt's own endpoint owners shrink by this much when routing that belt,
    # so its ports (PORT_STANDOFF_PX outside the body) fall outside the padded obstacle
    OWNER_OBSTACLE_INSET_PX = RoutingConfig.OBSTACLE_PADDING + PORT_STANDOFF_PX + 1


class JunctionConfig:
    """Junction geometry."""

    SIZE_PX = 24  # Diameter of the junction body
    PORT_GAP_PX = 4  # Ports sit SIZE_PX / 2 + PORT_GAP_PX from the centre


assert 2 * ConnectionConfig.OWNER_OBSTACLE_INSET_PX < JunctionConfig.SIZE_PX, "Inset must leave a junction core"


class BeltConfig:
    """Belt rendering and interaction parameters."""

    MIN_LAYER = 0
    MAX_LAYER = 2

    ARROW_SPACING_PX = 40  # Distance between flow arrows along a belt
    HIT_THRESHOLD_PX = 10  # Max distance from the polyline that counts as a click


class MachineConfig:
    """Machine footprints in tiles (width, height)."""

    DEFAULT_SIZE = (2, 2)

    SIZES = {
        "Smelter": (2, 2),
        "Constructor": (2, 2),
        "Assembler": (3, 3),
        "Foundry": (3, 2),
        "Refinery": (3, 4),
        "Manufacturer": (4, 4),
        "Nuclear Power Plant": (5, 6),
        "Storage": (1, 1),
        "Sink": (2, 2),
        "Spawn": (1, 1),
    }


class StyleConfig:
    """Visual colors."""

    INPUT_COLOR = "#44FF44"
    OUTPUT_COLOR = "#FF4444"
    HOVER_COLOR = "#FFFF00"

    # Junction fill by role (inputs vs outputs connected)
    JUNCTION_COLORS = {
        "idle": "#888888",
        "splitter": "#44FF44",
        "merger": "#FF4444",
        "balanced": "#4488FF",
    }

    BELT_LAYER_COLORS = ["#999999", "#AAAAAA", "#BBBBBB"]
    assert len(BELT_LAYER_COLORS) == BeltConfig.MAX_LAYER - BeltConfig.MIN_LAYER + 1


class UndoConfig:
    """Undo system configuration."""

    # Older actions are discarded when limit is reached
    MAX_UNDO_STACK_SIZE = 50
