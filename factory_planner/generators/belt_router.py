"""Belt routing - orthogonal polylines with 90° exit and entry.

Belts must leave a port perpendicular to the surface it sits on and arrive
at the target port travelling along that port's direction vector. Between
those two straight runs the router picks a short orthogonal "middle".

**Outer loop (generate_path):**
    For each exit clearance in RoutingConfig.EXIT_CLEARANCES (40 → 160):
    1. exit = start + start_dir · clearance
    2. entry = end - end_dir · clearance
    3. middle = route_between_points(exit, entry, ...)
    4. path = [start, exit, *middle, entry, end]
    The first obstacle-free path wins. If none is clear, the path built at
    the largest clearance is returned anyway so belt placement never fails.

**Middle routing (route_between_points):**
    - Reversal: directions oppose on one axis, or the target lies behind
      from_dir. Detour perpendicular first (UTURN_CLEARANCES × both signs).
    - Same orientation: one jog at a split of the along-axis distance
      (SPLIT_FRACTIONS), then the perpendicular detours if every split is
      blocked (e.g. from and to are colinear with a building between them).
    - Perpendicular orientation: one corner, preferring the one that keeps
      travelling along from_dir.

Every branch is an ordered candidate list filtered by first_clear(), so at
most 13 candidates are generated per call. The functions are pure: identical
input gives identical output, which live drag previews rely on.
"""

import logging
from typing import Sequence

from factory_planner.constants import RoutingConfig
from factory_planner.core.geometry import Direction, Obstacle, Point
from factory_planner.core.path_validator import first_blocked_segment, is_path_clear

logger = logging.getLogger(__name__)

# Interior waypoints of a middle route, excluding its own from/to points
Waypoints = list[Point]


def generate_path(
    start: Point,
    end: Point,
    start_dir: Direction,
    end_dir: Direction,
    obstacles: Sequence[Obstacle] = (),
) -> list[Point]:
    """Route a belt from start to end.

    Args:
        start: Position of the source port
        end: Position of the target port
        start_dir: Required direction of the first segment
        end_dir: Direction of travel into end (the last segment runs along it)
        obstacles: Rectangles to avoid, rebuilt by the caller for every call

    Returns:
        Axis-aligned polyline beginning at start and ending at end. May still
        cross an obstacle when no clear route exists within the search.
    """
    if start_dir.is_zero or end_dir.is_zero:
        return simple_path(start=start, end=end)

    path: list[Point] = []
    for clearance in RoutingConfig.EXIT_CLEARANCES:
        exit_point = start.offset(start_dir, clearance)
        entry_point = end.offset(end_dir, -clearance)

        middle = route_between_points(
            from_point=exit_point,
            to_point=entry_point,
            from_dir=start_dir,
            to_dir=end_dir,
            obstacles=obstacles,
        )
        path = _drop_repeated_points([start, exit_point, *middle, entry_point, end])

        if is_path_clear(path, obstacles):
            return path

    logger.debug(
        f"No clear belt route {start} -> {end}, using fallback with segment "
        f"{first_blocked_segment(path, obstacles)} blocked"
    )
    return path


def simple_path(start: Point, end: Point) -> list[Point]:
    """Single-bend polyline for endpoints without a preferred direction.

    Travels along the dominant axis first. No clearance or obstacle search.
    """
    dx = end.x - start.x
    dy = end.y - start.y

    if abs(dx) > abs(dy):
        corner = Point(x=end.x, y=start.y)
    else:
        corner = Point(x=start.x, y=end.y)

    return _drop_repeated_points([start, corner, end])


def route_between_points(
    from_point: Point,
    to_point: Point,
    from_dir: Direction,
    to_dir: Direction,
    obstacles: Sequence[Obstacle] = (),
) -> Waypoints:
    """Pick the interior waypoints connecting an exit point to an entry point.

    Args:
        from_point: Exit point, reached travelling along from_dir
        to_point: Entry point, left travelling along to_dir
        from_dir: Direction of travel arriving at from_point
        to_dir: Direction of travel leaving to_point
        obstacles: Rectangles to avoid

    Returns:
        Waypoints strictly between from_point and to_point, each one a turn.
        Empty when from_point and to_point are already colinear.
    """
    if is_reversal(from_point=from_point, to_point=to_point, from_dir=from_dir, to_dir=to_dir):
        candidates = detour_candidates(from_point=from_point, to_point=to_point, from_dir=from_dir)
    elif from_dir.is_horizontal == to_dir.is_horizontal:
        candidates = split_candidates(
            from_point=from_point, to_point=to_point, horizontal=from_dir.is_horizontal
        ) + detour_candidates(from_point=from_point, to_point=to_point, from_dir=from_dir)
    else:
        candidates = corner_candidates(from_point=from_point, to_point=to_point, from_dir=from_dir)

    chosen = first_clear(from_point=from_point, candidates=candidates, to_point=to_point, obstacles=obstacles)
    return _drop_straight_through(from_point=from_point, waypoints=chosen, to_point=to_point)


def is_reversal(from_point: Point, to_point: Point, from_dir: Direction, to_dir: Direction) -> bool:
    """True when continuing along from_dir cannot reach to_point without doubling back.

    Either the two directions oppose each other on the same axis, or the
    target lies behind from_point relative to from_dir.
    """
    opposite = from_dir.is_horizontal == to_dir.is_horizontal and from_dir == to_dir.reversed()
    behind = from_dir.dot(to_point.x - from_point.x, to_point.y - from_point.y) < 0
    return opposite or behind


def first_clear(
    from_point: Point,
    candidates: list[Waypoints],
    to_point: Point,
    obstacles: Sequence[Obstacle],
) -> Waypoints:
    """Return the first candidate whose full leg from_point → ... → to_point is clear.

    Falls back to the first candidate, which each generator orders as the
    most natural-looking route.
    """
    return next(
        (c for c in candidates if is_path_clear([from_point, *c, to_point], obstacles)),
        candidates[0],
    )


# =============================================================================
# Candidate Generators
# =============================================================================


def detour_candidates(from_point: Point, to_point: Point, from_dir: Direction) -> list[Waypoints]:
    """Perpendicular detours: shift sideways, travel across, then line up with to_point.

    Ordered by clearance (closest first), then sign (+1 before -1).
    """
    offsets = [sign * clearance for clearance in RoutingConfig.UTURN_CLEARANCES for sign in RoutingConfig.DETOUR_SIGNS]
    if from_dir.is_horizontal:
        return [
            [Point(x=from_point.x, y=from_point.y + offset), Point(x=to_point.x, y=from_point.y + offset)]
            for offset in offsets
        ]
    return [
        [Point(x=from_point.x + offset, y=from_point.y), Point(x=from_point.x + offset, y=to_point.y)]
        for offset in offsets
    ]


def split_candidates(from_point: Point, to_point: Point, horizontal: bool) -> list[Waypoints]:
    """Single-jog routes for two ports on the same axis.

    The jog crosses over at a fraction of the along-axis distance, midpoint first.
    """
    if horizontal:
        dx = to_point.x - from_point.x
        return [
            [Point(x=from_point.x + dx * fraction, y=from_point.y), Point(x=from_point.x + dx * fraction, y=to_point.y)]
            for fraction in RoutingConfig.SPLIT_FRACTIONS
        ]
    dy = to_point.y - from_point.y
    return [
        [Point(x=from_point.x, y=from_point.y + dy * fraction), Point(x=to_point.x, y=from_point.y + dy * fraction)]
        for fraction in RoutingConfig.SPLIT_FRACTIONS
    ]


def corner_candidates(from_point: Point, to_point: Point, from_dir: Direction) -> list[Waypoints]:
    """The two single-corner routes, the one continuing along from_dir first."""
    along_x = Point(x=to_point.x, y=from_point.y)
    along_y = Point(x=from_point.x, y=to_point.y)
    if from_dir.is_horizontal:
        return [[along_x], [along_y]]
    return [[along_y], [along_x]]


def _drop_straight_through(from_point: Point, waypoints: Waypoints, to_point: Point) -> Waypoints:
    """Remove waypoints that do not turn, e.g. a split jog between two colinear points.

    Only ever shortens the leg, so a clear leg stays clear.
    """
    kept: Waypoints = []
    for i, point in enumerate(waypoints):
        prev = kept[-1] if kept else from_point
        nxt = waypoints[i + 1] if i + 1 < len(waypoints) else to_point
        if prev.x == point.x == nxt.x or prev.y == point.y == nxt.y:
            continue
        kept.append(point)
    return kept


def _drop_repeated_points(points: list[Point]) -> list[Point]:
    """Remove consecutive duplicates so every segment has nonzero length."""
    result: list[Point] = []
    for point in points:
        if not result or result[-1] != point:
            result.append(point)
    return result
