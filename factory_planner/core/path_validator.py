"""Whole-path obstacle checks.

A path is clear when none of its consecutive segments touches a padded
obstacle. Used by the router to accept or reject candidate polylines.
"""

from typing import Optional, Sequence

from factory_planner.core.geometry import GeometryCalculator, Obstacle, Point


def first_blocked_segment(path: Sequence[Point], obstacles: Sequence[Obstacle]) -> Optional[int]:
    """Return the index of the first segment that hits an obstacle.

    Segment i runs from path[i] to path[i + 1].

    Returns:
        Segment index, or None if the path is clear.
    """
    for i in range(len(path) - 1):
        if GeometryCalculator.segment_intersects_obstacles(path[i], path[i + 1], obstacles):
            return i
    return None


def is_path_clear(path: Sequence[Point], obstacles: Sequence[Obstacle]) -> bool:
    """True if every segment of the path avoids all obstacles.

    Paths with fewer than two points have no segments and are always clear.
    """
    return first_blocked_segment(path, obstacles) is None
