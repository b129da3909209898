"""Core geometry for belt routing.

This module provides the geometric backbone of the factory planner:
- Point, Direction, Obstacle: value types shared by every layer
- GeometryCalculator: segment/segment and segment/rectangle intersection
- is_path_clear: whole-polyline obstacle test
"""

from factory_planner.core.geometry import Direction, GeometryCalculator, Obstacle, Point
from factory_planner.core.path_validator import first_blocked_segment, is_path_clear

__all__ = [
    # Geometry
    "Point",
    "Direction",
    "Obstacle",
    "GeometryCalculator",
    # Path validation
    "is_path_clear",
    "first_blocked_segment",
]
