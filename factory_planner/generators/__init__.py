"""Belt routing algorithms.

Provides generate_path for orthogonal belt routes:
- Clearance search: straight runs of 40-160px out of and into the ports
- Middle routing: reversal detours, same-axis jogs, single corners
- Best-effort fallback: never fails, returns the last attempted path
"""

from factory_planner.generators.belt_router import (
    generate_path,
    route_between_points,
    simple_path,
)

__all__ = [
    "generate_path",
    "route_between_points",
    "simple_path",
]
