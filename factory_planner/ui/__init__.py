"""User interface logic for the factory planner.

Core Components:
- placement_state_machine.py: PlacementStateMachine (3 states) + PlacementContext

Rendering is left to the host application; everything here is headless.
"""

from factory_planner.ui.placement_state_machine import (
    LayoutCleanupListener,
    PlacementContext,
    PlacementStateMachine,
)

__all__ = [
    "LayoutCleanupListener",
    "PlacementContext",
    "PlacementStateMachine",
]
