"""Shared pytest fixtures for factory_planner tests.

Provides reusable layouts, owners and state machines for all factory_planner tests.
All fixtures use explicit values with documented rationale.

COORDINATE SYSTEM:
    World pixels with x growing right and y growing down, TILE_SIZE_PX = 32.
    A 2x2 machine at (0, 0) spans 0..64 on both axes; its single input port
    sits at (-2, 32) and its single output port at (66, 32).
"""

from dataclasses import dataclass

import pytest

from factory_planner.model.factory import Factory
from factory_planner.model.layout import FactoryLayout
from factory_planner.ui.placement_state_machine import PlacementContext, PlacementStateMachine


# =============================================================================
# OWNERS
# =============================================================================


@dataclass
class StubOwner:
    """Minimal ConnectionPointOwner: an id and a position, counting callbacks."""

    id: str
    x: float = 0.0
    y: float = 0.0
    changes: int = 0

    def on_connection_changed(self) -> None:
        self.changes += 1


@pytest.fixture
def owner_a() -> StubOwner:
    return StubOwner(id="A", x=100.0, y=100.0)


@pytest.fixture
def owner_b() -> StubOwner:
    return StubOwner(id="B", x=300.0, y=100.0)


# =============================================================================
# LAYOUT FIXTURES
# =============================================================================


@pytest.fixture
def empty_layout() -> FactoryLayout:
    """Fresh layout with the default catalog."""
    return FactoryLayout()


@pytest.fixture
def smelter_and_constructor(empty_layout: FactoryLayout) -> tuple[FactoryLayout, Factory, Factory]:
    """Two 2x2 machines side by side on the same row, 192px apart.

    Smelter (F1) at (0, 0): output port at (66, 32)
    Constructor (F2) at (256, 0): input port at (254, 32)
    """
    smelter = empty_layout.add_machine(name="Smelter", x=0, y=0)
    constructor = empty_layout.add_machine(name="Constructor", x=256, y=0)
    return empty_layout, smelter, constructor


@pytest.fixture
def wide_pair(empty_layout: FactoryLayout) -> tuple[FactoryLayout, Factory, Factory]:
    """Two 2x2 machines 256px apart, leaving room for a junction between them.

    Smelter (F1) at (0, 0): output port at (66, 32)
    Constructor (F2) at (320, 0): input port at (318, 32)
    """
    smelter = empty_layout.add_machine(name="Smelter", x=0, y=0)
    constructor = empty_layout.add_machine(name="Constructor", x=320, y=0)
    return empty_layout, smelter, constructor


# =============================================================================
# STATE MACHINE FIXTURES
# =============================================================================


@pytest.fixture
def state_machine_and_context() -> tuple[PlacementStateMachine, PlacementContext]:
    """Fresh state machine and context pair with cleanup listener, starting in IDLE state."""
    return PlacementStateMachine.create()


@pytest.fixture
def machine_with_factories(
    state_machine_and_context: tuple[PlacementStateMachine, PlacementContext],
) -> tuple[PlacementStateMachine, PlacementContext, Factory, Factory]:
    """State machine whose layout holds a smelter (F1) at (0, 0) and a constructor (F2) at (256, 0)."""
    sm, ctx = state_machine_and_context
    smelter = ctx.layout.add_machine(name="Smelter", x=0, y=0)
    constructor = ctx.layout.add_machine(name="Constructor", x=256, y=0)
    return sm, ctx, smelter, constructor
