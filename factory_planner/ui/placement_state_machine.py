"""State machine for the factory planner placement tool.

Uses python-statemachine for the pointer tool that builds belt chains and
drags entities around the layout. The machine is headless: a renderer feeds
it pointer events, and the layout holds every result.

States (3 states):
    IDLE: Nothing in progress
    BELT_PLACING: A chain start is selected; each click adds one belt
    DRAGGING: A factory, junction or free endpoint follows the pointer

Transitions:
    IDLE -> BELT_PLACING: start_belt (click a free port, a free endpoint or open floor)
    BELT_PLACING -> BELT_PLACING: place_segment (guarded by layout.can_connect)
    BELT_PLACING -> IDLE: finish_belt
    IDLE -> DRAGGING: start_drag
    DRAGGING -> DRAGGING: drag_to (live re-route on every move)
    DRAGGING -> IDLE: end_drag (snap to grid), cancel_drag (restore start position)

Belt chaining
-------------
After each placed segment the chain continues from the segment's target, so
clicking A, B, C creates belts A->B and B->C. Clicking open floor creates a
free endpoint there (see resolve_click()).

Cleanup on Transition
---------------------
LayoutCleanupListener.after_transition() logs every transition and drops
free endpoints left without belts whenever the machine returns to IDLE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from factory_planner.model.belt import BeltEndpoint
from factory_planner.model.connection_point import EndpointKind
from factory_planner.model.layout import FactoryLayout

logger = logging.getLogger(__name__)


@dataclass
class BeltChainContext:
    """Belt chain being built in BELT_PLACING."""

    start: Optional[BeltEndpoint] = None
    belt_ids: list[str] = field(default_factory=list)

    def clear(self) -> None:
        if self.start is not None and self.start.kind == EndpointKind.PORT:
            self.start.set_hovered(False)
        self.start = None
        self.belt_ids = []


@dataclass
class DragContext:
    """Entity being dragged in DRAGGING.

    Attributes:
        entity_id: Factory, junction or free endpoint id
        origin: Position when the drag started, restored by cancel_drag
    """

    entity_id: str | None = None
    origin: tuple[float, float] | None = None

    def clear(self) -> None:
        self.entity_id = None
        self.origin = None


@dataclass
class PlacementContext:
    """Shared context/model for the placement state machine.

    Note: The 'state' field is managed by python-statemachine when this
    object is passed as the model. It stores the current state value.
    """

    # State managed by python-statemachine (model pattern)
    state: str | None = None

    layout: FactoryLayout = field(default_factory=FactoryLayout)
    chain: BeltChainContext = field(default_factory=BeltChainContext)
    drag: DragContext = field(default_factory=DragContext)

    def __repr__(self) -> str:
        return f"PlacementContext(state={self.state}, chain_start={self.chain.start!r}, drag={self.drag.entity_id})"


class LayoutCleanupListener:
    """Listener that keeps the layout tidy after state transitions.

    Usage:
        sm = PlacementStateMachine(context=context)
        sm.add_listener(LayoutCleanupListener(layout=context.layout))
    """

    def __init__(self, layout: FactoryLayout) -> None:
        self.layout = layout

    def after_transition(self, event: str, source: State, target: State) -> None:
        logger.info(f"[STATE] {source.name} --({event})--> {target.name}")

        # A pending chain start may be a fresh free endpoint with no belts yet
        if target.id == "idle":
            removed = self.layout.cleanup_free_endpoints()
            if removed > 0:
                logger.info(f"Cleanup: removed {removed} orphaned free endpoint(s)")


class PlacementStateMachine(StateMachine):
    """State machine for belt placement and dragging.

    States:
        idle: Nothing in progress
        belt_placing: Building a belt chain
        dragging: Moving an entity
    """

    # ==========================================================================
    # State Definitions
    # ==========================================================================

    idle = State("Idle", initial=True)
    belt_placing = State("BeltPlacing")
    dragging = State("Dragging")

    # ==========================================================================
    # Transitions
    # ==========================================================================

    # Select the first endpoint of a chain
    start_belt = idle.to(belt_placing, cond="is_valid_chain_start")
    # Add one belt and continue the chain from its target
    place_segment = belt_placing.to(belt_placing, cond="can_place_segment")
    finish_belt = belt_placing.to(idle)

    start_drag = idle.to(dragging, cond="is_draggable")
    drag_to = dragging.to(dragging)
    end_drag = dragging.to(idle)
    cancel_drag = dragging.to(idle)

    # ==========================================================================
    # Guards (Conditions)
    # ==========================================================================

    def is_valid_chain_start(self, endpoint: BeltEndpoint) -> bool:
        """Guard: chains start at a free endpoint or an unoccupied port."""
        if endpoint.kind == EndpointKind.PORT:
            return endpoint.is_available()
        return True

    def can_place_segment(self, endpoint: BeltEndpoint) -> bool:
        """Guard: the pending start may legally connect to endpoint."""
        return self.context.layout.can_connect(start=self.context.chain.start, end=endpoint)

    def is_draggable(self, entity_id: str) -> bool:
        layout = self.context.layout
        return entity_id in layout.factories or entity_id in layout.junctions or entity_id in layout.free_endpoints

    # ==========================================================================
    # State Check Properties
    # ==========================================================================

    @property
    def is_idle(self) -> bool:
        return self.idle.is_active

    @property
    def is_belt_placing(self) -> bool:
        return self.belt_placing.is_active

    @property
    def is_dragging(self) -> bool:
        return self.dragging.is_active

    # ==========================================================================
    # Entry Hooks
    # ==========================================================================

    def on_enter_idle(self) -> None:
        """Hook: Entering idle state."""
        self.context.chain.clear()
        self.context.drag.clear()

    # ==========================================================================
    # Transition Actions (before_* hooks)
    # ==========================================================================

    def before_start_belt(self, endpoint: BeltEndpoint) -> None:
        self.context.chain.start = endpoint
        if endpoint.kind == EndpointKind.PORT:
            endpoint.set_hovered(True)

    def before_place_segment(self, endpoint: BeltEndpoint) -> None:
        """Action before placing a segment: create the belt, then advance the chain."""
        chain = self.context.chain
        belt = self.context.layout.connect(start=chain.start, end=endpoint)
        chain.belt_ids.append(belt.id)

        if chain.start.kind == EndpointKind.PORT:
            chain.start.set_hovered(False)
        chain.start = endpoint
        if endpoint.kind == EndpointKind.PORT:
            endpoint.set_hovered(True)

    def before_start_drag(self, entity_id: str) -> None:
        layout = self.context.layout
        entity = layout.free_endpoints.get(entity_id) or layout.get_entity(entity_id)
        self.context.drag.entity_id = entity_id
        self.context.drag.origin = (entity.x, entity.y)

    def before_drag_to(self, x: float, y: float) -> None:
        self._move_dragged(x=x, y=y)

    def before_end_drag(self) -> None:
        """Action before dropping: snap placed entities to the grid. Free endpoints stay put."""
        entity_id = self.context.drag.entity_id
        if entity_id not in self.context.layout.free_endpoints:
            self.context.layout.snap_entity(entity_id)

    def before_cancel_drag(self) -> None:
        x, y = self.context.drag.origin
        self._move_dragged(x=x, y=y)

    def _move_dragged(self, x: float, y: float) -> None:
        layout = self.context.layout
        entity_id = self.context.drag.entity_id
        if entity_id in layout.free_endpoints:
            layout.move_free_endpoint(endpoint_id=entity_id, x=x, y=y)
        else:
            layout.move_entity_to(entity_id=entity_id, x=x, y=y)

    # ==========================================================================
    # Initialization
    # ==========================================================================

    def __init__(self, context: PlacementContext | None = None, start_value: str | None = None) -> None:
        """Initialize state machine with model pattern.

        Args:
            context: Shared context/model (creates new if None)
            start_value: Optional initial state value (for restoring state)
        """
        model = context or PlacementContext()
        super().__init__(model=model, start_value=start_value)

    # ==========================================================================
    # Utility Methods
    # ==========================================================================

    @property
    def context(self) -> PlacementContext:
        """Alias for model."""
        return self.model

    def resolve_click(self, x: float, y: float) -> BeltEndpoint:
        """Endpoint under a click: a port, else a free endpoint, else a new free endpoint there."""
        layout = self.context.layout
        point = layout.find_connection_point_at(x=x, y=y)
        if point is not None:
            return point
        endpoint = layout.find_free_endpoint_at(x=x, y=y)
        if endpoint is not None:
            return endpoint
        return layout.add_free_endpoint(x=x, y=y)

    def get_state_name(self) -> str:
        """Get current state name for display."""
        return self.current_state.name

    def get_available_actions(self) -> list[str]:
        """Get list of available transition names (for UI display only)."""
        return [t.event for t in self.current_state.transitions]

    def __repr__(self) -> str:
        return f"PlacementStateMachine(state={self.get_state_name()}, model={self.context!r})"

    def try_transition(self, event: str, **kwargs: Any) -> bool:
        """Attempt a transition, returning success/failure.

        Args:
            event: Transition event name
            **kwargs: Arguments for transition

        Returns:
            True if transition succeeded, False otherwise.
        """
        try:
            self.send(event=event, **kwargs)
            return True
        except TransitionNotAllowed:
            logger.warning(f"Transition '{event}' not allowed from {self.get_state_name()}")
            return False

    @staticmethod
    def create(add_cleanup_listener: bool = True) -> tuple["PlacementStateMachine", PlacementContext]:
        """Factory method to create state machine with context and optional cleanup listener.

        Returns:
            Tuple of (PlacementStateMachine, PlacementContext)
        """
        context = PlacementContext()
        sm = PlacementStateMachine(context=context)
        if add_cleanup_listener:
            sm.add_listener(LayoutCleanupListener(layout=context.layout))
            logger.info("Created PlacementStateMachine with LayoutCleanupListener")
        return sm, context
