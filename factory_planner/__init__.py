"""Factory Planner - Lay out factories and route conveyor belts between them.

A headless factory-building sandbox core featuring:
- Orthogonal belt routing with 90° exits and entries and best-effort obstacle avoidance
- Typed, directional connection points on factories and junctions
- Layout management (placement, moves, junction insertion, undo, snapshots)
- State machine-based placement tool for belt chains and dragging

Modules:
    core: Geometry primitives (Point, Direction, Obstacle) and path validation
    model: Data structures (ConnectionPoint, Belt, Factory, Junction, FactoryLayout)
    generators: Belt routing (generate_path)
    ui: Placement tool state machine

Example:
    from factory_planner.model import FactoryLayout
    from factory_planner.generators import generate_path
"""
