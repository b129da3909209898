"""Data models for the factory planner.

Entities:
- ConnectionPoint: typed, directional port on a factory or junction
- FreeEndpoint: draggable belt node in open space
- Belt: routed conveyor between two endpoints
- Factory: placed machine with ports laid out by shape
- Junction: four-port splitter/merger
- MachineCatalog: machine and recipe definitions
- FactoryLayout: central manager owning everything above
"""

from factory_planner.model.belt import Belt
from factory_planner.model.catalog import MachineCatalog, MachineDef, RecipeDef
from factory_planner.model.connection_point import (
    ConnectionPoint,
    ConnectionSide,
    ConnectionType,
    EndpointKind,
)
from factory_planner.model.factory import Factory
from factory_planner.model.free_endpoint import FreeEndpoint
from factory_planner.model.junction import Junction
from factory_planner.model.layout import FactoryLayout

__all__ = [
    # Endpoints
    "ConnectionPoint",
    "ConnectionSide",
    "ConnectionType",
    "EndpointKind",
    "FreeEndpoint",
    # Entities
    "Belt",
    "Factory",
    "Junction",
    # Registry and manager
    "MachineCatalog",
    "MachineDef",
    "RecipeDef",
    "FactoryLayout",
]
