"""MachineCatalog - Registry of machine and recipe definitions.

The catalog is constructed explicitly and handed to the layout that needs
it. Machine footprints come from MachineConfig.SIZES, falling back to
MachineConfig.DEFAULT_SIZE for unknown names.

Example JSON shape accepted by from_dict():

    {
        "machines": [{"name": "Smelter", "basePower": 4, "inputCount": 1, "outputCount": 1}],
        "recipes": [{"name": "Iron Ingot", "machine": "Smelter", "craftTime": 2,
                     "inputs": [{"item": "Iron Ore", "quantity": 1}],
                     "outputs": [{"item": "Iron Ingot", "quantity": 1}]}]
    }
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from factory_planner.constants import MachineConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MachineDef:
    """A machine type.

    Attributes:
        name: Display name, also the catalog key
        base_power: Power draw in MW
        input_count: Number of input ports
        output_count: Number of output ports
    """

    name: str
    base_power: float = 0.0
    input_count: int = 1
    output_count: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MachineDef":
        return cls(
            name=data["name"],
            base_power=data.get("basePower", 0.0),
            input_count=data.get("inputCount", 1),
            output_count=data.get("outputCount", 1),
        )


@dataclass(frozen=True)
class ItemAmount:
    item: str
    quantity: int


@dataclass(frozen=True)
class RecipeDef:
    """A recipe crafted by one machine type."""

    name: str
    machine: str
    craft_time: float
    inputs: tuple[ItemAmount, ...] = ()
    outputs: tuple[ItemAmount, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecipeDef":
        return cls(
            name=data["name"],
            machine=data["machine"],
            craft_time=data.get("craftTime", 0.0),
            inputs=tuple(ItemAmount(item=i["item"], quantity=i["quantity"]) for i in data.get("inputs", [])),
            outputs=tuple(ItemAmount(item=o["item"], quantity=o["quantity"]) for o in data.get("outputs", [])),
        )


@dataclass
class MachineCatalog:
    """Machine and recipe definitions available to a layout."""

    machines: dict[str, MachineDef] = field(default_factory=dict)
    recipes: list[RecipeDef] = field(default_factory=list)
    sizes: dict[str, tuple[int, int]] = field(default_factory=lambda: dict(MachineConfig.SIZES))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MachineCatalog":
        """Load catalog from the {machines: [...], recipes: [...]} JSON shape."""
        machines = [MachineDef.from_dict(m) for m in data.get("machines", [])]
        recipes = [RecipeDef.from_dict(r) for r in data.get("recipes", [])]
        catalog = cls(machines={m.name: m for m in machines}, recipes=recipes)
        logger.info(f"Loaded catalog: {len(machines)} machines, {len(recipes)} recipes")
        return catalog

    def get_machine(self, name: str) -> Optional[MachineDef]:
        return self.machines.get(name)

    def get_machine_size(self, name: str) -> tuple[int, int]:
        """Footprint in tiles (width, height); unknown machines are 2x2."""
        return self.sizes.get(name, MachineConfig.DEFAULT_SIZE)

    def recipes_for(self, machine_name: str) -> list[RecipeDef]:
        return [r for r in self.recipes if r.machine == machine_name]
