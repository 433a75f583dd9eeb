"""Cell -- a single slot in the farm grid.

A cell has a terrain kind and owns at most one planted crop.  Its
occupancy state is never stored: it is derived from the crop (if any)
and the current time, so it cannot drift from the growth model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from homestead.crops import growth
from homestead.crops.catalog import CropConfig


class CellKind(Enum):
    """Terrain category.  FARM is only reachable from GROUND."""

    WATER = "water"
    GROUND = "ground"
    FARM = "farm"


class CellState(Enum):
    """Occupancy derived from the planted crop and its phase."""

    EMPTY = "empty"
    GROWING = "growing"
    READY_TO_HARVEST = "ready_to_harvest"


@dataclass(frozen=True)
class PlantedCrop:
    """A crop in the ground.

    Only ``crop_id`` and ``planted_at`` are persisted; ``config`` is the
    catalog entry resolved when the crop was planted or restored.

    Attributes:
        crop_id: Catalog id of the crop.
        planted_at: Planting timestamp in epoch seconds.
        config: Growth and price parameters from the catalog.
    """

    crop_id: str
    planted_at: float
    config: CropConfig = field(repr=False, compare=False)

    def reading(self, now: float) -> growth.GrowthReading:
        """Return the growth fraction and phase at ``now``."""
        return growth.phase(self.planted_at, self.config.growth_time, now)

    def stage(self, now: float) -> int:
        """Return the visual growth stage at ``now``."""
        return growth.stage(self.reading(now).fraction, self.config.growth_stages)


@dataclass(eq=False)
class Cell:
    """A single slot in the farm grid.

    Cells compare by identity; two grids never share cell objects.

    Attributes:
        x: Column position.
        y: Row position.
        kind: Terrain kind.
        crop: The planted crop, if any.
    """

    x: int
    y: int
    kind: CellKind = CellKind.GROUND
    crop: PlantedCrop | None = None

    @property
    def position(self) -> tuple[int, int]:
        return (self.x, self.y)

    @property
    def has_crop(self) -> bool:
        return self.crop is not None

    def state(self, now: float) -> CellState:
        """Return the occupancy state at time ``now``."""
        if self.crop is None:
            return CellState.EMPTY
        if self.crop.reading(now).is_ready:
            return CellState.READY_TO_HARVEST
        return CellState.GROWING

    def can_plant(self, now: float) -> bool:
        """Return True if a crop may be planted here (FARM and EMPTY)."""
        return self.kind is CellKind.FARM and self.state(now) is CellState.EMPTY

    def __setattr__(self, name: str, value: object) -> None:
        # Coordinates are the cell's identity and are fixed once set.
        if name in ("x", "y") and name in self.__dict__:
            msg = f"Cell.{name} is immutable"
            raise AttributeError(msg)
        super().__setattr__(name, value)

    def __repr__(self) -> str:
        return f"Cell({self.x}, {self.y}, {self.kind.value})"
