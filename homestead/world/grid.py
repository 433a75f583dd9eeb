"""Grid -- the spatial container of the farm.

The Grid owns a fixed ``width x height`` array of cells for its whole
lifetime and is the only code path that changes a cell's kind or crop.
It tracks the single selected cell, seeds the default farmland, hands
growing crops to the watcher pool, and converts to and from the plain
records used for persistence.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from homestead.crops import growth
from homestead.errors import (
    CellOccupied,
    InvalidPlanting,
    InvalidTransition,
    NotFound,
    NotReady,
    OutOfRange,
    SnapshotError,
)
from homestead.simulation.clock import Clock, SystemClock
from homestead.simulation.events import (
    CellDeselected,
    CellKindChanged,
    CellSelected,
    CropCleared,
    CropHarvested,
    CropPlanted,
    EventBus,
)
from homestead.world.cell import Cell, CellKind, CellState, PlantedCrop

if TYPE_CHECKING:
    from homestead.crops.catalog import CropCatalog
    from homestead.crops.watchers import GrowthWatcherPool
    from homestead.simulation.persistence import CellRecord

logger = logging.getLogger(__name__)


def default_farmland(
    x: int,
    y: int,
    width: int,
    height: int,
    columns: int,
    rows: int,
) -> bool:
    """Return True if ``(x, y)`` lies in the centered farmland rectangle.

    The rectangle is ``columns x rows`` cells centered on a
    ``width x height`` grid.  With the default 2x3 rectangle on a 10x10
    grid that is columns 4-5 and rows 4-6.
    """
    x0 = width // 2 - columns // 2
    y0 = height // 2 - rows // 2
    return x0 <= x < x0 + columns and y0 <= y < y0 + rows


@dataclass
class Grid:
    """A 2D farm grid.

    Attributes:
        width: Number of columns.
        height: Number of rows.
        catalog: Crop lookup used to validate and time planted crops.
        clock: Time source for planting timestamps and phase checks.
        bus: Channel for grid notifications.
        watchers: Pool that monitors growing crops; optional so the grid
            can be used without an event loop.
        farm_columns: Width of the default farmland rectangle.
        farm_rows: Height of the default farmland rectangle.
        cells: 2D list of cells indexed as ``cells[y][x]``.
        selected: The selected cell, if any.
    """

    width: int
    height: int
    catalog: CropCatalog
    clock: Clock = field(default_factory=SystemClock)
    bus: EventBus = field(default_factory=EventBus)
    watchers: GrowthWatcherPool | None = None
    farm_columns: int = 2
    farm_rows: int = 3
    cells: list[list[Cell]] = field(init=False, repr=False)
    selected: Cell | None = field(init=False, default=None)
    _lock: threading.RLock = field(init=False, repr=False, default_factory=threading.RLock)

    def __post_init__(self) -> None:
        """Build the cells and seed the default farmland."""
        if self.width <= 0 or self.height <= 0:
            msg = f"grid dimensions must be positive, got {self.width}x{self.height}"
            raise ValueError(msg)
        self.cells = [
            [Cell(x=x, y=y) for x in range(self.width)] for y in range(self.height)
        ]
        self.seed_default_farmland()

    # -- Addressing -----------------------------------------------------------

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def cell_at(self, x: int, y: int) -> Cell:
        """Return the cell at grid coordinates ``(x, y)``.

        Args:
            x: Column index.
            y: Row index.

        Raises:
            OutOfRange: If coordinates are out of bounds.
        """
        if not self.in_bounds(x, y):
            raise OutOfRange(x, y, self.width, self.height)
        return self.cells[y][x]

    def __iter__(self) -> Iterator[Cell]:
        """Iterate all cells in row-major order."""
        for row in self.cells:
            yield from row

    def occupied_cells(self) -> list[Cell]:
        """Return every cell that currently holds a crop."""
        return [cell for cell in self if cell.crop is not None]

    def _own(self, cell: Cell) -> Cell:
        return self.cell_at(cell.x, cell.y)

    # -- Farmland seeding -----------------------------------------------------

    def is_default_farmland(self, x: int, y: int) -> bool:
        """Return True if ``(x, y)`` lies in this grid's default farmland."""
        return default_farmland(
            x,
            y,
            self.width,
            self.height,
            self.farm_columns,
            self.farm_rows,
        )

    def seed_default_farmland(self) -> None:
        """Mark the default rectangle as FARM; used when no layout is saved."""
        for cell in self:
            if self.is_default_farmland(cell.x, cell.y):
                cell.kind = CellKind.FARM

    # -- Selection ------------------------------------------------------------

    def select(self, cell: Cell) -> bool:
        """Make ``cell`` the single selected cell.

        Selecting the already-selected cell does nothing.  Otherwise the
        previous selection is cleared (and announced) first.

        Returns:
            True if the selection changed.
        """
        with self._lock:
            cell = self._own(cell)
            if self.selected is cell:
                return False
            self.clear_selection()
            self.selected = cell
        self.bus.publish(CellSelected(position=cell.position))
        return True

    def clear_selection(self) -> None:
        with self._lock:
            previous = self.selected
            if previous is None:
                return
            self.selected = None
        logger.debug("Cell selection cleared at %s", previous.position)
        self.bus.publish(CellDeselected(position=previous.position))

    # -- Crop lifecycle -------------------------------------------------------

    def plant(self, cell: Cell, crop_id: str) -> PlantedCrop:
        """Plant ``crop_id`` in ``cell`` at the current time.

        Args:
            cell: Target cell; must be FARM and EMPTY.
            crop_id: Catalog id of the crop.

        Returns:
            The new PlantedCrop.

        Raises:
            NotFound: If the crop id is not in the catalog.
            InvalidPlanting: If the cell is not FARM or already occupied.
        """
        config = self.catalog.get(crop_id)
        with self._lock:
            cell = self._own(cell)
            now = self.clock.now()
            if cell.kind is not CellKind.FARM:
                raise InvalidPlanting(cell.x, cell.y, f"cell is {cell.kind.value}")
            if cell.state(now) is not CellState.EMPTY:
                raise InvalidPlanting(cell.x, cell.y, "cell is occupied")
            crop = PlantedCrop(crop_id=crop_id, planted_at=now, config=config)
            cell.crop = crop
            if self.watchers is not None:
                self.watchers.register(cell)

        logger.info("Crop planted: %s at %s", crop_id, cell.position)
        self.bus.publish(CropPlanted(position=cell.position, crop_id=crop_id))
        return crop

    def harvest(self, cell: Cell) -> str:
        """Remove a mature crop and return its id.

        Harvesting awards nothing by itself; crediting the inventory or
        wallet is the caller's transaction.

        Raises:
            NotReady: If the cell holds no crop or it is still growing.
        """
        with self._lock:
            cell = self._own(cell)
            crop = cell.crop
            if crop is None or not crop.reading(self.clock.now()).is_ready:
                raise NotReady(cell.x, cell.y)
            self._remove_crop(cell)
            crop_id = crop.crop_id

        logger.info("Crop harvested: %s at %s", crop_id, cell.position)
        self.bus.publish(CropHarvested(position=cell.position, crop_id=crop_id))
        return crop_id

    def clear(self, cell: Cell) -> str | None:
        """Remove any crop from ``cell`` regardless of its phase.

        Returns:
            The removed crop id, or None if the cell was empty.
        """
        with self._lock:
            cell = self._own(cell)
            crop = cell.crop
            if crop is None:
                return None
            self._remove_crop(cell)
            crop_id = crop.crop_id

        logger.info("Crop cleared: %s at %s", crop_id, cell.position)
        self.bus.publish(CropCleared(position=cell.position, crop_id=crop_id))
        return crop_id

    def _remove_crop(self, cell: Cell) -> None:
        # The watcher goes first so it can never observe the emptied cell.
        if self.watchers is not None:
            self.watchers.cancel(cell.position)
        cell.crop = None

    # -- Terrain --------------------------------------------------------------

    def switch_kind(self, cell: Cell, kind: CellKind) -> bool:
        """Change the terrain kind of ``cell``.

        Args:
            cell: Target cell.
            kind: New terrain kind.

        Returns:
            True if the kind changed, False if it already was ``kind``.

        Raises:
            InvalidTransition: If switching to FARM from anything but GROUND.
            CellOccupied: If leaving FARM while a crop is planted.
        """
        with self._lock:
            cell = self._own(cell)
            if cell.kind is kind:
                return False
            if kind is CellKind.FARM and cell.kind is not CellKind.GROUND:
                msg = (
                    f"cell {cell.position} must be ground before becoming farm, "
                    f"is {cell.kind.value}"
                )
                raise InvalidTransition(msg)
            if cell.crop is not None:
                raise CellOccupied(cell.x, cell.y)
            cell.kind = kind

        logger.info("Cell %s switched to %s", cell.position, kind.value)
        self.bus.publish(CellKindChanged(position=cell.position, kind=kind.value))
        return True

    # -- Bulk queries and persistence ----------------------------------------

    def growth_map(self, now: float | None = None) -> NDArray[np.float64]:
        """Return growth fractions as a ``(height, width)`` array.

        Empty cells are NaN.

        Args:
            now: Evaluation time; defaults to the grid clock.
        """
        if now is None:
            now = self.clock.now()
        planted = np.full((self.height, self.width), np.nan, dtype=np.float64)
        duration = np.ones((self.height, self.width), dtype=np.float64)
        for cell in self:
            crop = cell.crop
            if crop is None:
                continue
            planted[cell.y, cell.x] = crop.planted_at
            duration[cell.y, cell.x] = crop.config.growth_time
        return growth.fractions(planted, duration, now)

    def to_records(self) -> list[CellRecord]:
        """Capture every cell as a persistence record, row-major."""
        from homestead.simulation.persistence import CellRecord

        with self._lock:
            return [
                CellRecord(
                    x=cell.x,
                    y=cell.y,
                    kind=cell.kind.value,
                    crop_id=cell.crop.crop_id if cell.crop else None,
                    planted_at=cell.crop.planted_at if cell.crop else None,
                )
                for cell in self
            ]

    def load_records(self, records: Iterable[CellRecord]) -> None:
        """Replace the grid contents with ``records``.

        Every cell is first reset to empty GROUND (cancelling its watcher
        and clearing the selection); cells named in ``records`` then take
        the recorded kind and crop.  Nothing is published.

        Raises:
            SnapshotError: If a record is out of bounds, names an unknown
                kind or crop, or puts a crop on a non-FARM cell.
        """
        with self._lock:
            resolved: list[tuple[Cell, CellKind, PlantedCrop | None]] = []
            for record in records:
                if not self.in_bounds(record.x, record.y):
                    msg = f"cell record ({record.x}, {record.y}) out of bounds"
                    raise SnapshotError(msg)
                try:
                    kind = CellKind(record.kind)
                except ValueError:
                    msg = f"cell ({record.x}, {record.y}): unknown kind {record.kind!r}"
                    raise SnapshotError(msg) from None
                crop = None
                if record.crop_id is not None:
                    if kind is not CellKind.FARM or record.planted_at is None:
                        msg = f"cell ({record.x}, {record.y}): invalid crop record"
                        raise SnapshotError(msg)
                    try:
                        config = self.catalog.get(record.crop_id)
                    except NotFound as exc:
                        raise SnapshotError(str(exc)) from exc
                    crop = PlantedCrop(
                        crop_id=record.crop_id,
                        planted_at=float(record.planted_at),
                        config=config,
                    )
                resolved.append((self.cells[record.y][record.x], kind, crop))

            self.selected = None
            for cell in self:
                if cell.crop is not None and self.watchers is not None:
                    self.watchers.cancel(cell.position)
                cell.kind = CellKind.GROUND
                cell.crop = None
            for cell, kind, crop in resolved:
                cell.kind = kind
                cell.crop = crop

        logger.info(
            "Grid loaded: %d records, %d crops",
            len(resolved),
            len(self.occupied_cells()),
        )
