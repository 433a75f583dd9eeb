"""InteractionStateMachine -- what a click on the grid currently means.

Input adapters (raycasts, touch handlers, test scripts) translate pointer
activity into calls on this machine; UI adapters listen to the events it
publishes.  It is the single owner of the interaction mode:

- IDLE: clicks select cells (debounced) and report which popup to show;
  a click on a ready crop harvests it on the spot.
- PLANTING: a seed is "held"; hovering reports valid/invalid targets and
  confirming plants one seed from the inventory.
- POPUP_OPEN: a popup owns the input; grid clicks are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

from homestead.errors import InsufficientQuantity, InvalidTransition
from homestead.simulation.events import (
    CellHovered,
    PlantingFailed,
    PlantingModeEnded,
    PlantingModeStarted,
)
from homestead.world.cell import CellKind, CellState

if TYPE_CHECKING:
    from homestead.simulation.farm import Farm

logger = logging.getLogger(__name__)

DEFAULT_CLICK_DEBOUNCE = 0.5


class Mode(Enum):
    IDLE = auto()
    PLANTING = auto()
    POPUP_OPEN = auto()


class ClickResult(Enum):
    """Follow-up the host should perform after a click."""

    IGNORED = auto()
    DESELECTED = auto()
    SELECTED = auto()
    PLANTING_POPUP = auto()
    INFO_POPUP = auto()
    HARVESTED = auto()


@dataclass
class InteractionStateMachine:
    """Interaction mode and its transitions.

    Attributes:
        farm: The farm the interactions act on.
        debounce: Minimum seconds between accepted IDLE clicks.
        mode: Current mode.
        planting_crop: Crop held while in PLANTING.
        hovered: Cell under the pointer while in PLANTING.
    """

    farm: Farm
    debounce: float = DEFAULT_CLICK_DEBOUNCE
    mode: Mode = field(init=False, default=Mode.IDLE)
    planting_crop: str | None = field(init=False, default=None)
    hovered: tuple[int, int] | None = field(init=False, default=None)
    _last_click: float | None = field(init=False, default=None, repr=False)

    @classmethod
    def for_farm(cls, farm: Farm) -> InteractionStateMachine:
        """Build a machine using the farm's configured debounce."""
        return cls(farm=farm, debounce=farm.config.click_debounce)

    # -- IDLE -----------------------------------------------------------------

    def click(self, x: int, y: int) -> ClickResult:
        """Handle a click that landed on cell ``(x, y)``.

        An off-grid click is rejected before the debounce window is
        touched, so it never swallows the next valid click.

        Raises:
            OutOfRange: If ``(x, y)`` is not on the grid.
        """
        grid = self.farm.grid
        cell = grid.cell_at(x, y)
        if not self._accept_click():
            return ClickResult.IGNORED

        grid.select(cell)
        if cell.kind is not CellKind.FARM:
            return ClickResult.SELECTED

        state = cell.state(self.farm.clock.now())
        if state is CellState.EMPTY:
            return ClickResult.PLANTING_POPUP
        if state is CellState.GROWING:
            return ClickResult.INFO_POPUP
        self.farm.harvest(x, y)
        return ClickResult.HARVESTED

    def click_nothing(self) -> ClickResult:
        """Handle a click that hit no cell: drop the selection."""
        if not self._accept_click():
            return ClickResult.IGNORED
        self.farm.grid.clear_selection()
        return ClickResult.DESELECTED

    def _accept_click(self) -> bool:
        if self.mode is not Mode.IDLE:
            return False
        now = self.farm.clock.now()
        if self._last_click is not None and now - self._last_click < self.debounce:
            logger.debug("Click ignored inside debounce window")
            return False
        self._last_click = now
        return True

    # -- PLANTING -------------------------------------------------------------

    def start_planting(self, crop_id: str) -> None:
        """Hold ``crop_id`` and switch to PLANTING.

        Raises:
            InvalidTransition: If not currently IDLE.
            NotFound: If the crop is not in the catalog.
        """
        if self.mode is not Mode.IDLE:
            msg = f"cannot start planting from {self.mode.name}"
            raise InvalidTransition(msg)
        self.farm.catalog.get(crop_id)
        self.farm.grid.clear_selection()
        self.mode = Mode.PLANTING
        self.planting_crop = crop_id
        self.hovered = None
        logger.info("Planting mode started with crop: %s", crop_id)
        self.farm.bus.publish(PlantingModeStarted(crop_id=crop_id))

    def hover(self, x: int, y: int) -> bool | None:
        """Pointer moved over ``(x, y)`` while planting.

        Publishes CellHovered only when the hovered cell changes.

        Returns:
            Whether the cell is a valid planting target, or None when not
            planting or the pointer is still on the same cell.
        """
        if self.mode is not Mode.PLANTING or self.hovered == (x, y):
            return None
        cell = self.farm.grid.cell_at(x, y)
        self.hovered = (x, y)
        valid = cell.can_plant(self.farm.clock.now())
        self.farm.bus.publish(CellHovered(position=(x, y), valid=valid))
        return valid

    def hover_clear(self) -> None:
        """Pointer left the grid."""
        self.hovered = None

    def confirm(self, x: int, y: int) -> bool:
        """Plant the held crop at ``(x, y)``.

        On an invalid cell a PlantingFailed is published and planting mode
        continues.  Without a seed in stock, PlantingFailed is published
        and planting mode ends.  On success planting mode ends.

        Returns:
            True if a crop was planted.
        """
        if self.mode is not Mode.PLANTING or self.planting_crop is None:
            return False
        cell = self.farm.grid.cell_at(x, y)
        if not cell.can_plant(self.farm.clock.now()):
            self.farm.bus.publish(PlantingFailed(reason="invalid planting cell"))
            return False
        try:
            self.farm.plant_from_inventory(x, y, self.planting_crop)
        except InsufficientQuantity:
            logger.warning("Planting failed: no %s seeds left", self.planting_crop)
            self.farm.bus.publish(PlantingFailed(reason="not enough seeds"))
            self._end_planting()
            return False
        self._end_planting()
        return True

    def cancel_planting(self) -> None:
        """Leave planting mode; harmless in any other mode."""
        if self.mode is Mode.PLANTING:
            self._end_planting()
        self.hovered = None

    def _end_planting(self) -> None:
        self.mode = Mode.IDLE
        self.planting_crop = None
        self.hovered = None
        logger.info("Planting mode ended")
        self.farm.bus.publish(PlantingModeEnded())

    # -- Popups ---------------------------------------------------------------

    def popup_opened(self) -> None:
        """A popup took over input; planting mode, if any, ends."""
        if self.mode is Mode.PLANTING:
            self._end_planting()
        self.mode = Mode.POPUP_OPEN

    def popup_closed(self) -> None:
        if self.mode is Mode.PLANTING:
            self._end_planting()
        self.mode = Mode.IDLE
