"""Farm -- the simulation context that owns all farm state.

One Farm is built per game session and handed to whatever needs it:
the interaction state machine, UI adapters, the save loop.  It owns the
event bus, the clock, the grid and its watcher pool, the inventory and
the wallet, and it composes the multi-ledger transactions:

- harvest: grid harvest, then credit gold and experience
- purchase: debit gold, then add seeds
- sell: remove items, then credit gold

Each transaction runs under the farm lock so no other mutation can
interleave with it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

import numpy as np

from homestead.crops.catalog import CropCatalog
from homestead.crops.watchers import GrowthWatcherPool
from homestead.economy.inventory import InventoryEntry, InventoryLedger
from homestead.economy.wallet import Economy, EconomyState
from homestead.errors import (
    FarmError,
    InsufficientFunds,
    InsufficientQuantity,
    InvalidAmount,
)
from homestead.simulation.clock import Clock, SystemClock
from homestead.simulation.config import FarmConfig
from homestead.simulation.events import EventBus
from homestead.simulation.persistence import (
    EconomyRecord,
    FarmSnapshot,
    ItemRecord,
    PersistenceGateway,
)
from homestead.world.cell import PlantedCrop
from homestead.world.grid import Grid

logger = logging.getLogger(__name__)


@dataclass
class Farm:
    """Top-level farm state and transactions.

    Attributes:
        config: Loaded farm configuration.
        catalog: Crop definitions.
        clock: Shared time source.
        bus: Shared notification channel.
        watchers: Growth watcher pool.
        grid: The farm grid.
        inventory: Item ledger.
        economy: Wallet and level.
    """

    config: FarmConfig
    catalog: CropCatalog
    clock: Clock = field(default_factory=SystemClock)
    bus: EventBus = field(default_factory=EventBus)
    watchers: GrowthWatcherPool = field(init=False)
    grid: Grid = field(init=False)
    inventory: InventoryLedger = field(init=False)
    economy: Economy = field(init=False)
    _lock: threading.RLock = field(init=False, repr=False, default_factory=threading.RLock)

    def __post_init__(self) -> None:
        """Build grid, watchers and ledgers from config."""
        self.watchers = GrowthWatcherPool(
            clock=self.clock,
            bus=self.bus,
            poll_interval=self.config.poll_interval,
        )
        self.grid = Grid(
            width=self.config.grid_width,
            height=self.config.grid_height,
            catalog=self.catalog,
            clock=self.clock,
            bus=self.bus,
            watchers=self.watchers,
            farm_columns=self.config.farm_columns,
            farm_rows=self.config.farm_rows,
        )
        self.inventory = InventoryLedger(bus=self.bus)
        self.economy = Economy(
            bus=self.bus,
            base_exp=self.config.base_exp,
            growth_factor=self.config.exp_growth_factor,
        )

    @classmethod
    def from_config(
        cls,
        config: FarmConfig,
        *,
        clock: Clock | None = None,
        bus: EventBus | None = None,
    ) -> Farm:
        """Build a farm, loading the crop catalog named by ``config``."""
        return cls(
            config=config,
            catalog=CropCatalog.from_yaml(config.crops_path),
            clock=clock if clock is not None else SystemClock(),
            bus=bus if bus is not None else EventBus(),
        )

    # -- Lifecycle ------------------------------------------------------------

    def start(self) -> int:
        """Attach watchers to every planted crop.

        Call from inside the running event loop once the farm is built or
        restored.

        Returns:
            Number of watchers running.
        """
        started = self.watchers.watch_all(self.grid)
        logger.info("Farm started with %d growth watchers", started)
        return started

    async def shutdown(self) -> None:
        """Stop every watcher."""
        await self.watchers.shutdown()
        logger.info("Farm shut down")

    # -- Crop transactions ----------------------------------------------------

    def plant(self, x: int, y: int, crop_id: str) -> PlantedCrop:
        """Plant ``crop_id`` at ``(x, y)`` without touching the inventory."""
        with self._lock:
            return self.grid.plant(self.grid.cell_at(x, y), crop_id)

    def plant_from_inventory(self, x: int, y: int, crop_id: str) -> PlantedCrop:
        """Plant a seed taken from the inventory, as one step.

        The stock check happens first, so a failed planting consumes
        nothing and a missing seed plants nothing.

        Raises:
            InsufficientQuantity: If no ``crop_id`` seed is held.
            InvalidPlanting: If the cell cannot take a crop.
        """
        with self._lock:
            held = self.inventory.quantity(crop_id)
            if held < 1:
                raise InsufficientQuantity(crop_id, 1, held)
            crop = self.grid.plant(self.grid.cell_at(x, y), crop_id)
            self.inventory.remove(crop_id, 1)
            return crop

    def harvest(self, x: int, y: int) -> str:
        """Harvest the crop at ``(x, y)`` and credit the player.

        The harvest is credited with the crop's sell price in gold and
        ``config.harvest_experience`` experience.

        Returns:
            The harvested crop id.

        Raises:
            NotReady: If there is no mature crop at ``(x, y)``.
        """
        with self._lock:
            crop_id = self.grid.harvest(self.grid.cell_at(x, y))
            self.credit_harvest(crop_id)
        return crop_id

    def credit_harvest(self, crop_id: str) -> None:
        """Award gold and experience for one harvested ``crop_id``."""
        with self._lock:
            self.economy.add_gold(self.catalog.sell_price(crop_id))
            if self.config.harvest_experience > 0:
                self.economy.add_experience(self.config.harvest_experience)

    def clear(self, x: int, y: int) -> str | None:
        """Remove whatever grows at ``(x, y)`` with no reward."""
        with self._lock:
            return self.grid.clear(self.grid.cell_at(x, y))

    # -- Market ---------------------------------------------------------------

    def purchase(self, crop_id: str, amount: int = 1) -> int:
        """Buy ``amount`` seeds of ``crop_id``.

        Seeds enter the inventory valued at the crop's sell price.

        Returns:
            Gold spent.

        Raises:
            InvalidAmount: If ``amount <= 0``.
            NotFound: If the crop is unknown.
            InsufficientFunds: If the total price exceeds the gold balance.
        """
        if amount <= 0:
            raise InvalidAmount(amount, "purchase amount")
        config = self.catalog.get(crop_id)
        total = config.purchase_price * amount
        with self._lock:
            if not self.economy.remove_gold(total):
                raise InsufficientFunds("gold", total, self.economy.gold)
            self.inventory.add(crop_id, amount, config.sell_price)
        logger.info("Purchased %d %s for %d gold", amount, crop_id, total)
        return total

    def sell(self, item_id: str, amount: int = 1) -> int:
        """Sell ``amount`` units of ``item_id`` at the catalog sell price.

        Returns:
            Gold earned.

        Raises:
            InvalidAmount: If ``amount <= 0``.
            NotFound: If the item is not a catalog crop.
            InsufficientQuantity: If fewer than ``amount`` units are held.
        """
        if amount <= 0:
            raise InvalidAmount(amount, "sell amount")
        total = self.catalog.sell_price(item_id) * amount
        with self._lock:
            self.inventory.remove(item_id, amount)
            self.economy.add_gold(total)
        logger.info("Sold %d %s for %d gold", amount, item_id, total)
        return total

    # -- Snapshots ------------------------------------------------------------

    def snapshot(self) -> FarmSnapshot:
        """Capture the full farm state."""
        with self._lock:
            econ = self.economy.state()
            return FarmSnapshot(
                cells=self.grid.to_records(),
                inventory={
                    item_id: ItemRecord(entry.quantity, entry.unit_value)
                    for item_id, entry in self.inventory.items().items()
                },
                economy=EconomyRecord(
                    level=econ.level,
                    current_exp=econ.current_exp,
                    max_exp=econ.max_exp,
                    gold=econ.gold,
                    gem=econ.gem,
                ),
                last_save_time=self.clock.now(),
            )

    def restore(self, snapshot: FarmSnapshot) -> None:
        """Replace the farm state with ``snapshot``.

        Growth is recomputed from each crop's ``planted_at``, so crops keep
        growing across the time the game was closed.  Watchers resume at
        once when called inside the event loop; otherwise call ``start()``
        from the loop later.

        A rejected snapshot leaves the farm exactly as it was.

        Raises:
            SnapshotError: If the snapshot violates grid or economy rules.
            InvalidAmount: If an inventory record is negative.
        """
        with self._lock:
            previous_economy = self.economy.state()
            previous_inventory = self.inventory.items()
            econ = snapshot.economy
            try:
                self.economy.load(
                    EconomyState(
                        level=econ.level,
                        current_exp=econ.current_exp,
                        max_exp=econ.max_exp,
                        gold=econ.gold,
                        gem=econ.gem,
                    ),
                )
                self.inventory.load(
                    {
                        item_id: InventoryEntry(item.quantity, item.unit_value)
                        for item_id, item in snapshot.inventory.items()
                    },
                )
                # Grid validates every record before it changes anything.
                self.grid.load_records(snapshot.cells)
            except FarmError:
                self.economy.load(previous_economy)
                self.inventory.load(previous_inventory)
                raise
            self.watchers.watch_all(self.grid)

        progress = self.grid.growth_map()
        planted = int(np.count_nonzero(~np.isnan(progress)))
        ready = int(np.count_nonzero(progress >= 1.0))
        logger.info(
            "Farm restored after %.0f s offline: %d crops, %d ready",
            self.offline_seconds(snapshot),
            planted,
            ready,
        )

    def offline_seconds(self, snapshot: FarmSnapshot) -> float:
        """Seconds elapsed since ``snapshot`` was taken (never negative)."""
        return max(0.0, self.clock.now() - snapshot.last_save_time)

    def load(self, gateway: PersistenceGateway) -> FarmSnapshot:
        """Restore from ``gateway`` and return the snapshot used."""
        snapshot = gateway.load_snapshot()
        self.restore(snapshot)
        return snapshot

    def save(self, gateway: PersistenceGateway) -> bool:
        """Write the current state through ``gateway``."""
        return gateway.save_snapshot(self.snapshot())
