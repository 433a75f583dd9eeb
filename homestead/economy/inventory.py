"""InventoryLedger -- item quantities and unit values.

Absence is the same as zero: an entry is deleted the moment its quantity
reaches zero, and lookups for unknown items return 0 instead of failing.
Every mutation publishes the post-update quantity.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from homestead.errors import InsufficientQuantity, InvalidAmount
from homestead.simulation.events import (
    EventBus,
    InventoryCleared,
    ItemRemoved,
    ItemUpdated,
)

logger = logging.getLogger(__name__)


@dataclass
class InventoryEntry:
    """Stock of one item.

    Attributes:
        quantity: Units on hand (always positive while stored).
        unit_value: Gold value of one unit.
    """

    quantity: int
    unit_value: int = 0


class InventoryLedger:
    """Thread-safe mapping of item id to stock.

    Attributes:
        bus: Channel for item-updated / item-removed notifications.
    """

    def __init__(self, bus: EventBus | None = None) -> None:
        self.bus = bus if bus is not None else EventBus()
        self._entries: dict[str, InventoryEntry] = {}
        self._lock = threading.RLock()

    def add(self, item_id: str, amount: int, unit_value: int = 0) -> int:
        """Add ``amount`` units of ``item_id``.

        ``unit_value`` is recorded when the entry is created; adding to an
        existing entry keeps its value.

        Args:
            item_id: Item identifier.
            amount: Units to add; must be positive.
            unit_value: Value per unit for a new entry; must be >= 0.

        Returns:
            Quantity after the addition.

        Raises:
            InvalidAmount: If ``amount <= 0`` or ``unit_value < 0``.
        """
        if amount <= 0:
            raise InvalidAmount(amount)
        if unit_value < 0:
            raise InvalidAmount(unit_value, "unit value")
        with self._lock:
            entry = self._entries.get(item_id)
            if entry is None:
                entry = InventoryEntry(quantity=0, unit_value=unit_value)
                self._entries[item_id] = entry
            entry.quantity += amount
            quantity = entry.quantity

        logger.info("Added %d %s to inventory. New total: %d", amount, item_id, quantity)
        self.bus.publish(ItemUpdated(item_id=item_id, quantity=quantity))
        return quantity

    def remove(self, item_id: str, amount: int) -> int:
        """Remove ``amount`` units of ``item_id``.

        Args:
            item_id: Item identifier.
            amount: Units to remove; must be positive.

        Returns:
            Quantity remaining (0 means the entry was deleted).

        Raises:
            InvalidAmount: If ``amount <= 0``.
            InsufficientQuantity: If fewer than ``amount`` units are held.
        """
        if amount <= 0:
            raise InvalidAmount(amount)
        with self._lock:
            entry = self._entries.get(item_id)
            available = entry.quantity if entry is not None else 0
            if entry is None or available < amount:
                logger.warning(
                    "Not enough %s in inventory. Required: %d, Available: %d",
                    item_id,
                    amount,
                    available,
                )
                raise InsufficientQuantity(item_id, amount, available)
            entry.quantity -= amount
            remaining = entry.quantity
            if remaining == 0:
                del self._entries[item_id]

        logger.info("Removed %d %s from inventory. Remaining: %d", amount, item_id, remaining)
        if remaining == 0:
            self.bus.publish(ItemRemoved(item_id=item_id))
        else:
            self.bus.publish(ItemUpdated(item_id=item_id, quantity=remaining))
        return remaining

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()
        logger.info("Inventory cleared")
        self.bus.publish(InventoryCleared())

    def load(self, entries: dict[str, InventoryEntry]) -> None:
        """Replace the contents without publishing per-item events.

        Raises:
            InvalidAmount: If any entry has a negative quantity or value.
        """
        for item_id, entry in entries.items():
            if entry.quantity < 0:
                raise InvalidAmount(entry.quantity, f"quantity for {item_id!r}")
            if entry.unit_value < 0:
                raise InvalidAmount(entry.unit_value, f"unit value for {item_id!r}")
        with self._lock:
            self._entries = {
                item_id: InventoryEntry(entry.quantity, entry.unit_value)
                for item_id, entry in entries.items()
                if entry.quantity > 0
            }

    def quantity(self, item_id: str) -> int:
        entry = self._entries.get(item_id)
        return entry.quantity if entry is not None else 0

    def unit_value(self, item_id: str) -> int:
        entry = self._entries.get(item_id)
        return entry.unit_value if entry is not None else 0

    def items(self) -> dict[str, InventoryEntry]:
        """Return a copy of every entry."""
        with self._lock:
            return {
                item_id: InventoryEntry(entry.quantity, entry.unit_value)
                for item_id, entry in self._entries.items()
            }

    def total_value(self) -> int:
        """Return the summed value of all stock."""
        with self._lock:
            return sum(e.quantity * e.unit_value for e in self._entries.values())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
