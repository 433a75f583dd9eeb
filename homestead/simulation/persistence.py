"""Persistence -- the snapshot shape and a YAML file gateway.

The core only produces and consumes ``FarmSnapshot`` values.  Where and
how they are stored is a gateway's business; ``YamlSnapshotGateway`` is
the stock file-backed one.  A missing or unreadable save never reaches
the core: the gateway hands back a freshly seeded default snapshot.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol

import yaml

from homestead.simulation.config import FarmConfig
from homestead.world.grid import default_farmland

logger = logging.getLogger(__name__)


@dataclass
class CellRecord:
    """Persisted form of one cell.

    Attributes:
        x: Column.
        y: Row.
        kind: ``CellKind`` value (``"water"``, ``"ground"`` or ``"farm"``).
        crop_id: Planted crop, if any.
        planted_at: Planting time in epoch seconds, present with ``crop_id``.
    """

    x: int
    y: int
    kind: str
    crop_id: str | None = None
    planted_at: float | None = None


@dataclass
class ItemRecord:
    quantity: int
    unit_value: int = 0


@dataclass
class EconomyRecord:
    level: int = 1
    current_exp: int = 0
    max_exp: int = 1000
    gold: int = 0
    gem: int = 0


@dataclass
class FarmSnapshot:
    """Everything needed to rebuild a farm.

    Attributes:
        cells: One record per cell.
        inventory: Item id to stock.
        economy: Level and balances.
        last_save_time: When the snapshot was taken, in epoch seconds.
    """

    cells: list[CellRecord] = field(default_factory=list)
    inventory: dict[str, ItemRecord] = field(default_factory=dict)
    economy: EconomyRecord = field(default_factory=EconomyRecord)
    last_save_time: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Return a plain, YAML/JSON-safe mapping."""
        cells = []
        for record in self.cells:
            entry = {"x": record.x, "y": record.y, "kind": record.kind}
            if record.crop_id is not None:
                entry["crop_id"] = record.crop_id
                entry["planted_at"] = record.planted_at
            cells.append(entry)
        return {
            "cells": cells,
            "inventory": {k: asdict(v) for k, v in self.inventory.items()},
            "economy": asdict(self.economy),
            "last_save_time": self.last_save_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FarmSnapshot:
        """Build a snapshot from a mapping produced by ``to_dict``.

        Raises:
            KeyError, TypeError, ValueError: If required fields are missing
                or have the wrong type.
        """
        cells = [
            CellRecord(
                x=int(c["x"]),
                y=int(c["y"]),
                kind=str(c["kind"]),
                crop_id=c.get("crop_id"),
                planted_at=(
                    float(c["planted_at"]) if c.get("planted_at") is not None else None
                ),
            )
            for c in data.get("cells", [])
        ]
        inventory = {
            str(item_id): ItemRecord(
                quantity=int(item["quantity"]),
                unit_value=int(item.get("unit_value", 0)),
            )
            for item_id, item in (data.get("inventory") or {}).items()
        }
        econ = data.get("economy") or {}
        economy = EconomyRecord(
            level=int(econ.get("level", 1)),
            current_exp=int(econ.get("current_exp", 0)),
            max_exp=int(econ.get("max_exp", 1000)),
            gold=int(econ.get("gold", 0)),
            gem=int(econ.get("gem", 0)),
        )
        return cls(
            cells=cells,
            inventory=inventory,
            economy=economy,
            last_save_time=float(data.get("last_save_time", 0.0)),
        )


def default_snapshot(config: FarmConfig, now: float | None = None) -> FarmSnapshot:
    """Return the snapshot of a brand-new farm.

    The layout uses the same centered farmland rule as ``Grid``; inventory
    and wallet come from the config's starting values.
    """
    cells = [
        CellRecord(
            x=x,
            y=y,
            kind=(
                "farm"
                if default_farmland(
                    x,
                    y,
                    config.grid_width,
                    config.grid_height,
                    config.farm_columns,
                    config.farm_rows,
                )
                else "ground"
            ),
        )
        for y in range(config.grid_height)
        for x in range(config.grid_width)
    ]
    inventory = {
        item_id: ItemRecord(
            quantity=int(item.get("quantity", 0)),
            unit_value=int(item.get("unit_value", 0)),
        )
        for item_id, item in config.starting_inventory.items()
    }
    economy = EconomyRecord(
        level=1,
        current_exp=0,
        max_exp=config.base_exp,
        gold=config.starting_gold,
        gem=config.starting_gem,
    )
    return FarmSnapshot(
        cells=cells,
        inventory=inventory,
        economy=economy,
        last_save_time=time.time() if now is None else now,
    )


class PersistenceGateway(Protocol):
    """Storage collaborator for farm snapshots."""

    def load_snapshot(self) -> FarmSnapshot:
        ...

    def save_snapshot(self, snapshot: FarmSnapshot) -> bool:
        ...


@dataclass
class YamlSnapshotGateway:
    """Stores one snapshot in a YAML file.

    Attributes:
        path: Save-file location.
        config: Used to seed a default snapshot when nothing valid is saved.
    """

    path: Path
    config: FarmConfig = field(default_factory=FarmConfig)

    def load_snapshot(self) -> FarmSnapshot:
        """Read the save file, falling back to a default snapshot."""
        path = Path(self.path)
        if not path.exists():
            logger.info("No save at %s; starting a new farm", path)
            return default_snapshot(self.config)
        try:
            with path.open("r") as f:
                data = yaml.safe_load(f) or {}
            snapshot = FarmSnapshot.from_dict(data)
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError, AttributeError):
            logger.exception("Save at %s is unreadable; starting a new farm", path)
            return default_snapshot(self.config)
        logger.info("Loaded save from %s", path)
        return snapshot

    def save_snapshot(self, snapshot: FarmSnapshot) -> bool:
        """Write ``snapshot`` atomically (temp file then rename).

        Returns:
            True on success; failures are logged and reported as False.
        """
        path = Path(self.path)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w") as f:
                yaml.safe_dump(snapshot.to_dict(), f, sort_keys=False)
            tmp.replace(path)
        except OSError:
            logger.exception("Failed to save farm to %s", path)
            return False
        logger.info("Farm saved to %s", path)
        return True
