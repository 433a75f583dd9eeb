"""CropCatalog -- read-only crop parameters loaded from YAML.

The catalog is the one place crop identifiers are defined.  Ids are
validated when the catalog is built, so an unknown id is caught at
config-load time (duplicates, bad values) or at the first lookup
(``NotFound``) rather than somewhere deep in a growth loop.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from homestead.errors import NotFound

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """The crop catalog data is malformed."""


@dataclass(frozen=True)
class CropConfig:
    """Economic and growth parameters of one crop.

    Attributes:
        crop_id: Unique identifier, also used as the inventory item id.
        name: Display name.
        growth_time: Seconds from planting to harvest readiness.
        growth_stages: Number of visual growth stages (at least 1).
        purchase_price: Gold cost of one seed.
        sell_price: Gold earned per unit sold or harvested.
    """

    crop_id: str
    growth_time: float
    growth_stages: int = 1
    purchase_price: int = 0
    sell_price: int = 0
    name: str = ""

    def validate(self) -> None:
        """Raise ``CatalogError`` if any field is out of range."""
        if not self.crop_id:
            msg = "crop id cannot be empty"
            raise CatalogError(msg)
        if self.growth_time <= 0:
            msg = f"{self.crop_id}: growth_time must be positive"
            raise CatalogError(msg)
        if self.growth_stages < 1:
            msg = f"{self.crop_id}: growth_stages must be at least 1"
            raise CatalogError(msg)
        if self.purchase_price < 0 or self.sell_price < 0:
            msg = f"{self.crop_id}: prices cannot be negative"
            raise CatalogError(msg)


@dataclass
class CropCatalog:
    """Lookup of ``CropConfig`` by crop id.

    Attributes:
        crops: Mapping from crop id to its configuration.
    """

    crops: dict[str, CropConfig] = field(default_factory=dict)

    @classmethod
    def from_configs(cls, configs: Iterable[CropConfig]) -> CropCatalog:
        """Build a catalog, rejecting duplicates and invalid entries.

        Raises:
            CatalogError: On a duplicate id or an out-of-range field.
        """
        crops: dict[str, CropConfig] = {}
        for config in configs:
            config.validate()
            if config.crop_id in crops:
                msg = f"duplicate crop id: {config.crop_id!r}"
                raise CatalogError(msg)
            crops[config.crop_id] = config
        return cls(crops=crops)

    @classmethod
    def from_yaml(cls, path: str | Path) -> CropCatalog:
        """Load the catalog from a YAML file.

        The file holds a top-level ``crops`` list; each entry has ``id``,
        ``growth_time`` and optionally ``name``, ``growth_stages``,
        ``purchase_price`` and ``sell_price``.

        Args:
            path: Path to the crops YAML file.

        Returns:
            A validated CropCatalog.

        Raises:
            FileNotFoundError: If the file does not exist.
            CatalogError: If the data is malformed.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}

        entries = data.get("crops", [])
        if not isinstance(entries, list):
            msg = f"{path}: 'crops' must be a list"
            raise CatalogError(msg)

        configs = []
        for entry in entries:
            try:
                configs.append(
                    CropConfig(
                        crop_id=str(entry["id"]),
                        name=str(entry.get("name", entry["id"])),
                        growth_time=float(entry["growth_time"]),
                        growth_stages=int(entry.get("growth_stages", 1)),
                        purchase_price=int(entry.get("purchase_price", 0)),
                        sell_price=int(entry.get("sell_price", 0)),
                    ),
                )
            except (KeyError, TypeError, ValueError) as exc:
                msg = f"{path}: malformed crop entry {entry!r}"
                raise CatalogError(msg) from exc

        catalog = cls.from_configs(configs)
        logger.info("Loaded %d crops from %s", len(catalog), path)
        return catalog

    def get(self, crop_id: str) -> CropConfig:
        """Return the configuration for ``crop_id``.

        Raises:
            NotFound: If the id is not in the catalog.
        """
        try:
            return self.crops[crop_id]
        except KeyError:
            raise NotFound("crop", crop_id) from None

    def purchase_price(self, crop_id: str) -> int:
        return self.get(crop_id).purchase_price

    def sell_price(self, crop_id: str) -> int:
        return self.get(crop_id).sell_price

    def __contains__(self, crop_id: object) -> bool:
        return crop_id in self.crops

    def __iter__(self) -> Iterator[str]:
        return iter(self.crops)

    def __len__(self) -> int:
        return len(self.crops)
