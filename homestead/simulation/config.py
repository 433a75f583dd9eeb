"""Config -- load farm parameters from YAML files.

Grid size, farmland seeding, watcher timing, levelling curve and the
starting wallet/inventory live in YAML and are parsed into a typed
dataclass here.  Crop definitions live in their own file, referenced by
``crops_path`` and loaded by ``CropCatalog.from_yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"


def _default_inventory() -> dict[str, dict[str, int]]:
    return {
        "carrot": {"quantity": 10, "unit_value": 100},
        "corn": {"quantity": 10, "unit_value": 150},
    }


@dataclass
class FarmConfig:
    """Top-level farm configuration.

    Attributes:
        grid_width: Number of grid columns.
        grid_height: Number of grid rows.
        farm_columns: Width of the default farmland rectangle.
        farm_rows: Height of the default farmland rectangle.
        poll_interval: Seconds between growth-watcher polls.
        click_debounce: Minimum seconds between accepted selection clicks.
        base_exp: Experience needed to reach level 2.
        exp_growth_factor: Per-level multiplier on required experience.
        harvest_experience: Experience awarded per harvested crop.
        starting_gold: Gold in a fresh save.
        starting_gem: Gems in a fresh save.
        starting_inventory: Items in a fresh save, as
            ``{item_id: {"quantity": n, "unit_value": v}}``.
        crops_path: Path to the crop catalog YAML.
    """

    grid_width: int = 10
    grid_height: int = 10
    farm_columns: int = 2
    farm_rows: int = 3

    # Timing
    poll_interval: float = 1.0
    click_debounce: float = 0.5

    # Levelling
    base_exp: int = 1000
    exp_growth_factor: float = 1.2
    harvest_experience: int = 10

    # Fresh-save economy
    starting_gold: int = 10000
    starting_gem: int = 100
    starting_inventory: dict[str, dict[str, int]] = field(
        default_factory=_default_inventory,
    )

    crops_path: Path = _CONFIG_DIR / "crops.yaml"

    @classmethod
    def from_yaml(cls, path: str | Path) -> FarmConfig:
        """Load configuration from a YAML file.

        A relative ``crops_path`` is resolved against the config file's
        directory.

        Args:
            path: Path to the YAML config file.

        Returns:
            A populated FarmConfig instance.

        Raises:
            FileNotFoundError: If the config file does not exist.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}

        crops_path = Path(data.get("crops_path", cls.crops_path))
        if not crops_path.is_absolute():
            crops_path = path.parent / crops_path

        return cls(
            grid_width=data.get("grid_width", cls.grid_width),
            grid_height=data.get("grid_height", cls.grid_height),
            farm_columns=data.get("farm_columns", cls.farm_columns),
            farm_rows=data.get("farm_rows", cls.farm_rows),
            poll_interval=data.get("poll_interval", cls.poll_interval),
            click_debounce=data.get("click_debounce", cls.click_debounce),
            base_exp=data.get("base_exp", cls.base_exp),
            exp_growth_factor=data.get(
                "exp_growth_factor",
                cls.exp_growth_factor,
            ),
            harvest_experience=data.get(
                "harvest_experience",
                cls.harvest_experience,
            ),
            starting_gold=data.get("starting_gold", cls.starting_gold),
            starting_gem=data.get("starting_gem", cls.starting_gem),
            starting_inventory=data.get(
                "starting_inventory",
                _default_inventory(),
            ),
            crops_path=crops_path,
        )
