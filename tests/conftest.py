"""Shared fixtures for the homestead test suite."""

from __future__ import annotations

import pytest

from homestead.crops.catalog import CropCatalog, CropConfig
from homestead.interaction.state_machine import InteractionStateMachine
from homestead.simulation.clock import ManualClock
from homestead.simulation.config import FarmConfig
from homestead.simulation.events import EventBus, EventRecorder
from homestead.simulation.farm import Farm
from homestead.world.grid import Grid

T0 = 1_000_000.0


@pytest.fixture
def clock() -> ManualClock:
    """A manual clock parked at ``T0``."""
    return ManualClock(current=T0)


@pytest.fixture
def catalog() -> CropCatalog:
    """Three crops with short, distinct growth times."""
    return CropCatalog.from_configs(
        [
            CropConfig(
                crop_id="carrot",
                name="Carrot",
                growth_time=60,
                growth_stages=4,
                purchase_price=50,
                sell_price=100,
            ),
            CropConfig(
                crop_id="corn",
                name="Corn",
                growth_time=120,
                growth_stages=4,
                purchase_price=75,
                sell_price=150,
            ),
            CropConfig(
                crop_id="wheat",
                name="Wheat",
                growth_time=90,
                growth_stages=3,
                purchase_price=40,
                sell_price=100,
            ),
        ],
    )


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus: EventBus) -> EventRecorder:
    """Records everything published on ``bus``."""
    return EventRecorder.attach(bus)


@pytest.fixture
def grid(catalog: CropCatalog, clock: ManualClock, bus: EventBus) -> Grid:
    """A 10x10 grid with no watcher pool."""
    return Grid(width=10, height=10, catalog=catalog, clock=clock, bus=bus)


@pytest.fixture
def fast_config() -> FarmConfig:
    """Default config with a tiny watcher poll interval."""
    return FarmConfig(poll_interval=0.005)


@pytest.fixture
def farm(
    fast_config: FarmConfig,
    catalog: CropCatalog,
    clock: ManualClock,
    bus: EventBus,
) -> Farm:
    """A 10x10 farm with 1000 gold and no inventory."""
    farm = Farm(config=fast_config, catalog=catalog, clock=clock, bus=bus)
    farm.economy.add_gold(1000)
    return farm


@pytest.fixture
def machine(farm: Farm) -> InteractionStateMachine:
    return InteractionStateMachine.for_farm(farm)
