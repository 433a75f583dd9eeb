"""Tests for homestead.crops.watchers -- per-cell growth monitoring.

Each test drives a real event loop with ``asyncio.run`` and a manual
clock, so growth advances only when the test moves the clock.
"""

import asyncio
import logging
import threading

import pytest

from homestead.crops.catalog import CropCatalog
from homestead.crops.watchers import GrowthWatcherPool
from homestead.simulation.clock import ManualClock
from homestead.simulation.events import (
    CropReady,
    CropStageChanged,
    EventBus,
    EventRecorder,
)
from homestead.simulation.farm import Farm
from homestead.world.grid import Grid

POLL = 0.005


async def settle(polls: int = 10) -> None:
    """Give watchers time for several polls."""
    await asyncio.sleep(POLL * polls)


def build(
    catalog: CropCatalog,
    clock: ManualClock,
    bus: EventBus,
) -> tuple[Grid, GrowthWatcherPool]:
    pool = GrowthWatcherPool(clock=clock, bus=bus, poll_interval=POLL)
    grid = Grid(width=10, height=10, catalog=catalog, clock=clock, bus=bus, watchers=pool)
    return grid, pool


class TestWatcherLifecycle:
    """Stage and ready notifications."""

    def test_stages_then_ready(
        self,
        catalog: CropCatalog,
        clock: ManualClock,
        bus: EventBus,
        recorder: EventRecorder,
    ) -> None:
        grid, pool = build(catalog, clock, bus)

        async def scenario() -> None:
            grid.plant(grid.cell_at(5, 5), "carrot")
            task = pool.task((5, 5))
            assert task is not None
            await settle()
            clock.advance(30)
            await settle()
            clock.advance(31)
            await asyncio.wait_for(task, timeout=1.0)
            assert not pool.is_watching((5, 5))
            assert len(pool) == 0

        asyncio.run(scenario())

        stages = [e.stage for e in recorder.of_type(CropStageChanged)]
        assert stages == [0, 1, 3]
        assert recorder.of_type(CropReady) == [CropReady(position=(5, 5), crop_id="carrot")]

    def test_one_watcher_per_cell(
        self,
        catalog: CropCatalog,
        clock: ManualClock,
        bus: EventBus,
    ) -> None:
        grid, pool = build(catalog, clock, bus)

        async def scenario() -> None:
            cell = grid.cell_at(5, 5)
            grid.plant(cell, "carrot")
            first = pool.task((5, 5))
            assert pool.register(cell) is first
            assert pool.watch_all(grid) == 1
            assert len(pool) == 1
            await pool.shutdown()

        asyncio.run(scenario())

    def test_no_loop_defers_watching(
        self,
        catalog: CropCatalog,
        clock: ManualClock,
        bus: EventBus,
    ) -> None:
        grid, pool = build(catalog, clock, bus)
        grid.plant(grid.cell_at(5, 5), "carrot")
        assert len(pool) == 0

        async def scenario() -> None:
            assert pool.watch_all(grid) == 1
            assert pool.is_watching((5, 5))
            await pool.shutdown()
            assert len(pool) == 0

        asyncio.run(scenario())


class TestWatcherCancellation:
    """Harvest and clear stop the watcher before the crop is removed."""

    def test_clear_cancels_immediately(
        self,
        catalog: CropCatalog,
        clock: ManualClock,
        bus: EventBus,
        recorder: EventRecorder,
    ) -> None:
        grid, pool = build(catalog, clock, bus)

        async def scenario() -> None:
            cell = grid.cell_at(5, 5)
            grid.plant(cell, "carrot")
            task = pool.task((5, 5))
            await settle()
            grid.clear(cell)
            assert not pool.is_watching((5, 5))
            clock.advance(120)
            await settle()
            assert task is not None
            assert task.cancelled()

        asyncio.run(scenario())
        assert recorder.of_type(CropReady) == []

    def test_replant_gets_fresh_watcher(
        self,
        catalog: CropCatalog,
        clock: ManualClock,
        bus: EventBus,
        recorder: EventRecorder,
    ) -> None:
        grid, pool = build(catalog, clock, bus)

        async def scenario() -> None:
            cell = grid.cell_at(5, 5)
            grid.plant(cell, "carrot")
            old = pool.task((5, 5))
            grid.clear(cell)
            grid.plant(cell, "corn")
            new = pool.task((5, 5))
            assert new is not None
            assert new is not old
            await settle()
            # The cancelled task finishing must not drop the new entry.
            assert pool.is_watching((5, 5))
            clock.advance(120)
            await asyncio.wait_for(new, timeout=1.0)

        asyncio.run(scenario())
        assert recorder.of_type(CropReady) == [CropReady(position=(5, 5), crop_id="corn")]

    def test_harvest_after_ready(
        self,
        catalog: CropCatalog,
        clock: ManualClock,
        bus: EventBus,
    ) -> None:
        grid, pool = build(catalog, clock, bus)

        async def scenario() -> str:
            cell = grid.cell_at(4, 4)
            grid.plant(cell, "wheat")
            clock.advance(90)
            await settle()
            assert len(pool) == 0
            return grid.harvest(cell)

        assert asyncio.run(scenario()) == "wheat"


class TestWatcherFailures:
    """A failing poll ends only its own watcher."""

    def test_poll_error_is_logged_and_contained(
        self,
        catalog: CropCatalog,
        bus: EventBus,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        class FlakyClock(ManualClock):
            broken: bool = False

            def now(self) -> float:
                if self.broken:
                    msg = "clock source unavailable"
                    raise RuntimeError(msg)
                return super().now()

        clock = FlakyClock(current=0.0)
        grid, pool = build(catalog, clock, bus)

        async def scenario() -> None:
            grid.plant(grid.cell_at(5, 5), "carrot")
            task = pool.task((5, 5))
            clock.broken = True
            assert task is not None
            await asyncio.wait_for(task, timeout=1.0)
            assert len(pool) == 0
            clock.broken = False
            grid.clear(grid.cell_at(5, 5))
            grid.plant(grid.cell_at(4, 4), "corn")
            assert pool.is_watching((4, 4))
            await pool.shutdown()

        with caplog.at_level(logging.ERROR, logger="homestead.crops.watchers"):
            asyncio.run(scenario())
        assert "Growth watcher at (5, 5) failed" in caplog.text

    def test_rejects_non_positive_interval(self, clock: ManualClock, bus: EventBus) -> None:
        with pytest.raises(ValueError):
            GrowthWatcherPool(clock=clock, bus=bus, poll_interval=0)


class TestWatchersAcrossThreads:
    """Plants and clears made off the event loop's thread."""

    def test_plant_from_worker_thread(
        self,
        farm: Farm,
        clock: ManualClock,
        recorder: EventRecorder,
    ) -> None:
        async def scenario() -> None:
            farm.start()
            assert farm.watchers.loop is asyncio.get_running_loop()
            worker = threading.Thread(target=farm.plant, args=(5, 5, "carrot"))
            worker.start()
            worker.join()
            await settle()
            assert farm.watchers.is_watching((5, 5))
            clock.advance(61)
            task = farm.watchers.task((5, 5))
            assert task is not None
            await asyncio.wait_for(task, timeout=1.0)
            await farm.shutdown()

        asyncio.run(scenario())
        assert recorder.of_type(CropReady) == [CropReady(position=(5, 5), crop_id="carrot")]

    def test_clear_from_worker_thread(
        self,
        farm: Farm,
        clock: ManualClock,
        recorder: EventRecorder,
    ) -> None:
        async def scenario() -> None:
            farm.plant(4, 4, "corn")
            task = farm.watchers.task((4, 4))
            assert task is not None
            worker = threading.Thread(target=farm.clear, args=(4, 4))
            worker.start()
            worker.join()
            assert not farm.watchers.is_watching((4, 4))
            await settle()
            assert task.cancelled()
            clock.advance(120)
            await settle()

        asyncio.run(scenario())
        assert recorder.of_type(CropReady) == []

    def test_plant_from_worker_thread_without_loop_is_deferred(
        self,
        farm: Farm,
    ) -> None:
        worker = threading.Thread(target=farm.plant, args=(5, 5, "carrot"))
        worker.start()
        worker.join()
        assert farm.watchers.loop is None
        assert len(farm.watchers) == 0

        async def scenario() -> int:
            started = farm.start()
            await farm.shutdown()
            return started

        assert asyncio.run(scenario()) == 1
