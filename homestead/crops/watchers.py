"""GrowthWatcherPool -- one background asyncio task per growing crop.

A watcher polls its crop once per ``poll_interval``, announces visual
stage changes, announces readiness, and then exits.  The pool keys
watchers by cell position so a cell never has two at once, and drops a
watcher's registration the moment it is cancelled so that replanting
the same cell immediately gets a fresh watcher.

The pool remembers the event loop it was first used from.  Plants and
clears made on other threads hand task creation and cancellation to
that loop with ``call_soon_threadsafe``; tasks are only ever touched on
the loop's own thread.

Watchers only read crop state (through the pure growth functions) and
publish events.  The one thing they mutate is their own entry in the
pool, and a finishing task only removes the entry if it still points at
itself.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

from homestead.crops import growth
from homestead.simulation.clock import Clock
from homestead.simulation.events import CropReady, CropStageChanged, EventBus

if TYPE_CHECKING:
    from homestead.world.cell import Cell, PlantedCrop

logger = logging.getLogger(__name__)

Position = tuple[int, int]

DEFAULT_POLL_INTERVAL = 1.0


class GrowthWatcherPool:
    """Registry of per-cell growth monitors.

    Attributes:
        clock: Time source used for every poll.
        bus: Channel for stage-changed and ready notifications.
        poll_interval: Seconds between polls.
    """

    def __init__(
        self,
        clock: Clock,
        bus: EventBus,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if poll_interval <= 0:
            msg = f"poll_interval must be positive, got {poll_interval}"
            raise ValueError(msg)
        self.clock = clock
        self.bus = bus
        self.poll_interval = poll_interval
        self._tasks: dict[Position, asyncio.Task[None]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        """The event loop watchers run on, once known."""
        return self._loop

    def register(self, cell: Cell) -> asyncio.Task[None] | None:
        """Start watching ``cell`` unless it already has a watcher.

        On the loop's thread the task is created at once.  From any other
        thread it is scheduled onto the bound loop and created shortly
        after.  With no loop known at all the call is a logged no-op and
        the crop is picked up later by ``watch_all``.

        Args:
            cell: A cell holding a crop.

        Returns:
            The watcher task (existing or new), or None if no task exists
            yet (deferred or scheduled from another thread).
        """
        crop = cell.crop
        if crop is None:
            return None
        loop = self._running_loop()
        if loop is None:
            home = self._loop
            if home is None or home.is_closed():
                logger.debug("No event loop; watcher for %s deferred", cell.position)
                return None
            home.call_soon_threadsafe(self._start, cell, crop)
            return None
        return self._start(cell, crop)

    def watch_all(self, cells: Iterable[Cell]) -> int:
        """Register every occupied cell in ``cells``.

        Used after start-up or a restore so restored crops resume being
        watched; crops that matured offline report ready on the first poll.
        Called inside the event loop, this also binds the pool to it.

        Returns:
            Number of cells that now have a watcher.
        """
        self._running_loop()
        started = 0
        for cell in cells:
            if cell.crop is not None and self.register(cell) is not None:
                started += 1
        return started

    def cancel(self, position: Position) -> bool:
        """Stop the watcher for ``position`` and forget it immediately.

        Safe from any thread: off the loop's thread the task is cancelled
        through ``call_soon_threadsafe``.

        Returns:
            True if a watcher was registered.
        """
        with self._lock:
            task = self._tasks.pop(position, None)
        if task is None:
            return False
        home = task.get_loop()
        if self._running_loop() is home:
            task.cancel()
        elif not home.is_closed():
            home.call_soon_threadsafe(task.cancel)
        logger.debug("Watcher cancelled at %s", position)
        return True

    async def shutdown(self) -> None:
        """Cancel every watcher and wait for all of them to finish."""
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        self._loop = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def task(self, position: Position) -> asyncio.Task[None] | None:
        """Return the registered watcher task for ``position``, if any."""
        return self._tasks.get(position)

    def is_watching(self, position: Position) -> bool:
        task = self._tasks.get(position)
        return task is not None and not task.done()

    def __len__(self) -> int:
        return len(self._tasks)

    def _running_loop(self) -> asyncio.AbstractEventLoop | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        if self._loop is None or self._loop.is_closed():
            self._loop = loop
        return loop

    def _start(self, cell: Cell, crop: PlantedCrop) -> asyncio.Task[None] | None:
        """Create the watcher task; runs on the loop's thread."""
        # A crop removed or replaced before this ran needs no watcher.
        if cell.crop is not crop:
            return None
        with self._lock:
            existing = self._tasks.get(cell.position)
            if existing is not None and not existing.done():
                return existing
            task = asyncio.get_running_loop().create_task(
                self._watch(cell, crop),
                name=f"growth-watcher-{cell.x}-{cell.y}",
            )
            self._tasks[cell.position] = task
        return task

    async def _watch(self, cell: Cell, crop: PlantedCrop) -> None:
        """Poll one crop until it is ready or removed."""
        position = cell.position
        me = asyncio.current_task()
        last_stage = -1
        try:
            # A replaced or removed crop ends the watch.
            while cell.crop is crop:
                reading = crop.reading(self.clock.now())
                stage = growth.stage(reading.fraction, crop.config.growth_stages)
                if stage != last_stage:
                    last_stage = stage
                    logger.debug("Crop %s at %s reached stage %d", crop.crop_id, position, stage)
                    self.bus.publish(
                        CropStageChanged(position=position, crop_id=crop.crop_id, stage=stage),
                    )
                if reading.is_ready:
                    logger.info("Crop ready to harvest: %s at %s", crop.crop_id, position)
                    self.bus.publish(CropReady(position=position, crop_id=crop.crop_id))
                    return
                await asyncio.sleep(self.poll_interval)
        except Exception:
            logger.exception("Growth watcher at %s failed", position)
        finally:
            with self._lock:
                if self._tasks.get(position) is me:
                    del self._tasks[position]
