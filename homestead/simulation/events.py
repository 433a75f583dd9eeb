"""Events -- typed notifications and the bus that delivers them.

Each notification the core emits is a frozen dataclass.  Listeners
subscribe to an event *class* on an ``EventBus`` owned by the farm
context, so there is no process-wide static event table and tests can
build as many isolated buses as they like.

Delivery is synchronous, in subscription order, and fire-and-forget: a
listener that raises is logged and skipped, and the mutation that
published the event is never rolled back.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

Position = tuple[int, int]


@dataclass(frozen=True)
class Event:
    """Base class for everything published on the bus."""


# -- Grid ---------------------------------------------------------------------


@dataclass(frozen=True)
class CellSelected(Event):
    position: Position


@dataclass(frozen=True)
class CellDeselected(Event):
    position: Position


@dataclass(frozen=True)
class CellKindChanged(Event):
    position: Position
    kind: str


# -- Crops --------------------------------------------------------------------


@dataclass(frozen=True)
class CropPlanted(Event):
    position: Position
    crop_id: str


@dataclass(frozen=True)
class CropStageChanged(Event):
    """Visual growth stage changed; renderers swap the crop mesh/sprite."""

    position: Position
    crop_id: str
    stage: int


@dataclass(frozen=True)
class CropReady(Event):
    position: Position
    crop_id: str


@dataclass(frozen=True)
class CropHarvested(Event):
    position: Position
    crop_id: str


@dataclass(frozen=True)
class CropCleared(Event):
    """A crop was removed without being harvested."""

    position: Position
    crop_id: str


# -- Inventory ----------------------------------------------------------------


@dataclass(frozen=True)
class ItemUpdated(Event):
    item_id: str
    quantity: int


@dataclass(frozen=True)
class ItemRemoved(Event):
    item_id: str


@dataclass(frozen=True)
class InventoryCleared(Event):
    pass


# -- Economy ------------------------------------------------------------------


@dataclass(frozen=True)
class LevelChanged(Event):
    level: int
    current_exp: int
    max_exp: int


@dataclass(frozen=True)
class CurrencyChanged(Event):
    """Both denominations, since wallet displays always show both."""

    gold: int
    gem: int


# -- Interaction --------------------------------------------------------------


@dataclass(frozen=True)
class PlantingModeStarted(Event):
    crop_id: str


@dataclass(frozen=True)
class PlantingModeEnded(Event):
    pass


@dataclass(frozen=True)
class CellHovered(Event):
    """Pointer moved onto a cell while planting; ``valid`` drives the preview."""

    position: Position
    valid: bool


@dataclass(frozen=True)
class PlantingFailed(Event):
    reason: str


E = TypeVar("E", bound=Event)
Handler = Callable[[Any], None]


class EventBus:
    """Synchronous typed publish/subscribe channel.

    Handlers registered for a base class also receive its subclasses, so
    subscribing to ``Event`` yields every notification (handy for logs
    and tests).
    """

    def __init__(self) -> None:
        self._handlers: dict[type[Event], list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """Register ``handler`` for ``event_type`` and its subclasses."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: Event) -> None:
        """Deliver ``event`` to every matching handler.

        Args:
            event: The notification to deliver.
        """
        for event_type in type(event).__mro__:
            for handler in list(self._handlers.get(event_type, ())):
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "Listener %r failed on %s",
                        handler,
                        type(event).__name__,
                    )


class EventRecorder:
    """Collects every published event in order.

    Attach with ``EventRecorder.attach(bus)``; used by hosts for replay
    logs and by the test suite to assert on notifications.
    """

    def __init__(self) -> None:
        self.events: list[Event] = []

    @classmethod
    def attach(cls, bus: EventBus) -> EventRecorder:
        recorder = cls()
        bus.subscribe(Event, recorder.events.append)
        return recorder

    def of_type(self, event_type: type[E]) -> list[E]:
        """Return recorded events that are instances of ``event_type``."""
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self) -> None:
        self.events.clear()
