"""Clock -- the injectable source of wall-clock time.

All growth is derived from ``now - planted_at``, so swapping the clock is
enough to simulate any amount of offline time in tests or tooling.
Timestamps are POSIX epoch seconds as floats.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    """Anything that can report the current time."""

    def now(self) -> float:
        """Return the current time in epoch seconds."""
        ...


class SystemClock:
    """Real wall-clock time."""

    def now(self) -> float:
        return time.time()


@dataclass
class ManualClock:
    """A clock that only moves when told to.

    Attributes:
        current: The time reported by ``now()``.
    """

    current: float = 0.0

    def now(self) -> float:
        return self.current

    def set(self, timestamp: float) -> None:
        self.current = timestamp

    def advance(self, seconds: float) -> float:
        """Move the clock forward and return the new time."""
        self.current += seconds
        return self.current
