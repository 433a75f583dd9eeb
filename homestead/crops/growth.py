"""Growth -- pure mapping from elapsed wall-clock time to crop progress.

Nothing here holds state.  A crop's progress is recomputed from its
``planted_at`` timestamp every time it is needed, which is what makes
offline growth work: restoring ``planted_at`` from a save and calling
``phase`` with the current time yields the right answer no matter how
long the process was suspended.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import ArrayLike, NDArray


class Phase(Enum):
    """Crop lifecycle status.  Crops never spoil, so there is no decay phase."""

    GROWING = "growing"
    READY_TO_HARVEST = "ready_to_harvest"


@dataclass(frozen=True)
class GrowthReading:
    """Result of evaluating a crop at one instant.

    Attributes:
        fraction: Progress in ``[0, 1]``.
        phase: Lifecycle phase at that instant.
    """

    fraction: float
    phase: Phase

    @property
    def is_ready(self) -> bool:
        return self.phase is Phase.READY_TO_HARVEST


def phase(planted_at: float, growth_time: float, now: float) -> GrowthReading:
    """Evaluate a crop's growth at time ``now``.

    A non-positive ``growth_time`` means the crop is ready immediately.
    A ``now`` earlier than ``planted_at`` (clock skew) reads as zero
    progress rather than negative.

    Args:
        planted_at: Planting timestamp in epoch seconds.
        growth_time: Seconds needed to reach maturity.
        now: Evaluation timestamp in epoch seconds.

    Returns:
        The growth fraction and phase.
    """
    elapsed = now - planted_at
    if growth_time <= 0:
        return GrowthReading(fraction=1.0, phase=Phase.READY_TO_HARVEST)
    fraction = min(1.0, max(0.0, elapsed / growth_time))
    if elapsed < growth_time:
        return GrowthReading(fraction=fraction, phase=Phase.GROWING)
    return GrowthReading(fraction=fraction, phase=Phase.READY_TO_HARVEST)


def stage(fraction: float, stage_count: int) -> int:
    """Return the visual stage index ``floor(fraction * (stage_count - 1))``.

    Used only to decide when renderers should swap the crop visual; it is
    not a state transition.
    """
    if stage_count <= 1:
        return 0
    return math.floor(fraction * (stage_count - 1))


def fractions(
    planted_at: ArrayLike,
    growth_time: ArrayLike,
    now: float,
) -> NDArray[np.float64]:
    """Vectorised growth fraction for many crops at once.

    NaN entries in ``planted_at`` (empty cells) stay NaN in the result.

    Args:
        planted_at: Planting timestamps.
        growth_time: Matching growth durations in seconds.
        now: Evaluation timestamp.

    Returns:
        Array of fractions clipped to ``[0, 1]``.
    """
    planted = np.asarray(planted_at, dtype=np.float64)
    duration = np.asarray(growth_time, dtype=np.float64)
    elapsed = now - planted
    with np.errstate(divide="ignore", invalid="ignore"):
        raw = np.where(duration > 0, elapsed / duration, 1.0)
    raw = np.where(np.isnan(planted), np.nan, raw)
    return np.clip(raw, 0.0, 1.0)
