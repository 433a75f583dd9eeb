"""Economy -- player currency and level progression.

Two denominations (gold and gems) that can never go negative, plus an
experience bar that rolls over into new levels.  Currency operations
report failure by returning False rather than raising: running short of
gold is an everyday outcome the UI decides how to present.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from homestead.errors import InvalidAmount, SnapshotError
from homestead.simulation.events import CurrencyChanged, EventBus, LevelChanged

logger = logging.getLogger(__name__)

BASE_EXP = 1000
EXP_GROWTH_FACTOR = 1.2


@dataclass
class EconomyState:
    """Plain copy of the economy values.

    Attributes:
        level: Player level (>= 1).
        current_exp: Experience toward the next level, in ``[0, max_exp)``.
        max_exp: Experience needed to level up.
        gold: Primary currency balance.
        gem: Premium currency balance.
    """

    level: int = 1
    current_exp: int = 0
    max_exp: int = BASE_EXP
    gold: int = 0
    gem: int = 0


class Economy:
    """Checked mutations over an ``EconomyState``.

    Attributes:
        bus: Channel for level and currency notifications.
        base_exp: Experience needed for level 2.
        growth_factor: Per-level multiplier on the experience requirement.
    """

    def __init__(
        self,
        bus: EventBus | None = None,
        *,
        base_exp: int = BASE_EXP,
        growth_factor: float = EXP_GROWTH_FACTOR,
        gold: int = 0,
        gem: int = 0,
    ) -> None:
        if base_exp <= 0:
            msg = f"base_exp must be positive, got {base_exp}"
            raise ValueError(msg)
        self.bus = bus if bus is not None else EventBus()
        self.base_exp = base_exp
        self.growth_factor = growth_factor
        self._state = EconomyState(max_exp=base_exp)
        self._lock = threading.RLock()
        self.load(EconomyState(max_exp=base_exp, gold=gold, gem=gem))

    # -- Read access ----------------------------------------------------------

    @property
    def level(self) -> int:
        return self._state.level

    @property
    def current_exp(self) -> int:
        return self._state.current_exp

    @property
    def max_exp(self) -> int:
        return self._state.max_exp

    @property
    def gold(self) -> int:
        return self._state.gold

    @property
    def gem(self) -> int:
        return self._state.gem

    def state(self) -> EconomyState:
        """Return a copy of the current values."""
        with self._lock:
            s = self._state
            return EconomyState(s.level, s.current_exp, s.max_exp, s.gold, s.gem)

    def max_exp_for_level(self, level: int) -> int:
        """Experience needed to leave ``level``: ``base * factor^(level-1)``."""
        return int(self.base_exp * self.growth_factor ** (level - 1))

    # -- Experience -----------------------------------------------------------

    def add_experience(self, amount: int) -> int:
        """Add experience, levelling up as many times as it overflows.

        Publishes a single LevelChanged with the final values.

        Args:
            amount: Experience to add; must be positive.

        Returns:
            Number of levels gained.

        Raises:
            InvalidAmount: If ``amount <= 0``.
        """
        if amount <= 0:
            logger.warning("Invalid experience amount: %s", amount)
            raise InvalidAmount(amount, "experience amount")
        with self._lock:
            s = self._state
            start_level = s.level
            s.current_exp += amount
            while s.current_exp >= s.max_exp:
                s.current_exp -= s.max_exp
                s.level += 1
                s.max_exp = self.max_exp_for_level(s.level)
                logger.info("Level up! New level: %d", s.level)
            event = LevelChanged(level=s.level, current_exp=s.current_exp, max_exp=s.max_exp)
            gained = s.level - start_level

        logger.info(
            "Experience added: %d, level %d, exp %d/%d",
            amount,
            event.level,
            event.current_exp,
            event.max_exp,
        )
        self.bus.publish(event)
        return gained

    # -- Currency -------------------------------------------------------------

    def add_gold(self, amount: int) -> bool:
        return self._change("gold", amount)

    def remove_gold(self, amount: int) -> bool:
        return self._change("gold", -amount, requested=amount)

    def add_gem(self, amount: int) -> bool:
        return self._change("gem", amount)

    def remove_gem(self, amount: int) -> bool:
        return self._change("gem", -amount, requested=amount)

    def _change(self, currency: str, delta: int, requested: int | None = None) -> bool:
        """Apply ``delta`` to one balance if the result stays non-negative.

        ``requested`` is the caller's amount for removals, which must not
        itself be negative.
        """
        amount = delta if requested is None else requested
        if amount < 0:
            logger.warning("Rejected negative %s amount: %d", currency, amount)
            return False
        with self._lock:
            balance = getattr(self._state, currency)
            if balance + delta < 0:
                logger.warning(
                    "Insufficient %s: balance %d, requested %d",
                    currency,
                    balance,
                    -delta,
                )
                return False
            setattr(self._state, currency, balance + delta)
            event = CurrencyChanged(gold=self._state.gold, gem=self._state.gem)

        logger.info(
            "%s changed by %+d. New total: %d",
            currency.capitalize(),
            delta,
            balance + delta,
        )
        self.bus.publish(event)
        return True

    # -- Persistence ----------------------------------------------------------

    def load(self, state: EconomyState) -> None:
        """Replace all values without publishing.

        Raises:
            SnapshotError: If ``state`` violates the economy invariants.
        """
        if state.level < 1:
            msg = f"level must be at least 1, got {state.level}"
            raise SnapshotError(msg)
        if state.max_exp <= 0:
            msg = f"max_exp must be positive, got {state.max_exp}"
            raise SnapshotError(msg)
        if not 0 <= state.current_exp < state.max_exp:
            msg = f"current_exp {state.current_exp} outside [0, {state.max_exp})"
            raise SnapshotError(msg)
        if state.gold < 0 or state.gem < 0:
            msg = "currency balances cannot be negative"
            raise SnapshotError(msg)
        with self._lock:
            self._state = EconomyState(
                state.level,
                state.current_exp,
                state.max_exp,
                state.gold,
                state.gem,
            )
