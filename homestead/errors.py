"""Errors -- the recoverable failure taxonomy of the farm core.

Every error here describes an expected condition the caller is meant to
handle (show a message, refuse a click, fall back to defaults).  None of
them signal a broken process.  Where a builtin category fits, the error
also subclasses it so generic callers can catch ``IndexError``,
``KeyError`` or ``ValueError``.
"""

from __future__ import annotations


class FarmError(Exception):
    """Base class for all farm-core errors."""


class OutOfRange(FarmError, IndexError):
    """A grid coordinate lies outside the grid."""

    def __init__(self, x: int, y: int, width: int, height: int) -> None:
        self.x = x
        self.y = y
        super().__init__(f"({x}, {y}) out of bounds for {width}x{height}")


class InvalidPlanting(FarmError):
    """The target cell cannot take a crop (wrong kind or occupied)."""

    def __init__(self, x: int, y: int, reason: str) -> None:
        self.x = x
        self.y = y
        self.reason = reason
        super().__init__(f"cannot plant at ({x}, {y}): {reason}")


class NotReady(FarmError):
    """Harvest attempted before the crop reached maturity."""

    def __init__(self, x: int, y: int) -> None:
        self.x = x
        self.y = y
        super().__init__(f"no ready crop at ({x}, {y})")


class CellOccupied(FarmError):
    """A kind switch was attempted on a cell that still holds a crop."""

    def __init__(self, x: int, y: int) -> None:
        self.x = x
        self.y = y
        super().__init__(f"cell ({x}, {y}) is occupied")


class InvalidTransition(FarmError):
    """A kind switch or interaction-mode change that is not allowed."""


class InvalidAmount(FarmError, ValueError):
    """A ledger amount or value is out of its permitted range."""

    def __init__(self, amount: float, what: str = "amount") -> None:
        self.amount = amount
        super().__init__(f"invalid {what}: {amount}")


class InsufficientQuantity(FarmError):
    """An inventory removal exceeds the stock on hand."""

    def __init__(self, item_id: str, requested: int, available: int) -> None:
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"not enough {item_id!r}: requested {requested}, available {available}",
        )


class InsufficientFunds(FarmError):
    """A purchase costs more than the player's balance."""

    def __init__(self, currency: str, required: int, available: int) -> None:
        self.currency = currency
        self.required = required
        self.available = available
        super().__init__(
            f"not enough {currency}: required {required}, available {available}",
        )


class NotFound(FarmError, KeyError):
    """An unknown crop or item identifier."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"unknown {kind}: {key!r}")

    def __str__(self) -> str:
        return str(self.args[0])


class SnapshotError(FarmError, ValueError):
    """A snapshot violates core invariants and cannot be restored."""
