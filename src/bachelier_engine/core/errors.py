"""Exceptions raised by the normal model."""

from __future__ import annotations


class NormalModelError(ValueError):
    """Base class for normal model failures."""


class InvalidInputError(NormalModelError):
    """Raised when an input lies outside the domain of the model."""


class ArbitrageViolationError(NormalModelError):
    """Raised when an option price sits below its intrinsic value."""

    def __init__(self, price: float, intrinsic: float) -> None:
        super().__init__(
            f"option price must not be below intrinsic value; have price={price!r} "
            f"and intrinsic={intrinsic!r}"
        )
        self.price = price
        self.intrinsic = intrinsic
