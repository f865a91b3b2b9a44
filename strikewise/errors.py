"""
Strikewise — Exceptions

Structural problems (bad input, missing contracts) surface to the caller as
one of these. Numeric edge cases never do: they are floored or defaulted
where they occur.
"""

from __future__ import annotations


class StrikewiseError(Exception):
    """Base class for all engine errors."""


class InvalidInputError(StrikewiseError, ValueError):
    """Non-positive prices, bad time/volatility, mismatched underlying,
    malformed feed records."""


class StrategyConstructionError(StrikewiseError):
    """A single strategy could not be built from the chain."""

    def __init__(self, strategy: str, message: str):
        super().__init__(f"{strategy}: {message}")
        self.strategy = strategy
        self.message = message


class MissingContractError(StrategyConstructionError, LookupError):
    """A leg's (type, strike, expiry) is not listed in the chain."""


class DegenerateStrategyError(StrategyConstructionError):
    """The quotes produce a strategy with no edge or an impossible payoff."""
