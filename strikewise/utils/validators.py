"""
Strikewise — Input Validators

Reusable validation helpers for symbols and prices.
Raise InvalidInputError (a ValueError) on invalid input.
"""

from __future__ import annotations

import math
import re

from strikewise.errors import InvalidInputError

# Equity tickers and index names: optional ^ index prefix, letters/digits,
# optional .class suffix. No embedded spaces (send NIFTY50, not "NIFTY 50").
_TICKER_RE = re.compile(r"^\^?[A-Z][A-Z0-9&-]{0,14}(\.[A-Z]{1,2})?$")


def validate_ticker(raw: str) -> str:
    """Clean and validate an underlying symbol.

    Returns the normalized symbol or raises InvalidInputError.

    >>> validate_ticker('aapl')
    'AAPL'
    >>> validate_ticker('BRK.B')
    'BRK.B'
    >>> validate_ticker('^spx')
    '^SPX'
    >>> validate_ticker('banknifty')
    'BANKNIFTY'
    """
    ticker = (raw or "").strip().upper()
    if not ticker:
        raise InvalidInputError("Ticker cannot be empty")
    if not _TICKER_RE.match(ticker):
        raise InvalidInputError(
            f"Invalid ticker '{ticker}'. Expected an uppercase symbol, "
            f"optionally prefixed with ^ for an index or followed by a class "
            f"suffix (e.g. ^SPX, BRK.B); spaces are not allowed"
        )
    return ticker


def validate_positive(name: str, value: float) -> float:
    """Require a finite, strictly positive number.

    >>> validate_positive('spot', 101.5)
    101.5
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if math.isnan(number) or math.isinf(number) or number <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value!r}")
    return number
