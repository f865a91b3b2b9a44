"""
Strikewise — Pricing Math

Stateless numerical primitives: standard normal CDF/PDF, Black-Scholes
Greeks and price for a single European contract, time to expiry.

The CDF uses the 5-term Abramowitz-Stegun erf approximation (7.1.26,
|error| <= 1.5e-7) so the engine carries no statistics dependency.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Union

from strikewise.errors import InvalidInputError
from strikewise.models import OptionGreeks, OptionType

_SQRT_2 = math.sqrt(2.0)
_INV_SQRT_2PI = 1.0 / math.sqrt(2.0 * math.pi)

# Abramowitz & Stegun 7.1.26
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911

DAYS_PER_YEAR = 365.0
MIN_TIME_TO_EXPIRY = 1.0 / DAYS_PER_YEAR  # one calendar day


# ──────────────────────────────────────────────
# Standard Normal Distribution
# ──────────────────────────────────────────────

def _erf(x: float) -> float:
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + _P * x)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-x * x)
    return sign * y


def normal_cdf(x: float) -> float:
    """Standard normal CDF: Φ(x) = 0.5 * (1 + erf(x / √2))"""
    return min(1.0, max(0.0, 0.5 * (1.0 + _erf(x / _SQRT_2))))


def normal_pdf(x: float) -> float:
    """Standard normal PDF: φ(x) = exp(-x²/2) / √(2π)"""
    return math.exp(-0.5 * x * x) * _INV_SQRT_2PI


# ──────────────────────────────────────────────
# Time
# ──────────────────────────────────────────────

def time_to_expiry_years(expiry: date, now: Union[date, datetime]) -> float:
    """Calendar years from *now* to *expiry*, floored at one day.

    Day granularity: a contract expiring today counts as one day.
    """
    today = now.date() if isinstance(now, datetime) else now
    days = (expiry - today).days
    return max(MIN_TIME_TO_EXPIRY, days / DAYS_PER_YEAR)


# ──────────────────────────────────────────────
# Black-Scholes
# ──────────────────────────────────────────────

def _check_inputs(S: float, K: float, T: float, sigma: float) -> float:
    """Validate Black-Scholes inputs and return the floored T."""
    if not S > 0:
        raise InvalidInputError(f"Spot must be positive, got {S}")
    if not K > 0:
        raise InvalidInputError(f"Strike must be positive, got {K}")
    if not T > 0:
        raise InvalidInputError(f"Time to expiry must be positive, got {T}")
    if not sigma > 0:
        raise InvalidInputError(f"Implied volatility must be positive, got {sigma}")
    return max(T, MIN_TIME_TO_EXPIRY)


def d1_d2(S: float, K: float, T: float, r: float, sigma: float) -> tuple[float, float]:
    """Black-Scholes d1, d2."""
    sqrt_T = math.sqrt(T)
    d1 = (math.log(S / K) + (r + sigma**2 / 2) * T) / (sigma * sqrt_T)
    return d1, d1 - sigma * sqrt_T


def black_scholes_price(
    S: float,
    K: float,
    r: float,
    T: float,
    sigma: float,
    option_type: OptionType = OptionType.CALL,
) -> float:
    """Black-Scholes price of a European option.

    Args:
        S: Underlying spot price
        K: Strike price
        r: Risk-free rate (e.g. 0.06 for 6%)
        T: Time to expiry in years
        sigma: Implied volatility (e.g. 0.20 for 20%)
        option_type: CALL or PUT
    """
    T = _check_inputs(S, K, T, sigma)
    d1, d2 = d1_d2(S, K, T, r, sigma)
    discount = K * math.exp(-r * T)
    if option_type == OptionType.CALL:
        return S * normal_cdf(d1) - discount * normal_cdf(d2)
    return discount * normal_cdf(-d2) - S * normal_cdf(-d1)


def black_scholes_greeks(
    S: float,
    K: float,
    r: float,
    T: float,
    sigma: float,
    option_type: OptionType = OptionType.CALL,
) -> OptionGreeks:
    """Compute all first-order Greeks.

    Theta is per calendar day, vega per 1% IV change, rho per 1% rate
    change. Requires S, K, T, sigma > 0; T below one day is floored to one
    day. Callers substitute a default IV when the feed supplies none.
    """
    T = _check_inputs(S, K, T, sigma)
    sqrt_T = math.sqrt(T)
    d1, d2 = d1_d2(S, K, T, r, sigma)
    pdf_d1 = normal_pdf(d1)
    discount = K * math.exp(-r * T)

    # Gamma and vega are the same for calls and puts
    gamma = pdf_d1 / (S * sigma * sqrt_T)
    vega = S * pdf_d1 * sqrt_T / 100

    theta_term1 = -(S * pdf_d1 * sigma) / (2 * sqrt_T)
    if option_type == OptionType.CALL:
        delta = normal_cdf(d1)
        theta = (theta_term1 - r * discount * normal_cdf(d2)) / DAYS_PER_YEAR
        rho = K * T * math.exp(-r * T) * normal_cdf(d2) / 100
    else:
        delta = normal_cdf(d1) - 1
        theta = (theta_term1 + r * discount * normal_cdf(-d2)) / DAYS_PER_YEAR
        rho = -K * T * math.exp(-r * T) * normal_cdf(-d2) / 100

    return OptionGreeks(delta=delta, gamma=gamma, theta=theta, vega=vega, rho=rho)
