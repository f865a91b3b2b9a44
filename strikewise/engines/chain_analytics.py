"""
Strikewise — Chain Analytics

Chain-wide metrics derived from an already built ``OptionsChain``:
max pain, put/call ratio, ATM implied volatility, volatility skew,
IV term structure, OI-weighted Greeks and OI support/resistance.

Every metric is a pure function of the chain. ``enrich`` runs them all once
and returns a new, frozen chain with the derived fields set.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

import numpy as np
import structlog

from strikewise.models import (
    GreeksProfile,
    OptionsChain,
    PcrSentiment,
    SkewPoint,
    SupportResistance,
    TermStructurePoint,
)

log = structlog.get_logger(__name__)


class ChainAnalytics:
    """Pure chain analytics. All methods are static; the class is a namespace."""

    # ──────────────────────────────────────────────
    # Enrichment
    # ──────────────────────────────────────────────

    @classmethod
    def enrich(cls, chain: OptionsChain) -> OptionsChain:
        """Return a copy of *chain* with every derived field populated."""
        max_pain = cls.compute_max_pain(chain)
        pcr = cls.put_call_ratio(chain)

        # model_copy is shallow; the enriched chain gets its own containers
        enriched = chain.model_copy(update={
            "expiries": list(chain.expiries),
            "strikes": list(chain.strikes),
            "calls": dict(chain.calls),
            "puts": dict(chain.puts),
            "enriched": True,
            "max_pain": max_pain,
            "max_pain_distance_pct": cls.max_pain_distance_pct(chain, max_pain),
            "put_call_ratio": pcr,
            "volume_put_call_ratio": cls.volume_put_call_ratio(chain),
            "pcr_sentiment": cls.pcr_sentiment(pcr),
            "atm_implied_volatility": cls.atm_implied_volatility(chain),
            "volatility_skew": cls.volatility_skew(chain),
            "term_structure": cls.term_structure(chain),
            "greeks_profile": cls.greeks_profile(chain),
            "support_resistance": cls.support_resistance(chain),
        })
        log.debug(
            "chain_analytics.enriched",
            underlying=chain.underlying,
            max_pain=max_pain,
            pcr=round(pcr, 3),
            atm_iv=enriched.atm_implied_volatility,
        )
        return enriched

    # ──────────────────────────────────────────────
    # Max Pain
    # ──────────────────────────────────────────────

    @staticmethod
    def compute_max_pain(chain: OptionsChain) -> Optional[float]:
        """Strike at which option writers pay out the least at expiry.

        For each candidate settlement strike S, sums intrinsic value owed on
        every other strike K: calls max(0, S − K) × OI, puts max(0, K − S) × OI.
        Ties resolve to the lowest strike.
        """
        if not chain.strikes:
            return None

        call_oi: dict[float, int] = {}
        put_oi: dict[float, int] = {}
        for (strike, _), c in chain.calls.items():
            call_oi[strike] = call_oi.get(strike, 0) + c.open_interest
        for (strike, _), p in chain.puts.items():
            put_oi[strike] = put_oi.get(strike, 0) + p.open_interest

        min_pain = float("inf")
        max_pain_strike = chain.strikes[0]

        for settle in chain.strikes:
            total_pain = 0.0
            for strike, oi in call_oi.items():
                if strike != settle:
                    total_pain += max(0.0, settle - strike) * oi
            for strike, oi in put_oi.items():
                if strike != settle:
                    total_pain += max(0.0, strike - settle) * oi
            if total_pain < min_pain:
                min_pain = total_pain
                max_pain_strike = settle

        return max_pain_strike

    @staticmethod
    def max_pain_distance_pct(
        chain: OptionsChain, max_pain: Optional[float],
    ) -> Optional[float]:
        """Distance from spot to max pain, in percent of spot."""
        if max_pain is None:
            return None
        spot = chain.underlying_price
        return round((max_pain - spot) / spot * 100, 2)

    # ──────────────────────────────────────────────
    # Put/Call Ratio
    # ──────────────────────────────────────────────

    @staticmethod
    def put_call_ratio(chain: OptionsChain) -> float:
        """Put OI / call OI. Reported as 0 when call OI is 0."""
        call_oi = sum(c.open_interest for c in chain.calls.values())
        put_oi = sum(p.open_interest for p in chain.puts.values())
        return put_oi / call_oi if call_oi > 0 else 0.0

    @staticmethod
    def volume_put_call_ratio(chain: OptionsChain) -> float:
        """Put volume / call volume, same zero convention."""
        call_vol = sum(c.volume for c in chain.calls.values())
        put_vol = sum(p.volume for p in chain.puts.values())
        return put_vol / call_vol if call_vol > 0 else 0.0

    @staticmethod
    def pcr_sentiment(ratio: float) -> PcrSentiment:
        """Sentiment label for a put/call ratio (high ratio reads bearish)."""
        if ratio > 1.5:
            return PcrSentiment.BEARISH
        if ratio > 1.0:
            return PcrSentiment.SLIGHTLY_BEARISH
        if ratio > 0.7:
            return PcrSentiment.NEUTRAL
        if ratio > 0.5:
            return PcrSentiment.SLIGHTLY_BULLISH
        return PcrSentiment.BULLISH

    # ──────────────────────────────────────────────
    # Implied Volatility
    # ──────────────────────────────────────────────

    @staticmethod
    def atm_strike(chain: OptionsChain, expiry: Optional[date] = None) -> Optional[float]:
        """Strike closest to spot (lower strike on a tie).

        Restricted to strikes listed at *expiry* when one is given.
        """
        strikes = chain.strikes_for(expiry) if expiry is not None else chain.strikes
        if not strikes:
            return None
        spot = chain.underlying_price
        best = strikes[0]
        for strike in strikes[1:]:
            if abs(strike - spot) < abs(best - spot):
                best = strike
        return best

    @classmethod
    def _atm_iv_at(cls, chain: OptionsChain, expiry: date) -> float:
        strike = cls.atm_strike(chain, expiry)
        if strike is None:
            return 0.0
        ivs = [
            c.implied_volatility
            for c in (chain.call(strike, expiry), chain.put(strike, expiry))
            if c is not None and c.implied_volatility > 0
        ]
        return sum(ivs) / len(ivs) if ivs else 0.0

    @classmethod
    def atm_implied_volatility(cls, chain: OptionsChain) -> float:
        """IV at the ATM strike of the nearest expiry (call/put mean)."""
        expiry = chain.nearest_expiry
        if expiry is None:
            return 0.0
        return cls._atm_iv_at(chain, expiry)

    @staticmethod
    def volatility_skew(chain: OptionsChain) -> list[SkewPoint]:
        """Put IV − call IV per strike at the nearest expiry.

        Only strikes quoting both a call and a put are included.
        """
        expiry = chain.nearest_expiry
        if expiry is None:
            return []

        points = []
        for strike in chain.strikes:
            call = chain.call(strike, expiry)
            put = chain.put(strike, expiry)
            if call is None or put is None:
                continue
            points.append(SkewPoint(
                strike=strike,
                call_iv=call.implied_volatility,
                put_iv=put.implied_volatility,
                skew=put.implied_volatility - call.implied_volatility,
            ))
        return points

    @classmethod
    def term_structure(cls, chain: OptionsChain) -> list[TermStructurePoint]:
        """ATM IV for each expiry, nearest first."""
        return [
            TermStructurePoint(expiry=expiry, atm_iv=cls._atm_iv_at(chain, expiry))
            for expiry in chain.expiries
        ]

    # ──────────────────────────────────────────────
    # Greeks Exposure
    # ──────────────────────────────────────────────

    @staticmethod
    def greeks_profile(chain: OptionsChain) -> GreeksProfile:
        """Σ greek × open interest across every contract in the chain."""
        rows = [
            (c.greeks.delta, c.greeks.gamma, c.greeks.theta, c.greeks.vega, c.open_interest)
            for c in chain.contracts()
        ]
        if not rows:
            return GreeksProfile()

        data = np.array(rows, dtype=float)
        totals = data[:, :4].T @ data[:, 4]
        return GreeksProfile(
            total_delta=float(totals[0]),
            total_gamma=float(totals[1]),
            total_theta=float(totals[2]),
            total_vega=float(totals[3]),
        )

    # ──────────────────────────────────────────────
    # Support / Resistance
    # ──────────────────────────────────────────────

    @staticmethod
    def support_resistance(chain: OptionsChain) -> SupportResistance:
        """Open-interest peaks below spot (support) and above spot (resistance).

        A strike is a peak when its combined call+put OI strictly exceeds
        both neighbours in the sorted strike list.
        """
        oi_by_strike: dict[float, int] = {s: 0 for s in chain.strikes}
        for (strike, _), c in chain.calls.items():
            oi_by_strike[strike] += c.open_interest
        for (strike, _), p in chain.puts.items():
            oi_by_strike[strike] += p.open_interest

        strikes = chain.strikes
        spot = chain.underlying_price
        support: list[float] = []
        resistance: list[float] = []

        for i in range(1, len(strikes) - 1):
            oi = oi_by_strike[strikes[i]]
            if oi > oi_by_strike[strikes[i - 1]] and oi > oi_by_strike[strikes[i + 1]]:
                if strikes[i] < spot:
                    support.append(strikes[i])
                elif strikes[i] > spot:
                    resistance.append(strikes[i])

        return SupportResistance(support=support, resistance=resistance)
