"""
Strikewise — Strategy Recommender

Maps a market outlook and risk tolerance to catalog constructors, picks
strikes around the money at the nearest expiry, builds what the chain
supports and ranks the results.

  BULLISH → Long Call, Bull Call Spread, Cash Secured Put (HIGH only)
  BEARISH → Long Put, Bear Put Spread, Covered Call (HIGH only)
  NEUTRAL → Iron Condor, Long Straddle, Long Call Butterfly

A strategy that cannot be built is skipped and recorded on the report;
it never aborts the recommendation.
"""

from __future__ import annotations

from typing import Callable, Optional, Union

import structlog

from strikewise.config import get_settings
from strikewise.engines.chain_analytics import ChainAnalytics
from strikewise.engines.strategy_catalog import (
    BEAR_PUT_SPREAD,
    BULL_CALL_SPREAD,
    CALL_BUTTERFLY,
    CASH_SECURED_PUT,
    COVERED_CALL,
    IRON_CONDOR,
    LONG_CALL,
    LONG_PUT,
    LONG_STRADDLE,
    StrategyCatalog,
)
from strikewise.errors import InvalidInputError, MissingContractError, StrategyConstructionError
from strikewise.models import (
    MarketOutlook,
    OptionsChain,
    OptionStrategy,
    RecommendationReport,
    RiskTolerance,
    SkippedStrategy,
)

log = structlog.get_logger(__name__)

_Attempt = tuple[str, Callable[[], OptionStrategy]]


def coerce_outlook(value: Union[MarketOutlook, str]) -> MarketOutlook:
    """Accept an enum member or a case-insensitive name."""
    try:
        return MarketOutlook(value.upper() if isinstance(value, str) else value)
    except ValueError:
        raise InvalidInputError(f"Unknown market outlook '{value}'") from None


def coerce_tolerance(value: Union[RiskTolerance, str]) -> RiskTolerance:
    """Accept an enum member or a case-insensitive name."""
    try:
        return RiskTolerance(value.upper() if isinstance(value, str) else value)
    except ValueError:
        raise InvalidInputError(f"Unknown risk tolerance '{value}'") from None


def rank_key(strategy: OptionStrategy) -> tuple[int, float]:
    """Unbounded profit first, then risk-reward descending."""
    if strategy.is_profit_unbounded:
        return (0, 0.0)
    return (1, -strategy.risk_reward)


class _StrikeLadder:
    """Strikes at the nearest expiry, addressed by steps from the money."""

    def __init__(self, chain: OptionsChain):
        self.chain = chain
        self.expiry = chain.nearest_expiry
        self.strikes = chain.strikes_for(self.expiry) if self.expiry else []
        atm = ChainAnalytics.atm_strike(chain, self.expiry) if self.expiry else None
        self.atm_index = self.strikes.index(atm) if atm is not None else None

    def at(self, strategy: str, steps: int) -> float:
        """Strike *steps* above (positive) or below (negative) ATM."""
        if self.atm_index is None:
            raise MissingContractError(strategy, "chain has no listed strikes")
        index = self.atm_index + steps
        if not 0 <= index < len(self.strikes):
            direction = "above" if steps > 0 else "below"
            raise MissingContractError(
                strategy, f"no strike {abs(steps)} step(s) {direction} the money",
            )
        return self.strikes[index]


class StrategyRecommender:
    """Builds and ranks candidate strategies for an outlook."""

    def __init__(
        self,
        catalog: Optional[StrategyCatalog] = None,
        quantity: Optional[int] = None,
    ):
        self.catalog = catalog if catalog is not None else StrategyCatalog()
        self.quantity = get_settings().strategy_quantity if quantity is None else quantity
        if self.quantity <= 0:
            raise InvalidInputError(f"Strategy quantity must be positive, got {self.quantity}")

    def recommend(
        self,
        chain: OptionsChain,
        outlook: Union[MarketOutlook, str],
        risk_tolerance: Union[RiskTolerance, str],
    ) -> RecommendationReport:
        """Attempt every applicable strategy and return them ranked."""
        outlook = coerce_outlook(outlook)
        risk_tolerance = coerce_tolerance(risk_tolerance)
        attempts = self._plan(chain, outlook, risk_tolerance)

        strategies: list[OptionStrategy] = []
        skipped: list[SkippedStrategy] = []
        for name, build in attempts:
            try:
                strategies.append(build())
            except StrategyConstructionError as exc:
                log.info(
                    "recommender.strategy_skipped",
                    underlying=chain.underlying,
                    strategy=name,
                    reason=exc.message,
                )
                skipped.append(SkippedStrategy(name=name, reason=exc.message))

        strategies.sort(key=rank_key)
        log.debug(
            "recommender.ranked",
            underlying=chain.underlying,
            outlook=outlook.value,
            risk_tolerance=risk_tolerance.value,
            attempted=len(attempts),
            returned=len(strategies),
        )
        return RecommendationReport(
            underlying=chain.underlying,
            outlook=outlook,
            risk_tolerance=risk_tolerance,
            strategies=strategies,
            attempted=len(attempts),
            skipped=skipped,
        )

    # ──────────────────────────────────────────────
    # Planning
    # ──────────────────────────────────────────────

    def _plan(
        self,
        chain: OptionsChain,
        outlook: MarketOutlook,
        risk_tolerance: RiskTolerance,
    ) -> list[_Attempt]:
        """Deferred constructor calls; strikes resolve when each one runs."""
        catalog = self.catalog
        ladder = _StrikeLadder(chain)
        expiry = ladder.expiry
        qty = self.quantity
        high = risk_tolerance == RiskTolerance.HIGH

        if outlook == MarketOutlook.BULLISH:
            attempts: list[_Attempt] = [
                (LONG_CALL, lambda: catalog.long_call(
                    chain, ladder.at(LONG_CALL, 0), expiry, qty)),
                (BULL_CALL_SPREAD, lambda: catalog.bull_call_spread(
                    chain,
                    ladder.at(BULL_CALL_SPREAD, 0),
                    ladder.at(BULL_CALL_SPREAD, 1),
                    expiry, qty)),
            ]
            if high:
                attempts.append((CASH_SECURED_PUT, lambda: catalog.cash_secured_put(
                    chain, ladder.at(CASH_SECURED_PUT, -1), expiry, qty)))
            return attempts

        if outlook == MarketOutlook.BEARISH:
            attempts = [
                (LONG_PUT, lambda: catalog.long_put(
                    chain, ladder.at(LONG_PUT, 0), expiry, qty)),
                (BEAR_PUT_SPREAD, lambda: catalog.bear_put_spread(
                    chain,
                    ladder.at(BEAR_PUT_SPREAD, 0),
                    ladder.at(BEAR_PUT_SPREAD, -1),
                    expiry, qty)),
            ]
            if high:
                attempts.append((COVERED_CALL, lambda: catalog.covered_call(
                    chain, ladder.at(COVERED_CALL, 1), expiry, qty)))
            return attempts

        return [
            (IRON_CONDOR, lambda: catalog.iron_condor(
                chain,
                ladder.at(IRON_CONDOR, -2),
                ladder.at(IRON_CONDOR, -1),
                ladder.at(IRON_CONDOR, 1),
                ladder.at(IRON_CONDOR, 2),
                expiry, qty)),
            (LONG_STRADDLE, lambda: catalog.straddle(
                chain, ladder.at(LONG_STRADDLE, 0), expiry, qty)),
            (CALL_BUTTERFLY, lambda: catalog.butterfly(
                chain,
                ladder.at(CALL_BUTTERFLY, -1),
                ladder.at(CALL_BUTTERFLY, 0),
                ladder.at(CALL_BUTTERFLY, 1),
                expiry, qty)),
        ]
