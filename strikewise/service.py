"""
Strikewise — Options Analytics Service

Facade a serving layer calls in-process. Pulls a snapshot from the
market-data feed (a collaborator), runs it through the boundary parser,
chain builder and analytics calculator, caches the enriched chain, and
feeds it to the recommender.

The engines below it are stateless; the cache here is the only shared
mutable state.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Union

import structlog

from strikewise.cache import ChainCache
from strikewise.config import Settings, get_settings
from strikewise.engines.chain_analytics import ChainAnalytics
from strikewise.engines.chain_builder import ChainBuilder, parse_contracts
from strikewise.engines.strategy_catalog import StrategyCatalog
from strikewise.engines.strategy_recommender import StrategyRecommender
from strikewise.models import (
    MarketOutlook,
    OptionsChain,
    OptionStrategy,
    RecommendationReport,
    RiskTolerance,
)
from strikewise.utils.validators import validate_ticker

log = structlog.get_logger(__name__)


class MarketDataFeed(Protocol):
    """Batch snapshot source provided by the broker / market-data layer."""

    def get_spot_price(self, underlying: str) -> float:
        ...

    def get_option_quotes(
        self, underlying: str, expiry: Optional[date] = None,
    ) -> Iterable[Mapping[str, Any]]:
        ...


class OptionsAnalyticsService:
    """Chain analytics and strategy recommendations for one feed."""

    def __init__(
        self,
        feed: MarketDataFeed,
        settings: Optional[Settings] = None,
        cache: Optional[ChainCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings()
        self.feed = feed
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.cache = cache if cache is not None else ChainCache(
            ttl_seconds=self.settings.chain_cache_ttl_seconds,
            max_entries=self.settings.chain_cache_max_entries,
            clock=self._clock,
        )
        self.builder = ChainBuilder(
            risk_free_rate=self.settings.risk_free_rate,
            default_iv=self.settings.default_implied_volatility,
        )
        self.recommender = StrategyRecommender(
            catalog=StrategyCatalog(
                assumed_volatility=self.settings.assumed_volatility,
                payoff_range_pct=self.settings.payoff_range_pct,
                payoff_points=self.settings.payoff_points,
            ),
            quantity=self.settings.strategy_quantity,
        )

    # ──────────────────────────────────────────────
    # Chain
    # ──────────────────────────────────────────────

    def get_options_chain(
        self, underlying: str, expiry: Optional[date] = None,
    ) -> OptionsChain:
        """Enriched chain for *underlying*, optionally for one expiry only."""
        symbol = validate_ticker(underlying)
        cached = self.cache.get(symbol, expiry)
        if cached is not None:
            return cached

        spot = self.feed.get_spot_price(symbol)
        contracts = parse_contracts(self.feed.get_option_quotes(symbol, expiry), symbol)
        chain = self.builder.build(
            symbol, spot, contracts, as_of=self._clock(), expiry=expiry,
        )
        chain = ChainAnalytics.enrich(chain)
        self.cache.put(chain, expiry)

        log.info(
            "service.chain_refreshed",
            underlying=symbol,
            spot=spot,
            contracts=len(contracts),
            expiries=len(chain.expiries),
            max_pain=chain.max_pain,
        )
        return chain

    # ──────────────────────────────────────────────
    # Strategies
    # ──────────────────────────────────────────────

    def recommend(
        self,
        underlying: str,
        market_outlook: Union[MarketOutlook, str],
        risk_tolerance: Union[RiskTolerance, str],
    ) -> RecommendationReport:
        """Ranked strategies plus attempted/skipped bookkeeping."""
        chain = self.get_options_chain(underlying)
        return self.recommender.recommend(chain, market_outlook, risk_tolerance)

    def analyze_option_strategies(
        self,
        underlying: str,
        market_outlook: Union[MarketOutlook, str],
        risk_tolerance: Union[RiskTolerance, str],
    ) -> list[OptionStrategy]:
        """Strategies for the outlook, best first."""
        return self.recommend(underlying, market_outlook, risk_tolerance).strategies
