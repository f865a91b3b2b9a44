"""Shared fixtures for the engine tests."""

from __future__ import annotations

import pytest

from strikewise.engines.chain_analytics import ChainAnalytics
from strikewise.engines.chain_builder import ChainBuilder
from strikewise.engines.strategy_catalog import StrategyCatalog
from strikewise.models import OptionsChain
from tests.factories import AS_OF, FAR_EXPIRY, RATE, SPOT, FakeFeed, priced_contracts, xyz_quotes


@pytest.fixture
def builder() -> ChainBuilder:
    return ChainBuilder(risk_free_rate=RATE, default_iv=0.20)


@pytest.fixture
def catalog() -> StrategyCatalog:
    return StrategyCatalog(assumed_volatility=0.20, payoff_range_pct=0.40, payoff_points=50)


@pytest.fixture
def chain(builder: ChainBuilder) -> OptionsChain:
    """Enriched five-strike XYZ chain, one expiry, spot 100."""
    raw = builder.build("XYZ", SPOT, priced_contracts(), as_of=AS_OF)
    return ChainAnalytics.enrich(raw)


@pytest.fixture
def two_expiry_chain(builder: ChainBuilder) -> OptionsChain:
    contracts = priced_contracts() + priced_contracts(expiry=FAR_EXPIRY, sigma=0.30)
    return ChainAnalytics.enrich(builder.build("XYZ", SPOT, contracts, as_of=AS_OF))


@pytest.fixture
def xyz_feed() -> FakeFeed:
    return FakeFeed(spot=100.0, quotes=xyz_quotes())
