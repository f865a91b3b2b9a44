"""
Strikewise — Strategy Catalog Tests

Closed-form max profit/loss and breakevens for each strategy shape,
probability of profit, payoff curves and construction failures.
"""

import math

import pytest
from pydantic import ValidationError

from strikewise.engines.chain_analytics import ChainAnalytics
from strikewise.engines.pricing import normal_cdf
from strikewise.engines.strategy_catalog import ProfitRegion, StrategyCatalog
from strikewise.errors import (
    DegenerateStrategyError,
    InvalidInputError,
    MissingContractError,
    StrategyConstructionError,
)
from strikewise.models import Complexity, LegAction, OptionType, StrategyBias
from tests.factories import AS_OF, EXPIRY, make_contract

CALL_PRICES = {90: 11.0, 95: 7.0, 100: 4.0, 105: 2.0, 110: 1.0}
PUT_PRICES = {90: 1.0, 95: 2.0, 100: 4.0, 105: 7.0, 110: 11.0}


@pytest.fixture
def quoted(builder):
    """Round-number premiums around spot 100 so every closed form is checkable."""
    contracts = [
        make_contract(k, OptionType.CALL, last_price=p, open_interest=100)
        for k, p in CALL_PRICES.items()
    ] + [
        make_contract(k, OptionType.PUT, last_price=p, open_interest=100)
        for k, p in PUT_PRICES.items()
    ]
    return ChainAnalytics.enrich(builder.build("XYZ", 100.0, contracts, as_of=AS_OF))


def _pnl_at(strategy, price: float, spot: float = 100.0) -> float:
    pnl = sum(leg.pnl_at(price) for leg in strategy.legs)
    return pnl + (price - spot) * strategy.underlying_quantity


def _assert_breakevens_flat(strategy):
    for be in strategy.breakevens:
        assert _pnl_at(strategy, be) == pytest.approx(0.0, abs=1e-9)


# ═══════════════════════════════════════════════
#  SINGLE-LEG
# ═══════════════════════════════════════════════

class TestSingleLeg:

    def test_long_call(self, catalog, quoted):
        s = catalog.long_call(quoted, 100, EXPIRY)
        assert s.name == "Long Call"
        assert s.bias == StrategyBias.BULLISH
        assert s.complexity == Complexity.BASIC
        assert s.max_loss == 4.0
        assert math.isinf(s.max_profit)
        assert s.is_profit_unbounded
        assert s.breakevens == [104.0]
        assert math.isinf(s.risk_reward)
        assert s.margin == 4.0
        assert s.net_premium == -4.0
        _assert_breakevens_flat(s)

    def test_long_call_payoff_curve(self, catalog, quoted):
        s = catalog.long_call(quoted, 100, EXPIRY)
        curve = s.payoff_curve
        assert len(curve) == 50
        assert curve[0].underlying_price == pytest.approx(60.0)
        assert curve[-1].underlying_price == pytest.approx(140.0)
        assert curve[0].pnl == pytest.approx(-4.0)
        assert curve[-1].pnl == pytest.approx(36.0)
        prices = [p.underlying_price for p in curve]
        assert prices == sorted(prices)
        # Sampled P&L crosses zero within one grid step of the breakeven
        step = 80.0 / 49
        crossing = next(p.underlying_price for p in curve if p.pnl > 0)
        assert abs(crossing - 104.0) <= step

    def test_long_put(self, catalog, quoted):
        s = catalog.long_put(quoted, 100, EXPIRY)
        assert s.bias == StrategyBias.BEARISH
        assert s.max_profit == 96.0
        assert s.max_loss == 4.0
        assert s.breakevens == [96.0]
        assert s.risk_reward == pytest.approx(24.0)
        _assert_breakevens_flat(s)

    def test_quantity_scales(self, catalog, quoted):
        one = catalog.long_put(quoted, 100, EXPIRY, 1)
        three = catalog.long_put(quoted, 100, EXPIRY, 3)
        assert three.max_loss == pytest.approx(3 * one.max_loss)
        assert three.max_profit == pytest.approx(3 * one.max_profit)
        assert three.breakevens == one.breakevens
        assert three.legs[0].quantity == 3
        assert three.risk_reward == pytest.approx(one.risk_reward)


# ═══════════════════════════════════════════════
#  VERTICAL SPREADS
# ═══════════════════════════════════════════════

class TestVerticalSpreads:

    def test_bull_call_spread(self, catalog, quoted):
        s = catalog.bull_call_spread(quoted, 95, 105, EXPIRY)
        # Debit 7 − 2 = 5 on a 10-wide spread
        assert s.max_loss == 5.0
        assert s.max_profit == 5.0
        assert s.breakevens == [100.0]
        assert s.risk_reward == pytest.approx(1.0)
        assert [leg.action for leg in s.legs] == [LegAction.BUY, LegAction.SELL]
        assert s.net_premium == -5.0
        _assert_breakevens_flat(s)

    def test_bull_call_spread_curve_matches_closed_form(self, catalog, quoted):
        s = catalog.bull_call_spread(quoted, 95, 105, EXPIRY)
        pnls = [p.pnl for p in s.payoff_curve]
        assert min(pnls) == pytest.approx(-s.max_loss)
        assert max(pnls) == pytest.approx(s.max_profit)

    def test_bear_put_spread(self, catalog, quoted):
        s = catalog.bear_put_spread(quoted, 105, 95, EXPIRY)
        assert s.bias == StrategyBias.BEARISH
        assert s.max_loss == 5.0
        assert s.max_profit == 5.0
        assert s.breakevens == [100.0]
        assert s.legs[0].contract.strike == 105.0
        assert s.legs[0].action == LegAction.BUY
        _assert_breakevens_flat(s)

    def test_strike_order_enforced(self, catalog, quoted):
        with pytest.raises(InvalidInputError):
            catalog.bull_call_spread(quoted, 105, 95, EXPIRY)
        with pytest.raises(InvalidInputError):
            catalog.bear_put_spread(quoted, 95, 105, EXPIRY)
        with pytest.raises(InvalidInputError):
            catalog.bull_call_spread(quoted, 100, 100, EXPIRY)

    def test_credit_spread_quotes_degenerate(self, catalog, builder):
        chain = builder.build("XYZ", 100.0, [
            make_contract(95, OptionType.CALL, last_price=2.0),
            make_contract(105, OptionType.CALL, last_price=3.0),
        ], as_of=AS_OF)
        with pytest.raises(DegenerateStrategyError):
            catalog.bull_call_spread(chain, 95, 105, EXPIRY)

    def test_debit_at_width_degenerate(self, catalog, builder):
        chain = builder.build("XYZ", 100.0, [
            make_contract(95, OptionType.CALL, last_price=12.0),
            make_contract(105, OptionType.CALL, last_price=1.0),
        ], as_of=AS_OF)
        with pytest.raises(DegenerateStrategyError):
            catalog.bull_call_spread(chain, 95, 105, EXPIRY)


# ═══════════════════════════════════════════════
#  COVERED POSITIONS
# ═══════════════════════════════════════════════

class TestCoveredPositions:

    def test_cash_secured_put(self, catalog, quoted):
        s = catalog.cash_secured_put(quoted, 95, EXPIRY)
        assert s.bias == StrategyBias.BULLISH
        assert s.max_profit == 2.0
        assert s.max_loss == 93.0
        assert s.breakevens == [93.0]
        assert s.collateral == 95.0
        assert s.margin == 95.0
        assert s.net_premium == 2.0
        assert s.legs[0].action == LegAction.SELL
        _assert_breakevens_flat(s)

    def test_covered_call(self, catalog, quoted):
        s = catalog.covered_call(quoted, 105, EXPIRY)
        assert s.underlying_quantity == 1
        assert s.max_profit == 7.0
        assert s.max_loss == 98.0
        assert s.breakevens == [98.0]
        assert s.collateral == 100.0
        _assert_breakevens_flat(s)
        # Capped above the strike, including the shares' gain
        assert s.payoff_curve[-1].pnl == pytest.approx(7.0)

    def test_covered_call_below_spot_degenerate(self, catalog, builder):
        chain = builder.build("XYZ", 100.0, [
            make_contract(95, OptionType.CALL, last_price=3.0),
        ], as_of=AS_OF)
        with pytest.raises(DegenerateStrategyError):
            catalog.covered_call(chain, 95, EXPIRY)


# ═══════════════════════════════════════════════
#  VOLATILITY / RANGE
# ═══════════════════════════════════════════════

class TestRangeStrategies:

    def test_straddle(self, catalog, quoted):
        s = catalog.straddle(quoted, 100, EXPIRY)
        assert s.bias == StrategyBias.NEUTRAL
        assert s.max_loss == 8.0
        assert math.isinf(s.max_profit)
        assert s.breakevens == [92.0, 108.0]
        _assert_breakevens_flat(s)

    def test_iron_condor(self, catalog, quoted):
        s = catalog.iron_condor(quoted, 90, 95, 105, 110, EXPIRY)
        # Credit (2 − 1) + (2 − 1) = 2 on 5-wide wings
        assert s.complexity == Complexity.ADVANCED
        assert s.max_profit == 2.0
        assert s.max_loss == 3.0
        assert s.breakevens == [93.0, 107.0]
        assert s.risk_reward == pytest.approx(2 / 3)
        assert s.margin == 3.0
        assert len(s.legs) == 4
        _assert_breakevens_flat(s)
        pnls = [p.pnl for p in s.payoff_curve]
        assert min(pnls) == pytest.approx(-3.0)
        assert max(pnls) == pytest.approx(2.0)

    def test_iron_condor_strike_order(self, catalog, quoted):
        with pytest.raises(InvalidInputError):
            catalog.iron_condor(quoted, 95, 90, 105, 110, EXPIRY)

    def test_butterfly(self, catalog, quoted):
        s = catalog.butterfly(quoted, 95, 100, 105, EXPIRY)
        # Debit 7 − 2·4 + 2 = 1
        assert s.max_loss == 1.0
        assert s.max_profit == 4.0
        assert s.breakevens == [96.0, 104.0]
        assert s.legs[1].quantity == 2
        assert s.legs[1].action == LegAction.SELL
        _assert_breakevens_flat(s)

    def test_butterfly_quantity(self, catalog, quoted):
        s = catalog.butterfly(quoted, 95, 100, 105, EXPIRY, 2)
        assert [leg.quantity for leg in s.legs] == [2, 4, 2]
        assert s.max_loss == 2.0

    def test_butterfly_strike_order(self, catalog, quoted):
        with pytest.raises(InvalidInputError):
            catalog.butterfly(quoted, 100, 95, 105, EXPIRY)


# ═══════════════════════════════════════════════
#  PROBABILITY OF PROFIT
# ═══════════════════════════════════════════════

class TestProbabilityOfProfit:

    def test_breakeven_at_spot(self, catalog):
        assert catalog.probability_of_profit(100, [100], ProfitRegion.ABOVE, 1.0) == pytest.approx(0.5, abs=1e-6)
        assert catalog.probability_of_profit(100, [100], ProfitRegion.BELOW, 1.0) == pytest.approx(0.5, abs=1e-6)

    def test_between_and_outside_complement(self, catalog):
        inside = catalog.probability_of_profit(100, [90, 110], ProfitRegion.BETWEEN, 0.25)
        outside = catalog.probability_of_profit(100, [90, 110], ProfitRegion.OUTSIDE, 0.25)
        assert inside + outside == pytest.approx(1.0)
        assert 0 < inside < 1

    def test_non_positive_breakeven(self, catalog):
        assert catalog.probability_of_profit(100, [-2.0], ProfitRegion.BELOW, 1.0) == 0.0
        assert catalog.probability_of_profit(100, [0.0], ProfitRegion.ABOVE, 1.0) == 1.0

    def test_long_call_uses_assumed_volatility(self, catalog, quoted):
        s = catalog.long_call(quoted, 100, EXPIRY)
        z = math.log(104.0 / 100.0) / (0.20 * math.sqrt(30 / 365))
        assert s.probability_of_profit == pytest.approx(1 - normal_cdf(z))

    def test_assumed_volatility_configurable(self, quoted):
        narrow = StrategyCatalog(assumed_volatility=0.10).iron_condor(quoted, 90, 95, 105, 110, EXPIRY)
        wide = StrategyCatalog(assumed_volatility=0.60).iron_condor(quoted, 90, 95, 105, 110, EXPIRY)
        assert narrow.probability_of_profit > wide.probability_of_profit

    def test_all_in_unit_interval(self, catalog, chain):
        strategies = [
            catalog.long_call(chain, 100, EXPIRY),
            catalog.long_put(chain, 100, EXPIRY),
            catalog.straddle(chain, 100, EXPIRY),
            catalog.iron_condor(chain, 90, 95, 105, 110, EXPIRY),
            catalog.butterfly(chain, 95, 100, 105, EXPIRY),
        ]
        for s in strategies:
            assert 0.0 <= s.probability_of_profit <= 1.0
            assert s.max_loss >= 0


# ═══════════════════════════════════════════════
#  CONSTRUCTION FAILURES
# ═══════════════════════════════════════════════

class TestConstructionFailures:

    def test_missing_contract(self, catalog, quoted):
        with pytest.raises(MissingContractError) as exc_info:
            catalog.long_call(quoted, 97, EXPIRY)
        assert exc_info.value.strategy == "Long Call"
        assert "97" in exc_info.value.message

    def test_missing_leg_never_substituted(self, catalog, builder):
        chain = builder.build("XYZ", 100.0, [
            make_contract(100, OptionType.CALL, last_price=4.0),
        ], as_of=AS_OF)
        with pytest.raises(MissingContractError):
            catalog.straddle(chain, 100, EXPIRY)

    def test_missing_is_construction_error(self, catalog, quoted):
        with pytest.raises(StrategyConstructionError):
            catalog.iron_condor(quoted, 85, 95, 105, 110, EXPIRY)

    def test_zero_premium(self, catalog, builder):
        chain = builder.build("XYZ", 100.0, [
            make_contract(100, OptionType.CALL, last_price=0.0),
        ], as_of=AS_OF)
        with pytest.raises(DegenerateStrategyError):
            catalog.long_call(chain, 100, EXPIRY)

    @pytest.mark.parametrize("qty", [0, -1])
    def test_bad_quantity(self, catalog, quoted, qty):
        with pytest.raises(InvalidInputError):
            catalog.long_call(quoted, 100, EXPIRY, qty)


# ═══════════════════════════════════════════════
#  VALUE SEMANTICS
# ═══════════════════════════════════════════════

class TestValueSemantics:

    def test_deterministic(self, catalog, chain):
        a = catalog.iron_condor(chain, 90, 95, 105, 110, EXPIRY)
        b = catalog.iron_condor(chain, 90, 95, 105, 110, EXPIRY)
        assert a == b

    def test_strategy_is_frozen(self, catalog, quoted):
        s = catalog.long_call(quoted, 100, EXPIRY)
        with pytest.raises(ValidationError):
            s.max_loss = 0.0

    def test_breakevens_sorted(self, catalog, chain):
        s = catalog.straddle(chain, 100, EXPIRY)
        assert s.breakevens == sorted(s.breakevens)
        assert s.underlying == "XYZ"
        assert s.expiry == EXPIRY


# ═══════════════════════════════════════════════
#  CONFIGURATION
# ═══════════════════════════════════════════════

class TestCatalogConfiguration:

    @pytest.mark.parametrize("kwargs", [
        {"assumed_volatility": 0.0},
        {"assumed_volatility": -0.2},
        {"payoff_range_pct": 0.0},
        {"payoff_range_pct": 1.0},
        {"payoff_range_pct": 1.5},
        {"payoff_points": 1},
        {"payoff_points": 0},
    ])
    def test_rejects_out_of_range(self, kwargs):
        with pytest.raises(InvalidInputError):
            StrategyCatalog(**kwargs)

    def test_explicit_values_kept(self):
        catalog = StrategyCatalog(assumed_volatility=0.35, payoff_range_pct=0.1, payoff_points=2)
        assert catalog.assumed_volatility == 0.35
        assert catalog.payoff_range_pct == 0.1
        assert catalog.payoff_points == 2

    def test_defaults_from_settings(self):
        catalog = StrategyCatalog()
        assert catalog.assumed_volatility == 0.20
        assert catalog.payoff_range_pct == 0.40
        assert catalog.payoff_points == 50
