"""
Strikewise — Strategy Catalog

One constructor per strategy shape. Each takes an enriched chain plus the
strikes/expiry to use and returns a fully evaluated ``OptionStrategy``:
closed-form max profit/loss and breakevens, margin/collateral, risk-reward,
probability of profit and an expiry payoff curve.

All amounts are per unit of underlying, times quantity; premium is the
contract's last traded price. Constructors never substitute strikes: a
missing contract raises MissingContractError.

Probability of profit is a lognormal approximation driven by a single
*assumed* annual volatility (default 20%), not by each contract's own IV.
"""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Optional

import numpy as np
import structlog

from strikewise.config import get_settings
from strikewise.engines.pricing import normal_cdf, time_to_expiry_years
from strikewise.errors import (
    DegenerateStrategyError,
    InvalidInputError,
    MissingContractError,
)
from strikewise.models import (
    Complexity,
    LegAction,
    OptionContract,
    OptionsChain,
    OptionStrategy,
    OptionType,
    PayoffPoint,
    StrategyBias,
    StrategyLeg,
)

log = structlog.get_logger(__name__)

LONG_CALL = "Long Call"
LONG_PUT = "Long Put"
BULL_CALL_SPREAD = "Bull Call Spread"
BEAR_PUT_SPREAD = "Bear Put Spread"
CASH_SECURED_PUT = "Cash Secured Put"
COVERED_CALL = "Covered Call"
LONG_STRADDLE = "Long Straddle"
IRON_CONDOR = "Iron Condor"
CALL_BUTTERFLY = "Long Call Butterfly"


class ProfitRegion(str, Enum):
    """Where the underlying must settle, relative to the breakevens, to profit."""
    ABOVE = "above"
    BELOW = "below"
    BETWEEN = "between"
    OUTSIDE = "outside"


class StrategyCatalog:
    """Pure strategy constructors sharing payoff and probability settings."""

    def __init__(
        self,
        assumed_volatility: Optional[float] = None,
        payoff_range_pct: Optional[float] = None,
        payoff_points: Optional[int] = None,
    ):
        settings = get_settings()
        self.assumed_volatility = (
            settings.assumed_volatility if assumed_volatility is None else assumed_volatility
        )
        self.payoff_range_pct = (
            settings.payoff_range_pct if payoff_range_pct is None else payoff_range_pct
        )
        self.payoff_points = settings.payoff_points if payoff_points is None else payoff_points

        if not self.assumed_volatility > 0:
            raise InvalidInputError(
                f"Assumed volatility must be positive, got {self.assumed_volatility}"
            )
        if not 0 < self.payoff_range_pct < 1:
            raise InvalidInputError(
                f"Payoff range must be between 0 and 1, got {self.payoff_range_pct}"
            )
        if self.payoff_points < 2:
            raise InvalidInputError(
                f"Payoff curve needs at least 2 points, got {self.payoff_points}"
            )

    # ──────────────────────────────────────────────
    # Single-Leg
    # ──────────────────────────────────────────────

    def long_call(
        self, chain: OptionsChain, strike: float, expiry: date, quantity: int = 1,
    ) -> OptionStrategy:
        """Buy one call. Loss capped at the premium, profit unbounded."""
        _check_quantity(LONG_CALL, quantity)
        call = _require(chain, LONG_CALL, OptionType.CALL, strike, expiry)
        premium = call.premium
        if premium <= 0:
            raise DegenerateStrategyError(LONG_CALL, f"no premium quoted at {strike}")

        return self._assemble(
            chain,
            name=LONG_CALL,
            bias=StrategyBias.BULLISH,
            complexity=Complexity.BASIC,
            expiry=expiry,
            legs=[StrategyLeg(action=LegAction.BUY, contract=call, quantity=quantity)],
            max_profit=math.inf,
            max_loss=premium * quantity,
            breakevens=[strike + premium],
            region=ProfitRegion.ABOVE,
            margin=premium * quantity,
        )

    def long_put(
        self, chain: OptionsChain, strike: float, expiry: date, quantity: int = 1,
    ) -> OptionStrategy:
        """Buy one put. Profit capped at strike − premium (underlying floors at 0)."""
        _check_quantity(LONG_PUT, quantity)
        put = _require(chain, LONG_PUT, OptionType.PUT, strike, expiry)
        premium = put.premium
        if premium <= 0:
            raise DegenerateStrategyError(LONG_PUT, f"no premium quoted at {strike}")
        if premium >= strike:
            raise DegenerateStrategyError(LONG_PUT, "premium exceeds the maximum payoff")

        return self._assemble(
            chain,
            name=LONG_PUT,
            bias=StrategyBias.BEARISH,
            complexity=Complexity.BASIC,
            expiry=expiry,
            legs=[StrategyLeg(action=LegAction.BUY, contract=put, quantity=quantity)],
            max_profit=(strike - premium) * quantity,
            max_loss=premium * quantity,
            breakevens=[strike - premium],
            region=ProfitRegion.BELOW,
            margin=premium * quantity,
        )

    # ──────────────────────────────────────────────
    # Vertical Spreads
    # ──────────────────────────────────────────────

    def bull_call_spread(
        self,
        chain: OptionsChain,
        long_strike: float,
        short_strike: float,
        expiry: date,
        quantity: int = 1,
    ) -> OptionStrategy:
        """Buy the lower-strike call, sell the higher-strike call."""
        _check_quantity(BULL_CALL_SPREAD, quantity)
        if not long_strike < short_strike:
            raise InvalidInputError(
                f"{BULL_CALL_SPREAD}: long strike {long_strike} must be below "
                f"short strike {short_strike}"
            )
        long_call = _require(chain, BULL_CALL_SPREAD, OptionType.CALL, long_strike, expiry)
        short_call = _require(chain, BULL_CALL_SPREAD, OptionType.CALL, short_strike, expiry)

        debit = long_call.premium - short_call.premium
        width = short_strike - long_strike
        _check_debit(BULL_CALL_SPREAD, debit, width)

        return self._assemble(
            chain,
            name=BULL_CALL_SPREAD,
            bias=StrategyBias.BULLISH,
            complexity=Complexity.INTERMEDIATE,
            expiry=expiry,
            legs=[
                StrategyLeg(action=LegAction.BUY, contract=long_call, quantity=quantity),
                StrategyLeg(action=LegAction.SELL, contract=short_call, quantity=quantity),
            ],
            max_profit=(width - debit) * quantity,
            max_loss=debit * quantity,
            breakevens=[long_strike + debit],
            region=ProfitRegion.ABOVE,
            margin=debit * quantity,
        )

    def bear_put_spread(
        self,
        chain: OptionsChain,
        long_strike: float,
        short_strike: float,
        expiry: date,
        quantity: int = 1,
    ) -> OptionStrategy:
        """Buy the higher-strike put, sell the lower-strike put."""
        _check_quantity(BEAR_PUT_SPREAD, quantity)
        if not short_strike < long_strike:
            raise InvalidInputError(
                f"{BEAR_PUT_SPREAD}: short strike {short_strike} must be below "
                f"long strike {long_strike}"
            )
        long_put = _require(chain, BEAR_PUT_SPREAD, OptionType.PUT, long_strike, expiry)
        short_put = _require(chain, BEAR_PUT_SPREAD, OptionType.PUT, short_strike, expiry)

        debit = long_put.premium - short_put.premium
        width = long_strike - short_strike
        _check_debit(BEAR_PUT_SPREAD, debit, width)

        return self._assemble(
            chain,
            name=BEAR_PUT_SPREAD,
            bias=StrategyBias.BEARISH,
            complexity=Complexity.INTERMEDIATE,
            expiry=expiry,
            legs=[
                StrategyLeg(action=LegAction.BUY, contract=long_put, quantity=quantity),
                StrategyLeg(action=LegAction.SELL, contract=short_put, quantity=quantity),
            ],
            max_profit=(width - debit) * quantity,
            max_loss=debit * quantity,
            breakevens=[long_strike - debit],
            region=ProfitRegion.BELOW,
            margin=debit * quantity,
        )

    # ──────────────────────────────────────────────
    # Covered Positions
    # ──────────────────────────────────────────────

    def cash_secured_put(
        self, chain: OptionsChain, strike: float, expiry: date, quantity: int = 1,
    ) -> OptionStrategy:
        """Sell a put with cash set aside to buy the underlying at the strike."""
        _check_quantity(CASH_SECURED_PUT, quantity)
        put = _require(chain, CASH_SECURED_PUT, OptionType.PUT, strike, expiry)
        premium = put.premium
        if premium <= 0:
            raise DegenerateStrategyError(CASH_SECURED_PUT, f"no premium quoted at {strike}")

        collateral = strike * quantity
        return self._assemble(
            chain,
            name=CASH_SECURED_PUT,
            bias=StrategyBias.BULLISH,
            complexity=Complexity.INTERMEDIATE,
            expiry=expiry,
            legs=[StrategyLeg(action=LegAction.SELL, contract=put, quantity=quantity)],
            max_profit=premium * quantity,
            max_loss=(strike - premium) * quantity,
            breakevens=[strike - premium],
            region=ProfitRegion.ABOVE,
            margin=collateral,
            collateral=collateral,
        )

    def covered_call(
        self, chain: OptionsChain, strike: float, expiry: date, quantity: int = 1,
    ) -> OptionStrategy:
        """Sell a call against underlying assumed held at the current spot."""
        _check_quantity(COVERED_CALL, quantity)
        call = _require(chain, COVERED_CALL, OptionType.CALL, strike, expiry)
        premium = call.premium
        spot = chain.underlying_price
        if premium <= 0:
            raise DegenerateStrategyError(COVERED_CALL, f"no premium quoted at {strike}")
        if strike + premium <= spot:
            raise DegenerateStrategyError(
                COVERED_CALL, f"strike {strike} plus premium does not cover spot {spot}",
            )

        collateral = spot * quantity
        return self._assemble(
            chain,
            name=COVERED_CALL,
            bias=StrategyBias.BEARISH,
            complexity=Complexity.INTERMEDIATE,
            expiry=expiry,
            legs=[StrategyLeg(action=LegAction.SELL, contract=call, quantity=quantity)],
            underlying_quantity=quantity,
            max_profit=(strike - spot + premium) * quantity,
            max_loss=(spot - premium) * quantity,
            breakevens=[spot - premium],
            region=ProfitRegion.ABOVE,
            margin=collateral,
            collateral=collateral,
        )

    # ──────────────────────────────────────────────
    # Volatility / Range Strategies
    # ──────────────────────────────────────────────

    def straddle(
        self, chain: OptionsChain, strike: float, expiry: date, quantity: int = 1,
    ) -> OptionStrategy:
        """Buy a call and a put at the same strike."""
        _check_quantity(LONG_STRADDLE, quantity)
        call = _require(chain, LONG_STRADDLE, OptionType.CALL, strike, expiry)
        put = _require(chain, LONG_STRADDLE, OptionType.PUT, strike, expiry)
        debit = call.premium + put.premium
        if debit <= 0:
            raise DegenerateStrategyError(LONG_STRADDLE, f"no premium quoted at {strike}")

        return self._assemble(
            chain,
            name=LONG_STRADDLE,
            bias=StrategyBias.NEUTRAL,
            complexity=Complexity.INTERMEDIATE,
            expiry=expiry,
            legs=[
                StrategyLeg(action=LegAction.BUY, contract=call, quantity=quantity),
                StrategyLeg(action=LegAction.BUY, contract=put, quantity=quantity),
            ],
            max_profit=math.inf,
            max_loss=debit * quantity,
            breakevens=[strike - debit, strike + debit],
            region=ProfitRegion.OUTSIDE,
            margin=debit * quantity,
        )

    def iron_condor(
        self,
        chain: OptionsChain,
        long_put_strike: float,
        short_put_strike: float,
        short_call_strike: float,
        long_call_strike: float,
        expiry: date,
        quantity: int = 1,
    ) -> OptionStrategy:
        """Short put spread plus short call spread around the spot."""
        _check_quantity(IRON_CONDOR, quantity)
        if not long_put_strike < short_put_strike <= short_call_strike < long_call_strike:
            raise InvalidInputError(
                f"{IRON_CONDOR}: strikes must satisfy long put < short put <= "
                f"short call < long call, got {long_put_strike}, {short_put_strike}, "
                f"{short_call_strike}, {long_call_strike}"
            )
        long_put = _require(chain, IRON_CONDOR, OptionType.PUT, long_put_strike, expiry)
        short_put = _require(chain, IRON_CONDOR, OptionType.PUT, short_put_strike, expiry)
        short_call = _require(chain, IRON_CONDOR, OptionType.CALL, short_call_strike, expiry)
        long_call = _require(chain, IRON_CONDOR, OptionType.CALL, long_call_strike, expiry)

        credit = (
            short_put.premium - long_put.premium
            + short_call.premium - long_call.premium
        )
        if credit <= 0:
            raise DegenerateStrategyError(IRON_CONDOR, f"net credit {credit:.4f} is not positive")

        wing = max(short_put_strike - long_put_strike, long_call_strike - short_call_strike)
        max_loss = (wing - credit) * quantity
        return self._assemble(
            chain,
            name=IRON_CONDOR,
            bias=StrategyBias.NEUTRAL,
            complexity=Complexity.ADVANCED,
            expiry=expiry,
            legs=[
                StrategyLeg(action=LegAction.BUY, contract=long_put, quantity=quantity),
                StrategyLeg(action=LegAction.SELL, contract=short_put, quantity=quantity),
                StrategyLeg(action=LegAction.SELL, contract=short_call, quantity=quantity),
                StrategyLeg(action=LegAction.BUY, contract=long_call, quantity=quantity),
            ],
            max_profit=credit * quantity,
            max_loss=max_loss,
            breakevens=[short_put_strike - credit, short_call_strike + credit],
            region=ProfitRegion.BETWEEN,
            margin=max(0.0, max_loss),
        )

    def butterfly(
        self,
        chain: OptionsChain,
        lower_strike: float,
        middle_strike: float,
        upper_strike: float,
        expiry: date,
        quantity: int = 1,
    ) -> OptionStrategy:
        """Buy lower and upper calls, sell two middle calls."""
        _check_quantity(CALL_BUTTERFLY, quantity)
        if not lower_strike < middle_strike < upper_strike:
            raise InvalidInputError(
                f"{CALL_BUTTERFLY}: strikes must be strictly ascending, got "
                f"{lower_strike}, {middle_strike}, {upper_strike}"
            )
        lower = _require(chain, CALL_BUTTERFLY, OptionType.CALL, lower_strike, expiry)
        middle = _require(chain, CALL_BUTTERFLY, OptionType.CALL, middle_strike, expiry)
        upper = _require(chain, CALL_BUTTERFLY, OptionType.CALL, upper_strike, expiry)

        debit = lower.premium - 2 * middle.premium + upper.premium
        lower_width = middle_strike - lower_strike
        _check_debit(CALL_BUTTERFLY, debit, lower_width)

        # Payoff beyond the upper wing: flat at 2·K2 − K1 − K3 − debit
        upper_tail = 2 * middle_strike - lower_strike - upper_strike - debit
        breakevens = [lower_strike + debit]
        if upper_tail < 0:
            breakevens.append(2 * middle_strike - lower_strike - debit)
            region = ProfitRegion.BETWEEN
        else:
            region = ProfitRegion.ABOVE

        return self._assemble(
            chain,
            name=CALL_BUTTERFLY,
            bias=StrategyBias.NEUTRAL,
            complexity=Complexity.ADVANCED,
            expiry=expiry,
            legs=[
                StrategyLeg(action=LegAction.BUY, contract=lower, quantity=quantity),
                StrategyLeg(action=LegAction.SELL, contract=middle, quantity=2 * quantity),
                StrategyLeg(action=LegAction.BUY, contract=upper, quantity=quantity),
            ],
            max_profit=(lower_width - debit) * quantity,
            max_loss=max(debit, -upper_tail) * quantity,
            breakevens=breakevens,
            region=region,
            margin=debit * quantity,
        )

    # ──────────────────────────────────────────────
    # Evaluation
    # ──────────────────────────────────────────────

    def payoff_curve(
        self,
        legs: list[StrategyLeg],
        underlying_price: float,
        underlying_quantity: int = 0,
    ) -> list[PayoffPoint]:
        """Expiry P&L over spot ± payoff_range_pct, evenly sampled."""
        lo = underlying_price * (1 - self.payoff_range_pct)
        hi = underlying_price * (1 + self.payoff_range_pct)
        curve = []
        for price in np.linspace(lo, hi, self.payoff_points):
            price = float(price)
            pnl = sum(leg.pnl_at(price) for leg in legs)
            pnl += (price - underlying_price) * underlying_quantity
            curve.append(PayoffPoint(underlying_price=price, pnl=pnl))
        return curve

    def probability_of_profit(
        self,
        spot: float,
        breakevens: list[float],
        region: ProfitRegion,
        time_to_expiry: float,
    ) -> float:
        """Lognormal estimate of settling in the profit region.

        z = ln(B / S) / (σ √T) per breakeven B, σ the assumed volatility.
        An approximation only: no drift, one volatility for every strike.
        """
        scale = self.assumed_volatility * math.sqrt(time_to_expiry)

        def below(level: float) -> float:
            if level <= 0:
                return 0.0
            return normal_cdf(math.log(level / spot) / scale)

        if region == ProfitRegion.ABOVE:
            return 1.0 - below(breakevens[0])
        if region == ProfitRegion.BELOW:
            return below(breakevens[-1])
        inside = below(breakevens[-1]) - below(breakevens[0])
        if region == ProfitRegion.BETWEEN:
            return max(0.0, inside)
        return min(1.0, max(0.0, 1.0 - inside))

    def _assemble(
        self,
        chain: OptionsChain,
        *,
        name: str,
        bias: StrategyBias,
        complexity: Complexity,
        expiry: date,
        legs: list[StrategyLeg],
        max_profit: float,
        max_loss: float,
        breakevens: list[float],
        region: ProfitRegion,
        margin: float,
        collateral: float = 0.0,
        underlying_quantity: int = 0,
    ) -> OptionStrategy:
        if max_loss < 0:
            raise DegenerateStrategyError(name, f"negative max loss {max_loss:.4f}")
        if max_profit <= 0:
            raise DegenerateStrategyError(name, f"max profit {max_profit:.4f} is not positive")

        if math.isinf(max_profit) or max_loss == 0:
            risk_reward = math.inf
        else:
            risk_reward = max_profit / max_loss

        spot = chain.underlying_price
        breakevens = sorted(breakevens)
        pop = self.probability_of_profit(
            spot, breakevens, region, time_to_expiry_years(expiry, chain.as_of),
        )
        log.debug(
            "strategy_catalog.built",
            underlying=chain.underlying,
            strategy=name,
            max_loss=round(max_loss, 4),
            breakevens=[round(b, 4) for b in breakevens],
            pop=round(pop, 4),
        )

        return OptionStrategy(
            name=name,
            bias=bias,
            complexity=complexity,
            underlying=chain.underlying,
            expiry=expiry,
            legs=legs,
            underlying_quantity=underlying_quantity,
            max_profit=max_profit,
            max_loss=max_loss,
            breakevens=breakevens,
            probability_of_profit=pop,
            margin=margin,
            collateral=collateral,
            risk_reward=risk_reward,
            payoff_curve=self.payoff_curve(legs, spot, underlying_quantity),
        )


# ── Helpers ──────────────────────────────────────


def _require(
    chain: OptionsChain,
    strategy: str,
    option_type: OptionType,
    strike: float,
    expiry: date,
) -> OptionContract:
    """Look up a leg's contract or fail; never substitutes a nearby strike."""
    contract = chain.contract(option_type, strike, expiry)
    if contract is None:
        raise MissingContractError(
            strategy,
            f"no {option_type.value} at strike {strike} expiring {expiry.isoformat()}",
        )
    return contract


def _check_quantity(strategy: str, quantity: int) -> None:
    if quantity <= 0:
        raise InvalidInputError(f"{strategy}: quantity must be positive, got {quantity}")


def _check_debit(strategy: str, debit: float, width: float) -> None:
    """A debit structure must cost something and pay more than it costs."""
    if debit <= 0:
        raise DegenerateStrategyError(strategy, f"net debit {debit:.4f} is not positive")
    if debit >= width:
        raise DegenerateStrategyError(
            strategy, f"net debit {debit:.4f} is not below strike width {width}",
        )
