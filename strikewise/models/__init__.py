"""
Strikewise — Pydantic Models

All value types of the engine. The chain builder produces contracts and
chains, the analytics calculator enriches chains, the strategy catalog
produces strategies, and the service hands them back to callers.

Contracts, chains and strategies are frozen: once built they are read-only.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────

class OptionType(str, Enum):
    """Option right."""
    CALL = "CALL"
    PUT = "PUT"


class LegAction(str, Enum):
    """Direction of a strategy leg."""
    BUY = "BUY"
    SELL = "SELL"


class StrategyBias(str, Enum):
    """Directional bias of a strategy."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class Complexity(str, Enum):
    """Strategy complexity tier."""
    BASIC = "BASIC"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class MarketOutlook(str, Enum):
    """Caller's view on the underlying."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class RiskTolerance(str, Enum):
    """Caller's appetite for risk."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class PcrSentiment(str, Enum):
    """Sentiment label derived from the put/call ratio."""
    BULLISH = "bullish"
    SLIGHTLY_BULLISH = "slightly_bullish"
    NEUTRAL = "neutral"
    SLIGHTLY_BEARISH = "slightly_bearish"
    BEARISH = "bearish"


# ──────────────────────────────────────────────
# Contract Models
# ──────────────────────────────────────────────

class OptionGreeks(BaseModel):
    """First-order Greeks for a single contract. Zero means not computed."""
    model_config = ConfigDict(frozen=True)

    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0   # per calendar day
    vega: float = 0.0    # per 1% IV change
    rho: float = 0.0     # per 1% rate change


class OptionContract(BaseModel):
    """Single option contract from one snapshot."""
    model_config = ConfigDict(frozen=True)

    underlying: str
    contract_symbol: Optional[str] = None
    strike: float = Field(gt=0)
    expiry: date
    option_type: OptionType
    last_price: float = Field(default=0.0, ge=0)
    change: float = 0.0
    change_pct: float = 0.0
    bid: float = Field(default=0.0, ge=0)
    ask: float = Field(default=0.0, ge=0)
    bid_qty: int = Field(default=0, ge=0)
    ask_qty: int = Field(default=0, ge=0)
    volume: int = Field(default=0, ge=0)
    open_interest: int = Field(default=0, ge=0)
    implied_volatility: float = Field(default=0.0, ge=0)
    greeks: OptionGreeks = Field(default_factory=OptionGreeks)
    intrinsic_value: float = 0.0
    time_value: float = 0.0

    @property
    def is_call(self) -> bool:
        return self.option_type == OptionType.CALL

    @property
    def premium(self) -> float:
        """Premium used for strategy math: the last traded price."""
        return self.last_price

    def intrinsic_at(self, price: float) -> float:
        """Intrinsic value if the underlying settled at *price*."""
        if self.is_call:
            return max(0.0, price - self.strike)
        return max(0.0, self.strike - price)


# ──────────────────────────────────────────────
# Chain Models
# ──────────────────────────────────────────────

class SkewPoint(BaseModel):
    """One point of the volatility skew curve."""
    model_config = ConfigDict(frozen=True)

    strike: float
    call_iv: float
    put_iv: float
    skew: float  # put IV - call IV


class TermStructurePoint(BaseModel):
    """ATM implied volatility for one expiry."""
    model_config = ConfigDict(frozen=True)

    expiry: date
    atm_iv: float


class GreeksProfile(BaseModel):
    """Open-interest weighted Greeks summed across the chain."""
    model_config = ConfigDict(frozen=True)

    total_delta: float = 0.0
    total_gamma: float = 0.0
    total_theta: float = 0.0
    total_vega: float = 0.0


class SupportResistance(BaseModel):
    """Open-interest derived price levels."""
    model_config = ConfigDict(frozen=True)

    support: list[float] = []
    resistance: list[float] = []


ChainKey = tuple[float, date]


class OptionsChain(BaseModel):
    """Analytics surface for one underlying at one snapshot.

    ``calls`` and ``puts`` are independent maps keyed by ``(strike, expiry)``.
    Derived fields stay at their defaults until the analytics calculator
    returns an enriched copy.
    """
    model_config = ConfigDict(frozen=True)

    underlying: str
    underlying_price: float = Field(gt=0)
    as_of: datetime
    expiries: list[date] = []
    strikes: list[float] = []
    calls: dict[ChainKey, OptionContract] = {}
    puts: dict[ChainKey, OptionContract] = {}

    # ── Derived ──
    enriched: bool = False
    max_pain: Optional[float] = None
    max_pain_distance_pct: Optional[float] = None
    put_call_ratio: float = 0.0
    volume_put_call_ratio: float = 0.0
    pcr_sentiment: PcrSentiment = PcrSentiment.NEUTRAL
    atm_implied_volatility: float = 0.0
    volatility_skew: list[SkewPoint] = []
    term_structure: list[TermStructurePoint] = []
    greeks_profile: GreeksProfile = Field(default_factory=GreeksProfile)
    support_resistance: SupportResistance = Field(default_factory=SupportResistance)

    @property
    def nearest_expiry(self) -> Optional[date]:
        return self.expiries[0] if self.expiries else None

    def call(self, strike: float, expiry: date) -> Optional[OptionContract]:
        return self.calls.get((strike, expiry))

    def put(self, strike: float, expiry: date) -> Optional[OptionContract]:
        return self.puts.get((strike, expiry))

    def contract(
        self, option_type: OptionType, strike: float, expiry: date,
    ) -> Optional[OptionContract]:
        if option_type == OptionType.CALL:
            return self.call(strike, expiry)
        return self.put(strike, expiry)

    def contracts(self) -> Iterator[OptionContract]:
        """All contracts in (strike, expiry, CALL before PUT) order."""
        for strike in self.strikes:
            for expiry in self.expiries:
                key = (strike, expiry)
                if key in self.calls:
                    yield self.calls[key]
                if key in self.puts:
                    yield self.puts[key]

    def strikes_for(self, expiry: date) -> list[float]:
        """Sorted strikes that list at least one contract at *expiry*."""
        return [
            s for s in self.strikes
            if (s, expiry) in self.calls or (s, expiry) in self.puts
        ]


# ──────────────────────────────────────────────
# Strategy Models
# ──────────────────────────────────────────────

class StrategyLeg(BaseModel):
    """One constituent position of a strategy."""
    model_config = ConfigDict(frozen=True)

    action: LegAction
    contract: OptionContract
    quantity: int = Field(default=1, gt=0)

    def pnl_at(self, price: float) -> float:
        """Expiry P&L of this leg if the underlying settles at *price*."""
        intrinsic = self.contract.intrinsic_at(price)
        if self.action == LegAction.BUY:
            return (intrinsic - self.contract.premium) * self.quantity
        return (self.contract.premium - intrinsic) * self.quantity


class PayoffPoint(BaseModel):
    """P&L at expiry for one underlying price."""
    model_config = ConfigDict(frozen=True)

    underlying_price: float
    pnl: float


class OptionStrategy(BaseModel):
    """Fully evaluated multi-leg strategy.

    ``max_profit`` is ``math.inf`` when profit is unbounded. ``max_loss`` is
    always finite and non-negative. ``probability_of_profit`` is a lognormal
    approximation, not a guarantee.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    bias: StrategyBias
    complexity: Complexity
    underlying: str
    expiry: date
    legs: list[StrategyLeg] = Field(min_length=1)
    underlying_quantity: int = 0  # shares assumed held (covered positions)
    max_profit: float
    max_loss: float = Field(ge=0)
    breakevens: list[float] = Field(min_length=1)
    probability_of_profit: float = Field(ge=0, le=1)
    margin: float = Field(default=0.0, ge=0)
    collateral: float = Field(default=0.0, ge=0)
    risk_reward: float
    payoff_curve: list[PayoffPoint] = []

    @property
    def is_profit_unbounded(self) -> bool:
        return math.isinf(self.max_profit)

    @property
    def net_premium(self) -> float:
        """Premium received (positive) or paid (negative) across all legs."""
        total = 0.0
        for leg in self.legs:
            amount = leg.contract.premium * leg.quantity
            total += amount if leg.action == LegAction.SELL else -amount
        return total


class SkippedStrategy(BaseModel):
    """A strategy the recommender attempted but could not construct."""
    model_config = ConfigDict(frozen=True)

    name: str
    reason: str


class RecommendationReport(BaseModel):
    """Ranked strategies plus what was attempted and dropped."""
    model_config = ConfigDict(frozen=True)

    underlying: str
    outlook: MarketOutlook
    risk_tolerance: RiskTolerance
    strategies: list[OptionStrategy] = []
    attempted: int = 0
    skipped: list[SkippedStrategy] = []

    @property
    def returned(self) -> int:
        return len(self.strategies)
