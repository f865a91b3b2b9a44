"""
Strikewise — Options Chain Analytics Engine

Builds an analytics surface from an option-chain snapshot (Greeks, max pain,
put/call ratio, IV skew, OI support/resistance) and ranks multi-leg
strategies against a market outlook and risk tolerance.
"""

from strikewise.errors import (
    DegenerateStrategyError,
    InvalidInputError,
    MissingContractError,
    StrategyConstructionError,
    StrikewiseError,
)
from strikewise.models import (
    MarketOutlook,
    OptionContract,
    OptionsChain,
    OptionStrategy,
    OptionType,
    RecommendationReport,
    RiskTolerance,
)
from strikewise.service import MarketDataFeed, OptionsAnalyticsService

__version__ = "0.1.0"

__all__ = [
    "DegenerateStrategyError",
    "InvalidInputError",
    "MarketDataFeed",
    "MarketOutlook",
    "MissingContractError",
    "OptionContract",
    "OptionsAnalyticsService",
    "OptionsChain",
    "OptionStrategy",
    "OptionType",
    "RecommendationReport",
    "RiskTolerance",
    "StrategyConstructionError",
    "StrikewiseError",
]
