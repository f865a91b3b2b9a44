"""
Strikewise — Configuration Management

Pydantic Settings: loads from environment / .env, validates at first use.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration loaded from ``STRIKEWISE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STRIKEWISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Pricing ──
    risk_free_rate: float = 0.06
    default_implied_volatility: float = Field(default=0.20, gt=0)

    # ── Strategy evaluation ──
    # Volatility used for probability-of-profit, not the contracts' own IV.
    assumed_volatility: float = Field(default=0.20, gt=0)
    payoff_range_pct: float = Field(default=0.40, gt=0, lt=1)
    payoff_points: int = Field(default=50, ge=2)
    strategy_quantity: int = Field(default=1, gt=0)

    # ── Chain cache ──
    chain_cache_ttl_seconds: int = Field(default=300, gt=0)  # feed refreshes every few minutes
    chain_cache_max_entries: int = Field(default=256, gt=0)


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first call."""
    return Settings()
