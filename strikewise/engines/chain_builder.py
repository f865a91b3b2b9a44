"""
Strikewise — Options Chain Builder

Turns a batch snapshot from the market-data feed into an ``OptionsChain``:

  1. ``parse_contract``: the one boundary where loosely typed feed records
     become validated, immutable ``OptionContract`` values.
  2. ``ChainBuilder.build``: drops expired contracts, attaches Greeks and
     intrinsic/time value, and indexes calls and puts by (strike, expiry).

Expiry policy: a contract whose expiry date is before the snapshot date is
dropped without error (the feed should already exclude them). Contracts
expiring on the snapshot date are kept and priced with one day to expiry.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, Optional

import structlog
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from strikewise.config import get_settings
from strikewise.engines.pricing import black_scholes_greeks, time_to_expiry_years
from strikewise.errors import InvalidInputError
from strikewise.models import OptionContract, OptionGreeks, OptionsChain, OptionType
from strikewise.utils.validators import validate_positive, validate_ticker

log = structlog.get_logger(__name__)


# ──────────────────────────────────────────────
# Feed Boundary
# ──────────────────────────────────────────────

class _FeedQuote(BaseModel):
    """Shape of one raw feed record; accepts snake_case and the feed's camelCase."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    underlying: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("underlying", "symbol", "ticker"),
    )
    contract_symbol: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("contract_symbol", "contractSymbol"),
    )
    strike: float = Field(gt=0)
    expiry: date = Field(validation_alias=AliasChoices("expiry", "expiration", "expiryDate"))
    option_type: str = Field(validation_alias=AliasChoices("option_type", "type", "optionType"))
    last_price: float = Field(
        default=0.0, ge=0, validation_alias=AliasChoices("last_price", "ltp", "lastPrice"),
    )
    change: float = 0.0
    change_pct: float = Field(
        default=0.0, validation_alias=AliasChoices("change_pct", "changePercent"),
    )
    bid: float = Field(default=0.0, ge=0)
    ask: float = Field(default=0.0, ge=0)
    bid_qty: int = Field(default=0, ge=0, validation_alias=AliasChoices("bid_qty", "bidQty"))
    ask_qty: int = Field(default=0, ge=0, validation_alias=AliasChoices("ask_qty", "askQty"))
    volume: int = Field(default=0, ge=0)
    open_interest: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("open_interest", "openInterest"),
    )
    implied_volatility: Optional[float] = Field(
        default=None, ge=0,
        validation_alias=AliasChoices("implied_volatility", "impliedVolatility", "iv"),
    )
    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    rho: float = 0.0

    @field_validator("expiry", mode="before")
    @classmethod
    def _expiry_to_date(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        return value


def _normalize_type(raw: str) -> OptionType:
    value = raw.strip().upper()
    if value in ("CALL", "C", "CE"):
        return OptionType.CALL
    if value in ("PUT", "P", "PE"):
        return OptionType.PUT
    raise InvalidInputError(f"Unknown option type '{raw}'")


def parse_contract(raw: Mapping[str, Any], underlying: Optional[str] = None) -> OptionContract:
    """Validate one feed record into an ``OptionContract``.

    *underlying* fills in the symbol when the record omits it. Malformed
    records raise InvalidInputError with the offending fields.
    """
    try:
        quote = _FeedQuote.model_validate(raw)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err.get("loc", ())) or "record"
            for err in exc.errors()
        )
        raise InvalidInputError(f"Malformed contract record ({fields}): {exc}") from exc

    symbol = quote.underlying or underlying
    if not symbol:
        raise InvalidInputError("Contract record has no underlying symbol")

    return OptionContract(
        underlying=validate_ticker(symbol),
        contract_symbol=quote.contract_symbol,
        strike=quote.strike,
        expiry=quote.expiry,
        option_type=_normalize_type(quote.option_type),
        last_price=quote.last_price,
        change=quote.change,
        change_pct=quote.change_pct,
        bid=quote.bid,
        ask=quote.ask,
        bid_qty=quote.bid_qty,
        ask_qty=quote.ask_qty,
        volume=quote.volume,
        open_interest=quote.open_interest,
        implied_volatility=quote.implied_volatility or 0.0,
        greeks=OptionGreeks(
            delta=quote.delta, gamma=quote.gamma, theta=quote.theta,
            vega=quote.vega, rho=quote.rho,
        ),
    )


def parse_contracts(
    records: Iterable[Mapping[str, Any]], underlying: Optional[str] = None,
) -> list[OptionContract]:
    """Parse a whole feed batch; the first malformed record aborts the batch."""
    return [parse_contract(raw, underlying) for raw in records]


# ──────────────────────────────────────────────
# Chain Builder
# ──────────────────────────────────────────────

class ChainBuilder:
    """Assembles contracts for one underlying into an indexed chain."""

    def __init__(
        self,
        risk_free_rate: Optional[float] = None,
        default_iv: Optional[float] = None,
    ):
        settings = get_settings()
        self.risk_free_rate = (
            settings.risk_free_rate if risk_free_rate is None else risk_free_rate
        )
        self.default_iv = (
            settings.default_implied_volatility if default_iv is None else default_iv
        )
        if not self.default_iv > 0:
            raise InvalidInputError(f"Default IV must be positive, got {self.default_iv}")

    def build(
        self,
        underlying: str,
        spot: float,
        contracts: Iterable[OptionContract],
        *,
        as_of: Optional[datetime] = None,
        expiry: Optional[date] = None,
    ) -> OptionsChain:
        """Build a chain from validated contracts.

        Args:
            underlying: Symbol every contract must belong to.
            spot: Current underlying price (must be > 0).
            contracts: Contracts from one snapshot; Greeks may be missing.
            as_of: Snapshot time (defaults to now, UTC).
            expiry: If given, keep only contracts expiring on this date.

        Raises:
            InvalidInputError: non-positive spot or a contract for another
                underlying.
        """
        symbol = validate_ticker(underlying)
        spot = validate_positive("Spot price", spot)
        as_of = as_of or datetime.now(timezone.utc)
        today = as_of.date()

        calls: dict[tuple[float, date], OptionContract] = {}
        puts: dict[tuple[float, date], OptionContract] = {}
        expired = 0
        filtered = 0
        backfilled = 0

        for contract in contracts:
            if contract.underlying.upper() != symbol:
                raise InvalidInputError(
                    f"Contract {contract.contract_symbol or contract.strike} belongs to "
                    f"'{contract.underlying}', expected '{symbol}'"
                )
            if contract.expiry < today:
                expired += 1
                continue
            if expiry is not None and contract.expiry != expiry:
                filtered += 1
                continue

            book = calls if contract.option_type == OptionType.CALL else puts
            key = (contract.strike, contract.expiry)
            if key in book:
                log.warning(
                    "chain_builder.duplicate_contract",
                    underlying=symbol,
                    option_type=contract.option_type.value,
                    strike=contract.strike,
                    expiry=contract.expiry.isoformat(),
                )
                continue

            if contract.greeks.delta == 0:
                backfilled += 1
            book[key] = self._finalize(contract, spot, as_of)

        if expired:
            log.info("chain_builder.expired_dropped", underlying=symbol, count=expired)

        keys = set(calls) | set(puts)
        chain = OptionsChain(
            underlying=symbol,
            underlying_price=spot,
            as_of=as_of,
            expiries=sorted({exp for _, exp in keys}),
            strikes=sorted({strike for strike, _ in keys}),
            calls=calls,
            puts=puts,
        )
        log.debug(
            "chain_builder.built",
            underlying=symbol,
            calls=len(calls),
            puts=len(puts),
            expiries=len(chain.expiries),
            strikes=len(chain.strikes),
            greeks_backfilled=backfilled,
            filtered_by_expiry=filtered,
        )
        return chain

    def _finalize(
        self, contract: OptionContract, spot: float, as_of: datetime,
    ) -> OptionContract:
        """Attach Greeks (if missing) and intrinsic/time value."""
        intrinsic = contract.intrinsic_at(spot)
        update: dict[str, Any] = {
            "intrinsic_value": intrinsic,
            "time_value": max(0.0, contract.last_price - intrinsic),
        }

        # Delta of exactly zero means the feed did not supply Greeks
        if contract.greeks.delta == 0:
            sigma = contract.implied_volatility
            if sigma <= 0:
                sigma = self.default_iv
                log.info(
                    "chain_builder.iv_defaulted",
                    underlying=contract.underlying,
                    option_type=contract.option_type.value,
                    strike=contract.strike,
                    expiry=contract.expiry.isoformat(),
                    default_iv=sigma,
                )
            update["greeks"] = black_scholes_greeks(
                spot,
                contract.strike,
                self.risk_free_rate,
                time_to_expiry_years(contract.expiry, as_of),
                sigma,
                contract.option_type,
            )

        return contract.model_copy(update=update)
