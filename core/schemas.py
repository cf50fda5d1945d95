"""
Normalized Data Schemas

This module defines Pydantic models for every record the collector handles.
Regardless of which exchange a funding rate comes from, it is normalized into
these shapes before it reaches storage or subscribers.

Models:
    - ExchangeUpsert / Exchange: Exchange registry rows (unique by name)
    - TradingPairUpsert / TradingPair: Per-exchange instruments (unique by symbol + exchange)
    - NormalizedFundingRate: What an adapter's parse() returns
    - FundingRateCreate / FundingRate: Persisted funding rate observations
    - FundingRateWithExchange: Read-view row with its exchange embedded
    - FundingRateFilters: Filters for the generic funding rate query
    - ExchangeStats: Per-exchange aggregate
    - FundingRatesUpdate: Event handed to live-update subscribers
    - CycleResult: Outcome of one exchange collection cycle
    - AlertRule / TriggeredAlert: Custom threshold alerts
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.utils.time import current_utc_datetime


# ============================================
# Exchange Schemas
# ============================================

class ExchangeUpsert(BaseModel):
    """
    Exchange metadata written at startup (insert-or-update keyed by name).

    Example:
        >>> ExchangeUpsert(
        ...     name="bybit",
        ...     display_name="Bybit",
        ...     api_url="https://api.bybit.com",
        ...     ws_url="wss://stream.bybit.com/v5/public/linear",
        ...     color="#f7931a",
        ... )
    """

    name: str = Field(
        ...,
        description="Unique exchange identifier (lowercase)",
        examples=["binance", "bybit", "gate"]
    )

    display_name: str = Field(..., description="Human-readable exchange name")

    api_url: str = Field(..., description="Base REST API URL")

    ws_url: Optional[str] = Field(None, description="Public WebSocket URL (informational)")

    color: str = Field("#3B82F6", description="Accent color used by UIs")

    is_active: bool = Field(True, description="Whether the exchange is collected")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure exchange name is lowercase"""
        return v.lower()


class Exchange(ExchangeUpsert):
    """Persisted exchange row."""

    id: int = Field(..., description="Storage-assigned identifier")

    created_at: datetime = Field(default_factory=current_utc_datetime)


# ============================================
# Trading Pair Schemas
# ============================================

class TradingPairUpsert(BaseModel):
    """
    Trading pair observed in an exchange feed.

    Unique on (symbol, exchange_id). Created the first time a symbol appears,
    never deleted, only deactivated.
    """

    symbol: str = Field(..., description="Canonical symbol", examples=["BTCUSDT"])

    base_asset: str = Field(..., description="Base asset", examples=["BTC"])

    quote_asset: str = Field(..., description="Quote asset", examples=["USDT", "USD"])

    exchange_id: int = Field(..., description="Owning exchange id")

    is_active: bool = Field(True)

    @field_validator('symbol', 'base_asset', 'quote_asset')
    @classmethod
    def validate_upper(cls, v: str) -> str:
        """Ensure symbols and assets are uppercase"""
        return v.upper()


class TradingPair(TradingPairUpsert):
    """Persisted trading pair row."""

    id: int

    created_at: datetime = Field(default_factory=current_utc_datetime)


# ============================================
# Funding Rate Schemas
# ============================================

class NormalizedFundingRate(BaseModel):
    """
    Exchange-agnostic funding rate produced by an adapter's parse().

    The rate is kept as the exchange's own decimal string so no precision is
    lost before it is converted to Decimal during pair resolution.

    Attributes:
        symbol: Canonical symbol (e.g., "BTCUSDT")
        funding_rate: Rate as a decimal string (e.g., "0.0001" = 0.01%)
        next_funding_time: Next settlement time (UTC)
        observed_at: When the collector saw the value (UTC)
    """

    symbol: str

    funding_rate: str

    next_funding_time: datetime

    observed_at: datetime = Field(default_factory=current_utc_datetime)

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.upper()


class FundingRateCreate(BaseModel):
    """
    Funding rate ready to be inserted.

    Funding Rate Explained:
        - Positive rate: Longs pay shorts
        - Negative rate: Shorts pay longs
        - Settled periodically (commonly every 8 hours, exchange-dependent)
    """

    exchange_id: int

    pair_id: int

    symbol: str

    funding_rate: Decimal = Field(..., description="Signed rate in exchange-native units")

    next_funding_time: datetime

    timestamp: datetime = Field(..., description="Observation time")


class FundingRate(FundingRateCreate):
    """Persisted, immutable funding rate observation."""

    id: int

    created_at: datetime = Field(default_factory=current_utc_datetime)


class FundingRateWithExchange(FundingRate):
    """Funding rate row joined with its exchange (shape of every read view)."""

    exchange: Optional[Exchange] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "exchange_id": 2,
                "pair_id": 17,
                "symbol": "BTCUSDT",
                "funding_rate": "0.0001",
                "next_funding_time": "2024-01-01T16:00:00Z",
                "timestamp": "2024-01-01T12:00:00Z",
                "created_at": "2024-01-01T12:00:00Z",
                "exchange": {"id": 2, "name": "bybit", "display_name": "Bybit"}
            }
        }
    )


class FundingRateFilters(BaseModel):
    """Filters for the generic funding rate query (newest first)."""

    exchange_ids: Optional[List[int]] = None

    symbols: Optional[List[str]] = None

    min_rate: Optional[float] = None

    max_rate: Optional[float] = None

    limit: Optional[int] = Field(None, ge=1)

    offset: Optional[int] = Field(None, ge=0)


class ExchangeStats(BaseModel):
    """Per-exchange aggregate over stored funding rates."""

    exchange_id: int

    name: str = Field(..., description="Exchange display name")

    count: int = Field(..., description="Distinct symbols observed")

    avg_rate: float = Field(..., description="Mean absolute funding rate")


# ============================================
# Publisher / Scheduler Schemas
# ============================================

class FundingRatesUpdate(BaseModel):
    """Event handed to live-update subscribers after a collection cycle."""

    type: Literal["funding-rates-update"] = "funding-rates-update"

    data: List[FundingRateWithExchange]


class CollectionState(str, Enum):
    """Per-exchange collection state machine."""

    IDLE = "idle"
    FETCHING = "fetching"
    PARSING = "parsing"
    PERSISTING = "persisting"


class CycleResult(BaseModel):
    """
    Outcome of one exchange collection cycle.

    Attributes:
        exchange: Exchange name
        fetched: Raw records returned by the adapter
        skipped: Records dropped by parse or pair resolution
        persisted: Rows written by the bulk insert
        duration: Cycle wall time in seconds
        error: Error text when the cycle ended early
    """

    exchange: str

    started_at: datetime = Field(default_factory=current_utc_datetime)

    fetched: int = 0

    skipped: int = 0

    persisted: int = 0

    duration: float = 0.0

    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


# ============================================
# Alert Schemas
# ============================================

class AlertRule(BaseModel):
    """
    User-defined threshold alert.

    A rule matches a funding rate when the rate satisfies `condition` against
    `threshold`, and the optional exchange/symbol filters match.
    """

    id: Optional[int] = None

    condition: Literal["gt", "lt", "gte", "lte"]

    threshold: Decimal

    exchange_id: Optional[int] = None

    symbol: Optional[str] = None

    is_active: bool = True

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: Optional[str]) -> Optional[str]:
        """Ensure symbol is uppercase"""
        return v.upper() if v else v


class TriggeredAlert(BaseModel):
    """A rule paired with the funding rate that triggered it."""

    rule: AlertRule

    rate: FundingRateWithExchange
