"""
Test data builders shared by the unit tests.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from core.schemas import (
    Exchange,
    ExchangeUpsert,
    FundingRateCreate,
    FundingRateWithExchange,
    TradingPairUpsert,
)
from core.normalization import split_symbol


NEXT_SETTLEMENT = datetime(2024, 1, 1, 16, 0, tzinfo=timezone.utc)


def exchange_upsert(name: str = "bybit", display_name: Optional[str] = None) -> ExchangeUpsert:
    return ExchangeUpsert(
        name=name,
        display_name=display_name or name.title(),
        api_url=f"https://api.{name}.test",
    )


async def seed_exchange(storage, name: str = "bybit", display_name: Optional[str] = None) -> Exchange:
    return await storage.upsert_exchange(exchange_upsert(name, display_name))


async def seed_rate(
    storage,
    exchange_id: int,
    symbol: str,
    rate: str,
    minutes_ago: float = 0,
):
    """Upsert the pair and insert one funding rate observed `minutes_ago` minutes ago."""
    base, quote = split_symbol(symbol)
    pair = await storage.upsert_trading_pair(
        TradingPairUpsert(symbol=symbol, base_asset=base, quote_asset=quote, exchange_id=exchange_id)
    )
    create = FundingRateCreate(
        exchange_id=exchange_id,
        pair_id=pair.id,
        symbol=symbol,
        funding_rate=Decimal(rate),
        next_funding_time=NEXT_SETTLEMENT,
        timestamp=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )
    inserted = await storage.insert_funding_rates([create])
    return inserted[0]


def rate_row(
    symbol: str,
    rate: str,
    exchange_id: int = 1,
    display_name: str = "Bybit",
    row_id: int = 1,
) -> FundingRateWithExchange:
    """A read-view row without going through storage."""
    now = datetime.now(timezone.utc)
    return FundingRateWithExchange(
        id=row_id,
        exchange_id=exchange_id,
        pair_id=row_id,
        symbol=symbol,
        funding_rate=Decimal(rate),
        next_funding_time=NEXT_SETTLEMENT,
        timestamp=now,
        exchange=Exchange(
            id=exchange_id,
            name=display_name.lower().replace(".", ""),
            display_name=display_name,
            api_url="https://api.test",
        ),
    )
