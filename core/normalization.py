"""
Normalization and Trading Pair Resolution

Turns an adapter's NormalizedFundingRate into a FundingRateCreate that can be
persisted: the trading pair is resolved (or created) in storage and the rate
string becomes a Decimal.

Quote Asset Heuristic:
    Symbols arrive in the concatenated form (BTCUSDT, ETHUSD). The quote asset
    is USDT when the symbol contains "USDT", otherwise USD. The base asset is
    the symbol with its quote suffix removed. There is no per-exchange lookup
    table, so USDC- or BTC-quoted markets are recorded as USD-quoted.

Usage:
    resolver = PairResolver(storage)
    create = await resolver.resolve(record, exchange_id=3)
"""

from decimal import Decimal, InvalidOperation
from typing import Tuple

from core.exceptions import ParseError
from core.schemas import FundingRateCreate, NormalizedFundingRate, TradingPairUpsert


# Longest first so BTCUSDT never loses only its "USD"
QUOTE_SUFFIXES = ("USDT", "BUSD", "USD")


def split_symbol(symbol: str) -> Tuple[str, str]:
    """
    Split a concatenated symbol into (base_asset, quote_asset).

    Examples:
        >>> split_symbol("BTCUSDT")
        ('BTC', 'USDT')
        >>> split_symbol("ETHUSD")
        ('ETH', 'USD')
        >>> split_symbol("USDCUSDT")
        ('USDC', 'USDT')
    """
    symbol = symbol.upper()
    quote = "USDT" if "USDT" in symbol else "USD"

    base = symbol
    for suffix in QUOTE_SUFFIXES:
        if symbol.endswith(suffix) and len(symbol) > len(suffix):
            base = symbol[: -len(suffix)]
            break

    return base, quote


def to_decimal(value: str, symbol: str = "?") -> Decimal:
    """
    Convert a funding rate string to Decimal.

    Raises:
        ParseError: If the value is not a finite number
    """
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ParseError(f"Funding rate for {symbol} is not numeric: {value!r}")
    if not rate.is_finite():
        raise ParseError(f"Funding rate for {symbol} is not finite: {value!r}")
    return rate


class PairResolver:
    """
    Resolves normalized records to persistable funding rate rows.

    Each record resolves its pair through storage.upsert_trading_pair, which
    is an atomic insert-or-update on (symbol, exchange_id). Concurrent cycles
    resolving the same symbol therefore always agree on one pair id.
    """

    def __init__(self, storage):
        self.storage = storage

    async def resolve(self, record: NormalizedFundingRate, exchange_id: int) -> FundingRateCreate:
        """
        Resolve one record.

        Raises:
            ParseError: If the funding rate is not a finite number
            PersistenceError: If the pair could not be upserted
        """
        rate = to_decimal(record.funding_rate, record.symbol)
        base, quote = split_symbol(record.symbol)

        pair = await self.storage.upsert_trading_pair(
            TradingPairUpsert(
                symbol=record.symbol,
                base_asset=base,
                quote_asset=quote,
                exchange_id=exchange_id,
            )
        )

        return FundingRateCreate(
            exchange_id=exchange_id,
            pair_id=pair.id,
            symbol=record.symbol,
            funding_rate=rate,
            next_funding_time=record.next_funding_time,
            timestamp=record.observed_at,
        )
