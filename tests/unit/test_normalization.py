"""
Unit Tests for Normalization and Pair Resolution

Run with:
    pytest tests/unit/test_normalization.py -v
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.exceptions import ParseError
from core.normalization import PairResolver, split_symbol, to_decimal
from core.schemas import NormalizedFundingRate
from storage import InMemoryStorage
from tests.factories import seed_exchange


def record(symbol="BTCUSDT", rate="0.0001") -> NormalizedFundingRate:
    return NormalizedFundingRate(
        symbol=symbol,
        funding_rate=rate,
        next_funding_time=datetime(2024, 1, 1, 16, 0, tzinfo=timezone.utc),
    )


class TestSplitSymbol:

    @pytest.mark.parametrize(
        "symbol, expected",
        [
            ("BTCUSDT", ("BTC", "USDT")),
            ("ETHUSD", ("ETH", "USD")),
            ("1000PEPEUSDT", ("1000PEPE", "USDT")),
            ("USDCUSDT", ("USDC", "USDT")),
            ("btcusdt", ("BTC", "USDT")),
        ],
    )
    def test_quote_heuristic(self, symbol, expected):
        assert split_symbol(symbol) == expected

    def test_non_usd_quote_falls_back_to_usd(self):
        # No lookup table: anything without USDT is recorded as USD-quoted
        assert split_symbol("ETHBTC")[1] == "USD"


class TestToDecimal:

    def test_keeps_precision(self):
        assert to_decimal("0.000100000000000000") == Decimal("0.0001")

    @pytest.mark.parametrize("value", ["abc", "", "NaN", "-Infinity"])
    def test_rejects_non_finite_or_non_numeric(self, value):
        with pytest.raises(ParseError):
            to_decimal(value)


class TestPairResolver:

    @pytest.mark.asyncio
    async def test_resolve_creates_pair_and_row(self):
        storage = InMemoryStorage()
        exchange = await seed_exchange(storage)

        create = await PairResolver(storage).resolve(record(), exchange.id)

        [pair] = await storage.get_trading_pairs(exchange.id)
        assert pair.symbol == "BTCUSDT"
        assert pair.base_asset == "BTC"
        assert pair.quote_asset == "USDT"
        assert create.pair_id == pair.id
        assert create.exchange_id == exchange.id
        assert create.funding_rate == Decimal("0.0001")

    @pytest.mark.asyncio
    async def test_resolving_twice_reuses_pair(self):
        storage = InMemoryStorage()
        exchange = await seed_exchange(storage)
        resolver = PairResolver(storage)

        first = await resolver.resolve(record(), exchange.id)
        second = await resolver.resolve(record(rate="0.0002"), exchange.id)

        assert first.pair_id == second.pair_id
        assert len(await storage.get_trading_pairs()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_resolution_creates_one_pair(self):
        storage = InMemoryStorage()
        exchange = await seed_exchange(storage)
        resolver = PairResolver(storage)

        results = await asyncio.gather(*(resolver.resolve(record(), exchange.id) for _ in range(20)))

        assert len({r.pair_id for r in results}) == 1
        assert len(await storage.get_trading_pairs()) == 1

    @pytest.mark.asyncio
    async def test_same_symbol_on_two_exchanges_gets_two_pairs(self):
        storage = InMemoryStorage()
        bybit = await seed_exchange(storage, "bybit")
        gate = await seed_exchange(storage, "gate")
        resolver = PairResolver(storage)

        a = await resolver.resolve(record(), bybit.id)
        b = await resolver.resolve(record(), gate.id)

        assert a.pair_id != b.pair_id

    @pytest.mark.asyncio
    async def test_non_numeric_rate_is_parse_error(self):
        storage = InMemoryStorage()
        exchange = await seed_exchange(storage)

        with pytest.raises(ParseError):
            await PairResolver(storage).resolve(record(rate="abc"), exchange.id)
        assert await storage.get_trading_pairs() == []
