"""
Unit Tests for Exchange Adapter Interface

These tests verify that:
- ExchangeAdapter cannot be instantiated directly
- build_record validates symbols, rates and settlement times
- SinglePhaseAdapter unwraps bare lists and rejects other shapes
- parse_record reports malformed raw records as ParseError
- ListThenDetailAdapter skips instruments whose detail request fails
  or that are malformed

Run with:
    pytest tests/unit/test_exchange_interface.py -v
"""

from datetime import datetime, timezone

import pytest

from core.exceptions import FetchError, ParseError
from core.exchange_interface import ExchangeAdapter, ListThenDetailAdapter, SinglePhaseAdapter
from core.schemas import NormalizedFundingRate
from tests.fakes import FakeFetcher, static_fetcher


# ============================================
# Minimal adapters
# ============================================

class BulkAdapter(SinglePhaseAdapter):
    name = "bulk"
    display_name = "Bulk"
    api_url = "https://bulk.test"
    endpoint = "https://bulk.test/funding"

    def parse(self, raw):
        return self.build_record(raw.get("symbol"), raw.get("rate"), raw.get("next"))


class PerInstrumentAdapter(ListThenDetailAdapter):
    name = "detail"
    display_name = "Detail"
    api_url = "https://detail.test"
    list_endpoint = "https://detail.test/instruments"

    def extract_instruments(self, payload):
        return payload

    def detail_request(self, instrument):
        return f"{self.api_url}/funding/{instrument['symbol']}", None

    def merge_detail(self, instrument, payload):
        if payload is None:
            raise ParseError("empty detail")
        return {"symbol": instrument["symbol"], **payload}

    def parse(self, raw):
        return self.build_record(raw.get("symbol"), raw.get("rate"), raw.get("next"))


# ============================================
# Tests
# ============================================

class TestExchangeAdapterContract:

    def test_cannot_instantiate_abstract_adapter(self):
        with pytest.raises(TypeError):
            ExchangeAdapter()

    def test_incomplete_adapter_cannot_be_instantiated(self):
        class NoParse(SinglePhaseAdapter):
            name = "noparse"

        with pytest.raises(TypeError):
            NoParse()

    def test_to_exchange_upsert(self):
        upsert = BulkAdapter().to_exchange_upsert()
        assert upsert.name == "bulk"
        assert upsert.display_name == "Bulk"
        assert upsert.api_url == "https://bulk.test"
        assert upsert.is_active is True

    def test_repr_includes_strategy(self):
        assert repr(BulkAdapter()) == "<BulkAdapter(name='bulk', strategy='single_phase')>"


class TestBuildRecord:

    def setup_method(self):
        self.adapter = BulkAdapter()

    def test_builds_normalized_record(self):
        record = self.adapter.build_record("btc-usdt", "0.0001", 1704110400000)

        assert isinstance(record, NormalizedFundingRate)
        assert record.symbol == "BTCUSDT"
        assert record.funding_rate == "0.0001"
        assert record.next_funding_time == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert record.observed_at.tzinfo is not None

    def test_numeric_rate_is_kept_as_string(self):
        record = self.adapter.build_record("ETH_USDT", -0.00025, "1704110400000")
        assert record.symbol == "ETHUSDT"
        assert record.funding_rate == "-0.00025"

    @pytest.mark.parametrize("symbol", [None, "", 42])
    def test_missing_symbol(self, symbol):
        with pytest.raises(ParseError):
            self.adapter.build_record(symbol, "0.0001", 1704110400000)

    @pytest.mark.parametrize("rate", [None, "", "n/a", "NaN", "Infinity"])
    def test_unusable_rate(self, rate):
        with pytest.raises(ParseError):
            self.adapter.build_record("BTCUSDT", rate, 1704110400000)

    @pytest.mark.parametrize("next_time", [None, "", 0, -5, "later", 10 ** 30])
    def test_invalid_settlement_time(self, next_time):
        with pytest.raises(ParseError):
            self.adapter.build_record("BTCUSDT", "0.0001", next_time)


class TestParseRecord:

    @pytest.mark.parametrize("raw", [None, "BTCUSDT", 42, ["BTCUSDT", "0.0001"]])
    def test_non_object_record_is_parse_error(self, raw):
        with pytest.raises(ParseError):
            BulkAdapter().parse_record(raw)

    def test_lookup_errors_in_parse_become_parse_error(self):
        class StrictAdapter(BulkAdapter):
            def parse(self, raw):
                return self.build_record(raw["symbol"], raw["rate"], raw["next"])

        with pytest.raises(ParseError, match="KeyError"):
            StrictAdapter().parse_record({"symbol": "BTCUSDT"})

    def test_valid_record_is_parsed(self):
        record = BulkAdapter().parse_record({"symbol": "BTCUSDT", "rate": "0.0001", "next": 1704110400000})
        assert record.symbol == "BTCUSDT"


class TestSinglePhaseAdapter:

    @pytest.mark.asyncio
    async def test_fetches_endpoint_once(self):
        fetcher = static_fetcher([{"symbol": "BTCUSDT", "rate": "0.0001", "next": 1704110400000}])

        records = await BulkAdapter().fetch_raw(fetcher)

        assert len(records) == 1
        assert fetcher.calls == [("https://bulk.test/funding", None)]

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_fetch_error(self):
        with pytest.raises(FetchError):
            await BulkAdapter().fetch_raw(static_fetcher({"error": "maintenance"}))


class TestListThenDetailAdapter:

    @pytest.mark.asyncio
    async def test_failed_detail_skips_only_that_instrument(self):
        def responder(url, params):
            if url.endswith("/instruments"):
                return [{"symbol": "BTCUSDT"}, {"symbol": "ETHUSDT"}, {"symbol": "SOLUSDT"}]
            if url.endswith("/ETHUSDT"):
                raise FetchError("HTTP 500", url=url, attempts=3, status=500)
            if url.endswith("/SOLUSDT"):
                return None
            return {"rate": "0.0001", "next": 1704110400000}

        fetcher = FakeFetcher(responder)
        records = await PerInstrumentAdapter().fetch_raw(fetcher)

        assert [r["symbol"] for r in records] == ["BTCUSDT"]
        # List request plus one detail request per instrument
        assert len(fetcher.calls) == 4

    @pytest.mark.asyncio
    async def test_details_are_fetched_in_list_order(self):
        def responder(url, params):
            if url.endswith("/instruments"):
                return [{"symbol": s} for s in ("A", "B", "C")]
            return {"rate": "0.0001", "next": 1704110400000}

        fetcher = FakeFetcher(responder)
        await PerInstrumentAdapter().fetch_raw(fetcher)

        assert [url.rsplit("/", 1)[-1] for url, _ in fetcher.calls[1:]] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_max_instruments_caps_detail_requests(self):
        def responder(url, params):
            if url.endswith("/instruments"):
                return [{"symbol": f"S{i}"} for i in range(10)]
            return {"rate": "0.0001", "next": 1704110400000}

        fetcher = FakeFetcher(responder)
        records = await PerInstrumentAdapter(max_instruments=3).fetch_raw(fetcher)

        assert len(records) == 3
        assert len(fetcher.calls) == 4

    @pytest.mark.asyncio
    async def test_failed_list_request_propagates(self):
        def responder(url, params):
            raise FetchError("down", url=url, attempts=3)

        with pytest.raises(FetchError):
            await PerInstrumentAdapter().fetch_raw(FakeFetcher(responder))

    @pytest.mark.asyncio
    async def test_malformed_instruments_are_skipped(self):
        def responder(url, params):
            if url.endswith("/instruments"):
                return [{"symbol": "BTCUSDT"}, {"name": "no-symbol"}, None, "ETHUSDT", {"symbol": "SOLUSDT"}]
            return {"rate": "0.0001", "next": 1704110400000}

        fetcher = FakeFetcher(responder)
        records = await PerInstrumentAdapter().fetch_raw(fetcher)

        assert [r["symbol"] for r in records] == ["BTCUSDT", "SOLUSDT"]
        assert len(fetcher.calls) == 3
