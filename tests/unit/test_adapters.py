"""
Unit Tests for Exchange Adapters

Each adapter is fed a captured-shape response and must:
- Unwrap its exchange's envelope (and reject error envelopes)
- Canonicalize symbols to the concatenated form
- Read the right rate and settlement fields (seconds vs milliseconds)

Run with:
    pytest tests/unit/test_adapters.py -v
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.exceptions import FetchError, ParseError
from exchanges.binance import BinanceAdapter
from exchanges.bingx import BingXAdapter
from exchanges.bitget import BitgetAdapter
from exchanges.bitmart import BitmartAdapter
from exchanges.bybit import BybitAdapter
from exchanges.gate import GateAdapter
from exchanges.htx import HTXAdapter
from exchanges.kucoin import KuCoinAdapter
from exchanges.mexc import MEXCAdapter
from exchanges.okx import OKXAdapter
from tests.fakes import FakeFetcher, static_fetcher


SETTLEMENT_MS = 1704110400000
SETTLEMENT = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


async def collect(adapter, fetcher):
    """fetch_raw + parse every record, like one collection cycle."""
    return [adapter.parse(raw) for raw in await adapter.fetch_raw(fetcher)]


# ============================================
# Single-phase adapters
# ============================================

class TestBinanceAdapter:

    @pytest.mark.asyncio
    async def test_parses_premium_index(self):
        payload = [
            {"symbol": "BTCUSDT", "markPrice": "42000.1", "lastFundingRate": "0.00010000",
             "nextFundingTime": SETTLEMENT_MS, "time": SETTLEMENT_MS - 1000},
        ]
        fetcher = static_fetcher(payload)

        [record] = await collect(BinanceAdapter(), fetcher)

        assert record.symbol == "BTCUSDT"
        assert Decimal(record.funding_rate) == Decimal("0.0001")
        assert record.next_funding_time == SETTLEMENT
        assert fetcher.calls[0][0] == "https://fapi.binance.com/fapi/v1/premiumIndex"

    def test_delivery_contract_without_settlement_is_rejected(self):
        with pytest.raises(ParseError):
            BinanceAdapter().parse(
                {"symbol": "BTCUSDT_240329", "lastFundingRate": "", "nextFundingTime": 0}
            )


class TestBybitAdapter:

    @pytest.mark.asyncio
    async def test_parses_linear_tickers(self):
        payload = {
            "retCode": 0,
            "retMsg": "OK",
            "result": {
                "category": "linear",
                "list": [
                    {"symbol": "ETHUSDT", "fundingRate": "-0.00012", "nextFundingTime": str(SETTLEMENT_MS)},
                ],
            },
        }
        fetcher = static_fetcher(payload)

        [record] = await collect(BybitAdapter(), fetcher)

        assert record.symbol == "ETHUSDT"
        assert record.funding_rate == "-0.00012"
        assert record.next_funding_time == SETTLEMENT
        assert fetcher.calls[0][1] == {"category": "linear"}

    @pytest.mark.asyncio
    async def test_error_envelope_is_fetch_error(self):
        payload = {"retCode": 10006, "retMsg": "Too many visits!", "result": {}}
        with pytest.raises(FetchError, match="Too many visits"):
            await BybitAdapter().fetch_raw(static_fetcher(payload))

    def test_dated_future_without_rate_is_rejected(self):
        with pytest.raises(ParseError):
            BybitAdapter().parse({"symbol": "BTC-29MAR24", "fundingRate": "", "nextFundingTime": "0"})


class TestHTXAdapter:

    @pytest.mark.asyncio
    async def test_uses_funding_time_when_next_is_null(self):
        payload = {
            "status": "ok",
            "data": [
                {"contract_code": "BTC-USDT", "funding_rate": "0.000100000000000000",
                 "funding_time": str(SETTLEMENT_MS), "next_funding_time": None},
            ],
        }

        [record] = await collect(HTXAdapter(), static_fetcher(payload))

        assert record.symbol == "BTCUSDT"
        assert record.next_funding_time == SETTLEMENT

    @pytest.mark.asyncio
    async def test_error_status_is_fetch_error(self):
        payload = {"status": "error", "err_code": 1017, "err_msg": "Contract does not exist"}
        with pytest.raises(FetchError):
            await HTXAdapter().fetch_raw(static_fetcher(payload))


class TestGateAdapter:

    @pytest.mark.asyncio
    async def test_settlement_in_seconds(self):
        payload = [
            {"name": "SOL_USDT", "funding_rate": "0.000113", "funding_next_apply": 1704110400,
             "in_delisting": False},
        ]

        [record] = await collect(GateAdapter(), static_fetcher(payload))

        assert record.symbol == "SOLUSDT"
        assert record.next_funding_time == SETTLEMENT


class TestBitgetAdapter:

    @pytest.mark.asyncio
    async def test_strips_product_type_suffix(self):
        payload = {
            "code": "00000",
            "msg": "success",
            "data": [{"symbol": "BTCUSDT_UMCBL", "fundingRate": "0.000068", "nextSettleTime": str(SETTLEMENT_MS)}],
        }
        fetcher = static_fetcher(payload)

        [record] = await collect(BitgetAdapter(), fetcher)

        assert record.symbol == "BTCUSDT"
        assert fetcher.calls[0][1] == {"productType": "umcbl"}

    @pytest.mark.asyncio
    async def test_error_code_is_fetch_error(self):
        with pytest.raises(FetchError):
            await BitgetAdapter().fetch_raw(static_fetcher({"code": "40034", "msg": "Parameter error"}))


class TestMEXCAdapter:

    @pytest.mark.asyncio
    async def test_numeric_rate(self):
        payload = {
            "success": True,
            "code": 0,
            "data": [{"symbol": "BTC_USDT", "fundingRate": 0.0001, "nextSettleTime": SETTLEMENT_MS}],
        }

        [record] = await collect(MEXCAdapter(), static_fetcher(payload))

        assert record.symbol == "BTCUSDT"
        assert Decimal(record.funding_rate) == Decimal("0.0001")

    @pytest.mark.asyncio
    async def test_unsuccessful_response_is_fetch_error(self):
        with pytest.raises(FetchError):
            await MEXCAdapter().fetch_raw(static_fetcher({"success": False, "code": 510, "message": "busy"}))


class TestBingXAdapter:

    @pytest.mark.asyncio
    async def test_parses_premium_index(self):
        payload = {
            "code": 0,
            "msg": "",
            "data": [{"symbol": "DOGE-USDT", "lastFundingRate": "0.00030000", "nextFundingTime": SETTLEMENT_MS}],
        }

        [record] = await collect(BingXAdapter(), static_fetcher(payload))

        assert record.symbol == "DOGEUSDT"
        assert record.funding_rate == "0.00030000"


class TestBitmartAdapter:

    @pytest.mark.asyncio
    async def test_parses_contract_details(self):
        payload = {
            "code": 1000,
            "message": "Ok",
            "data": {"symbols": [{"symbol": "BTCUSDT", "funding_rate": "0.0000561", "funding_time": SETTLEMENT_MS}]},
        }

        [record] = await collect(BitmartAdapter(), static_fetcher(payload))

        assert record.symbol == "BTCUSDT"
        assert record.next_funding_time == SETTLEMENT

    @pytest.mark.asyncio
    async def test_error_code_is_fetch_error(self):
        with pytest.raises(FetchError):
            await BitmartAdapter().fetch_raw(static_fetcher({"code": 30000, "message": "Not found"}))


# ============================================
# List-then-detail adapters
# ============================================

class TestKuCoinAdapter:

    def responder(self, url, params):
        if url.endswith("/contracts/active"):
            return {
                "code": "200000",
                "data": [
                    {"symbol": "XBTUSDTM", "quoteCurrency": "USDT", "status": "Open"},
                    {"symbol": "ETHUSDTM", "quoteCurrency": "USDT", "status": "Open"},
                    {"symbol": "XBTUSDM", "quoteCurrency": "USD", "status": "Open"},
                    {"symbol": "LUNAUSDTM", "quoteCurrency": "USDT", "status": "Paused"},
                ],
            }
        if "/ETHUSDTM/" in url:
            raise FetchError("HTTP 429", url=url, attempts=3, status=429)
        return {
            "code": "200000",
            "data": {
                "symbol": ".XBTUSDTMFPI8H",
                "granularity": 28800000,
                "timePoint": SETTLEMENT_MS - 28800000,
                "value": 0.000641,
            },
        }

    @pytest.mark.asyncio
    async def test_lists_then_fetches_detail(self):
        fetcher = FakeFetcher(self.responder)

        records = await collect(KuCoinAdapter(), fetcher)

        # USD-quoted and paused contracts are filtered, ETH detail failed
        assert [r.symbol for r in records] == ["BTCUSDT"]
        assert records[0].next_funding_time == SETTLEMENT
        assert Decimal(records[0].funding_rate) == Decimal("0.000641")
        detail_urls = [url for url, _ in fetcher.calls[1:]]
        assert detail_urls == [
            "https://api-futures.kucoin.com/api/v1/funding-rate/XBTUSDTM/current",
            "https://api-futures.kucoin.com/api/v1/funding-rate/ETHUSDTM/current",
        ]

    def test_canonical_symbol(self):
        adapter = KuCoinAdapter()
        assert adapter.canonical_symbol("XBTUSDTM") == "BTCUSDT"
        assert adapter.canonical_symbol("SOLUSDTM") == "SOLUSDT"

    def test_missing_time_point_is_rejected(self):
        with pytest.raises(ParseError):
            KuCoinAdapter().parse({"symbol": "XBTUSDTM", "value": 0.0001, "timePoint": None, "granularity": 28800000})

    @pytest.mark.asyncio
    async def test_error_list_envelope_is_fetch_error(self):
        with pytest.raises(FetchError):
            await KuCoinAdapter().fetch_raw(static_fetcher({"code": "400100", "msg": "bad"}))

    @pytest.mark.asyncio
    async def test_contract_without_symbol_is_skipped(self):
        def responder(url, params):
            if url.endswith("/contracts/active"):
                return {
                    "code": "200000",
                    "data": [
                        {"symbol": "XBTUSDTM", "quoteCurrency": "USDT", "status": "Open"},
                        {"quoteCurrency": "USDT", "status": "Open"},
                        None,
                    ],
                }
            return self.responder(url, params)

        fetcher = FakeFetcher(responder)
        records = await collect(KuCoinAdapter(), fetcher)

        assert [r.symbol for r in records] == ["BTCUSDT"]
        assert len(fetcher.calls) == 2


class TestOKXAdapter:

    def responder(self, url, params):
        if url.endswith("/instruments"):
            return {
                "code": "0",
                "data": [
                    {"instId": "BTC-USDT-SWAP", "settleCcy": "USDT", "state": "live"},
                    {"instId": "BTC-USD-SWAP", "settleCcy": "BTC", "state": "live"},
                    {"instId": "ETH-USDT-SWAP", "settleCcy": "USDT", "state": "live"},
                ],
            }
        if params["instId"] == "ETH-USDT-SWAP":
            return {"code": "0", "data": []}
        return {
            "code": "0",
            "data": [{
                "instId": "BTC-USDT-SWAP",
                "fundingRate": "0.0001515",
                "fundingTime": str(SETTLEMENT_MS - 28800000),
                "nextFundingTime": str(SETTLEMENT_MS),
            }],
        }

    @pytest.mark.asyncio
    async def test_lists_swaps_then_fetches_funding(self):
        fetcher = FakeFetcher(self.responder)

        records = await collect(OKXAdapter(), fetcher)

        assert [r.symbol for r in records] == ["BTCUSDT"]
        assert records[0].next_funding_time == SETTLEMENT
        assert fetcher.calls[0] == ("https://www.okx.com/api/v5/public/instruments", {"instType": "SWAP"})
        assert [params for _, params in fetcher.calls[1:]] == [
            {"instId": "BTC-USDT-SWAP"},
            {"instId": "ETH-USDT-SWAP"},
        ]

    def test_describe_instrument_uses_inst_id(self):
        assert OKXAdapter().describe_instrument({"instId": "BTC-USDT-SWAP"}) == "BTC-USDT-SWAP"

    @pytest.mark.asyncio
    async def test_max_instruments_limits_detail_calls(self):
        fetcher = FakeFetcher(self.responder)
        await OKXAdapter(max_instruments=1).fetch_raw(fetcher)
        assert len(fetcher.calls) == 2

    @pytest.mark.asyncio
    async def test_instrument_without_inst_id_is_skipped(self):
        def responder(url, params):
            if url.endswith("/instruments"):
                return {
                    "code": "0",
                    "data": [
                        {"settleCcy": "USDT", "state": "live"},
                        {"instId": "BTC-USDT-SWAP", "settleCcy": "USDT", "state": "live"},
                    ],
                }
            return self.responder(url, params)

        fetcher = FakeFetcher(responder)
        records = await collect(OKXAdapter(), fetcher)

        assert [r.symbol for r in records] == ["BTCUSDT"]
        assert [params for _, params in fetcher.calls[1:]] == [{"instId": "BTC-USDT-SWAP"}]
