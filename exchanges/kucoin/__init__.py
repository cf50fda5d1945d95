"""
KuCoin Futures Adapter

KuCoin's contract list does not carry funding data, so this adapter lists
active contracts first and then asks for each contract's current funding rate.

API Documentation:
    https://www.kucoin.com/docs/rest/futures-trading/market-data/get-symbols-list
    https://www.kucoin.com/docs/rest/futures-trading/funding-fees/get-current-funding-rate

Endpoints Used:
    GET /api/v1/contracts/active
    GET /api/v1/funding-rate/{symbol}/current

Response Formats:
    Contract list:
        {"code": "200000", "data": [{"symbol": "XBTUSDTM", "quoteCurrency": "USDT", "status": "Open", ...}]}

    Current funding rate:
        {
          "code": "200000",
          "data": {
            "symbol": ".XBTUSDTMFPI8H",
            "granularity": 28800000,
            "timePoint": 1731441600000,
            "value": 0.000641,
            "predictedValue": 0.000052
          }
        }

Notes:
    - timePoint is the start of the current funding window; the settlement
      the rate applies to is timePoint + granularity
    - Bitcoin is called XBT and linear contracts end in "M" (XBTUSDTM -> BTCUSDT)
    - code is a string; anything but "200000" is an error
"""

from typing import Any, Dict, List, Tuple

from core.exceptions import FetchError, ParseError
from core.exchange_interface import ListThenDetailAdapter
from core.schemas import NormalizedFundingRate


SUCCESS_CODE = "200000"


class KuCoinAdapter(ListThenDetailAdapter):
    """KuCoin USDT-margined perpetuals, one funding request per contract."""

    name = "kucoin"
    display_name = "KuCoin"
    api_url = "https://api-futures.kucoin.com"
    color = "#10b981"

    list_endpoint = "https://api-futures.kucoin.com/api/v1/contracts/active"

    def extract_instruments(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict) or payload.get("code") != SUCCESS_CODE:
            error_msg = payload.get("msg", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"KuCoin API error: {error_msg}")

        return [
            contract for contract in payload.get("data") or []
            if isinstance(contract, dict)
            and contract.get("quoteCurrency") == "USDT"
            and contract.get("status") == "Open"
        ]

    def detail_request(self, instrument: Dict[str, Any]) -> Tuple[str, None]:
        return f"{self.api_url}/api/v1/funding-rate/{instrument['symbol']}/current", None

    def merge_detail(self, instrument: Dict[str, Any], payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, dict) or payload.get("code") != SUCCESS_CODE:
            raise FetchError(f"KuCoin funding rate error for {instrument.get('symbol')}")

        detail = payload.get("data")
        if not isinstance(detail, dict):
            raise ParseError(f"KuCoin funding rate payload for {instrument.get('symbol')} has no data")

        return {
            "symbol": instrument.get("symbol"),
            "value": detail.get("value"),
            "timePoint": detail.get("timePoint"),
            "granularity": detail.get("granularity"),
        }

    def canonical_symbol(self, symbol: str) -> str:
        symbol = symbol.upper()
        if symbol.startswith("XBT"):
            symbol = "BTC" + symbol[3:]
        if symbol.endswith("M"):
            symbol = symbol[:-1]
        return super().canonical_symbol(symbol)

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        time_point = raw.get("timePoint")
        granularity = raw.get("granularity")
        try:
            settlement = int(time_point) + int(granularity)
        except (TypeError, ValueError):
            raise ParseError(
                f"kucoin: cannot compute settlement for {raw.get('symbol')} "
                f"(timePoint={time_point!r}, granularity={granularity!r})"
            )
        return self.build_record(raw.get("symbol"), raw.get("value"), settlement)
