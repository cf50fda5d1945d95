"""
OKX Adapter

OKX serves funding rates one instrument at a time, so the adapter lists live
USDT swaps and then requests each one's funding rate.

API Documentation:
    https://www.okx.com/docs-v5/en/#public-data-rest-api-get-instruments
    https://www.okx.com/docs-v5/en/#public-data-rest-api-get-funding-rate

Endpoints Used:
    GET /api/v5/public/instruments?instType=SWAP
    GET /api/v5/public/funding-rate?instId=BTC-USDT-SWAP

Response Formats:
    Instruments:
        {"code": "0", "msg": "", "data": [{"instId": "BTC-USDT-SWAP", "settleCcy": "USDT", "state": "live", ...}]}

    Funding rate:
        {
          "code": "0",
          "msg": "",
          "data": [
            {
              "instId": "BTC-USDT-SWAP",
              "fundingRate": "0.0001515",
              "fundingTime": "1700035200000",
              "nextFundingTime": "1700064000000"
            }
          ]
        }

Notes:
    - code is a string; "0" means success
    - Coin-margined swaps (BTC-USD-SWAP) are filtered out by settleCcy
"""

from typing import Any, Dict, List, Tuple

from core.exceptions import FetchError, ParseError
from core.exchange_interface import ListThenDetailAdapter
from core.schemas import NormalizedFundingRate


class OKXAdapter(ListThenDetailAdapter):
    """OKX USDT-margined perpetual swaps, one funding request per instrument."""

    name = "okx"
    display_name = "OKX"
    api_url = "https://www.okx.com"
    ws_url = "wss://ws.okx.com:8443/ws/v5/public"
    color = "#64748b"

    list_endpoint = "https://www.okx.com/api/v5/public/instruments"
    list_params = {"instType": "SWAP"}

    def _check(self, payload: Any, what: str) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict) or payload.get("code") != "0":
            error_msg = payload.get("msg", "Unknown error") if isinstance(payload, dict) else payload
            raise FetchError(f"OKX API error ({what}): {error_msg}")
        return payload.get("data") or []

    def extract_instruments(self, payload: Any) -> List[Dict[str, Any]]:
        return [
            inst for inst in self._check(payload, "instruments")
            if isinstance(inst, dict)
            and inst.get("settleCcy") == "USDT"
            and inst.get("state", "live") == "live"
        ]

    def detail_request(self, instrument: Dict[str, Any]) -> Tuple[str, Dict[str, str]]:
        return f"{self.api_url}/api/v5/public/funding-rate", {"instId": instrument["instId"]}

    def merge_detail(self, instrument: Dict[str, Any], payload: Any) -> Dict[str, Any]:
        data = self._check(payload, instrument.get("instId", "?"))
        if not data:
            raise ParseError(f"OKX funding rate payload for {instrument.get('instId')} is empty")
        return data[0]

    def describe_instrument(self, instrument: Dict[str, Any]) -> str:
        if not isinstance(instrument, dict):
            return repr(instrument)
        return str(instrument.get("instId", "?"))

    def canonical_symbol(self, symbol: str) -> str:
        # BTC-USDT-SWAP -> BTCUSDT
        if symbol.upper().endswith("-SWAP"):
            symbol = symbol[: -len("-SWAP")]
        return super().canonical_symbol(symbol)

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        settlement = raw.get("nextFundingTime") or raw.get("fundingTime")
        return self.build_record(raw.get("instId"), raw.get("fundingRate"), settlement)
