"""
Bybit Adapter

Bybit's v5 linear tickers carry the current funding rate and the next
settlement time for every USDT/USDC perpetual.

API Documentation:
    https://bybit-exchange.github.io/docs/v5/market/tickers

Endpoint Used:
    GET /v5/market/tickers?category=linear

Response Format:
    {
      "retCode": 0,
      "retMsg": "OK",
      "result": {
        "category": "linear",
        "list": [
          {"symbol": "BTCUSDT", "fundingRate": "0.0001", "nextFundingTime": "1673280000000", ...}
        ]
      }
    }

Notes:
    - retCode != 0 is an API-level error even with HTTP 200
    - Dated futures in the same list have an empty fundingRate and are rejected by parse()
"""

from typing import Any, Dict, List

from core.exceptions import FetchError
from core.exchange_interface import SinglePhaseAdapter
from core.schemas import NormalizedFundingRate


class BybitAdapter(SinglePhaseAdapter):
    """Bybit linear perpetuals via /v5/market/tickers."""

    name = "bybit"
    display_name = "Bybit"
    api_url = "https://api.bybit.com"
    ws_url = "wss://stream.bybit.com/v5/public/linear"
    color = "#f7931a"

    endpoint = "https://api.bybit.com/v5/market/tickers"
    params = {"category": "linear"}

    def extract_records(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict):
            raise FetchError(f"bybit: unexpected response shape {type(payload).__name__}")

        # Check Bybit response format
        if payload.get("retCode") != 0:
            error_msg = payload.get("retMsg", "Unknown error")
            raise FetchError(f"Bybit API error: {error_msg}")

        return (payload.get("result") or {}).get("list") or []

    def parse(self, raw: Dict[str, Any]) -> NormalizedFundingRate:
        return self.build_record(
            raw.get("symbol"),
            raw.get("fundingRate"),
            raw.get("nextFundingTime"),
        )
